"""Connection registry: owns every live handle derived from a cluster.

The registry maps a cluster name to its connection record, its effective
client settings and (lazily) one wire client. Admin and producer handles
come from the pool; consumers are short-lived and handed out as leases
that are always disconnected after use.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from kafka_explorer.errors import ClusterUnreachable, KafkaExplorerError, UnknownCluster
from kafka_explorer.kafka.pool import ConnectionPool, PooledConnection
from kafka_explorer.kafka.settings import ClientSettings
from kafka_explorer.kafka.wire import KafkaAdmin, KafkaConsumer, KafkaProducer, KafkaWire
from kafka_explorer.models import ClusterConnection

logger = logging.getLogger(__name__)

WireFactory = Callable[[ClientSettings], KafkaWire]


class ConsumerLease:
    """A connected consumer that is disconnected at most once."""

    def __init__(self, cluster_name: str, group_id: str, consumer: KafkaConsumer) -> None:
        self.cluster_name = cluster_name
        self.group_id = group_id
        self._consumer = consumer
        self._closed = False

    @property
    def consumer(self) -> KafkaConsumer:
        return self._consumer

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._consumer.disconnect()
        except Exception as exc:
            logger.warning(
                "Error disconnecting consumer %s on %s: %s",
                self.group_id, self.cluster_name, exc,
            )


class ConnectionRegistry:
    """Cluster name -> connection, settings, wire client and pooled handles."""

    def __init__(
        self,
        wire_factory: WireFactory,
        pool: ConnectionPool | None = None,
    ) -> None:
        self._wire_factory = wire_factory
        self._pool = pool or ConnectionPool()
        self._connections: dict[str, ClusterConnection] = {}
        self._settings: dict[str, ClientSettings] = {}
        self._wires: dict[str, KafkaWire] = {}

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    def register(self, connection: ClusterConnection, settings: ClientSettings) -> None:
        """Record a cluster. Callers tear down a previous registration first."""
        self._connections[connection.name] = connection
        self._settings[connection.name] = settings
        self._wires.pop(connection.name, None)

    def has(self, name: str) -> bool:
        return name in self._connections

    def names(self) -> list[str]:
        return list(self._connections)

    def connection(self, name: str) -> ClusterConnection:
        try:
            return self._connections[name]
        except KeyError:
            raise UnknownCluster(name) from None

    def settings(self, name: str) -> ClientSettings:
        try:
            return self._settings[name]
        except KeyError:
            raise UnknownCluster(name) from None

    async def get_admin(self, name: str) -> KafkaAdmin:
        return (await self._acquire(name)).admin

    async def get_producer(self, name: str) -> KafkaProducer:
        return (await self._acquire(name)).producer

    def mark_unhealthy(self, name: str) -> None:
        """Force the next handle request for *name* to reconnect."""
        self._pool.mark_disconnected(name)

    @asynccontextmanager
    async def ephemeral_consumer(self, name: str, group_id: str) -> AsyncIterator[ConsumerLease]:
        """Yield a connected consumer lease, disconnecting it on exit."""
        consumer = self._wire(name).consumer(group_id)
        lease = ConsumerLease(name, group_id, consumer)
        try:
            await consumer.connect()
        except KafkaExplorerError:
            await lease.close()
            raise
        except Exception as exc:
            await lease.close()
            raise ClusterUnreachable(name, str(exc)) from exc

        try:
            yield lease
        finally:
            await lease.close()

    async def remove_cluster(self, name: str) -> None:
        """Disconnect pooled handles, then forget every derived entry."""
        try:
            await self._pool.disconnect(name)
        finally:
            self._wires.pop(name, None)
            self._settings.pop(name, None)
            self._connections.pop(name, None)
        logger.info("Removed cluster %s", name)

    async def dispose_all(self) -> None:
        """Tear down every cluster; one failure never stops the rest."""
        names = self.names()
        results = await asyncio.gather(
            *(self.remove_cluster(name) for name in names),
            return_exceptions=True,
        )
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.warning("Error tearing down cluster %s: %s", name, result)
        await self._pool.dispose()

    # --- Private ---

    def _wire(self, name: str) -> KafkaWire:
        settings = self.settings(name)
        wire = self._wires.get(name)
        if wire is None:
            wire = self._wire_factory(settings)
            self._wires[name] = wire
        return wire

    async def _acquire(self, name: str) -> PooledConnection:
        self.connection(name)
        try:
            return await self._pool.acquire(name, lambda: self._wire(name))
        except KafkaExplorerError:
            raise
        except Exception as exc:
            raise ClusterUnreachable(name, str(exc)) from exc
