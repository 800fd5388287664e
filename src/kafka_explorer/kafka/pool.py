"""Pooled admin and producer connections, one pair per cluster.

Entries are reused while connected and evicted after sitting idle longer
than ``idle_timeout``. Usage::

    pool = ConnectionPool(idle_timeout=300, sweep_interval=60)
    pool.start()

    entry = await pool.acquire("prod", lambda: wire)
    await entry.admin.list_topics()

    await pool.dispose()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from kafka_explorer.errors import ClusterUnreachable
from kafka_explorer.kafka.wire import KafkaAdmin, KafkaProducer, KafkaWire

logger = logging.getLogger(__name__)


@dataclass
class PooledConnection:
    """A connected admin/producer pair for one cluster.

    An entry with ``is_connected = False`` is never handed out.
    """

    wire: KafkaWire
    admin: KafkaAdmin
    producer: KafkaProducer
    last_used_at: float
    use_count: int = 1
    is_connected: bool = True


class ConnectionPool:
    """Per-cluster connection reuse with idle eviction.

    Single-threaded: every mutation happens on the event loop, so no lock is
    needed. A concurrent acquire for the same cluster may create a second
    pair; the loser disconnects its handles and returns the stored entry.
    """

    def __init__(
        self,
        idle_timeout: float = 300.0,
        sweep_interval: float = 60.0,
        _clock: Callable[[], float] | None = None,
    ) -> None:
        self._idle_timeout = idle_timeout
        self._sweep_interval = sweep_interval
        self._clock = _clock or time.monotonic
        self._entries: dict[str, PooledConnection] = {}
        # Bumped by disconnect(); an acquire that straddles a bump is discarded.
        self._generations: dict[str, int] = {}
        self._sweeper: asyncio.Task[None] | None = None

    @property
    def idle_timeout(self) -> float:
        return self._idle_timeout

    async def acquire(self, name: str, wire_factory: Callable[[], KafkaWire]) -> PooledConnection:
        """Return a connected entry for *name*, creating one if needed.

        Raises whatever the wire client raised while connecting; a failed
        attempt leaves nothing cached. Raises ``ClusterUnreachable`` when
        *name* was disconnected while this call was connecting.
        """
        entry = self._entries.get(name)
        if entry is not None and entry.is_connected:
            return self._touch(entry)
        if entry is not None:
            # Stale entry: its handles already reported a failure.
            self._entries.pop(name, None)
            await self._disconnect_handles(name, entry.admin, entry.producer)

        generation = self._generations.get(name, 0)
        wire = wire_factory()
        admin = wire.admin()
        producer = wire.producer()
        try:
            await admin.connect()
            await producer.connect()
        except Exception:
            logger.warning("Failed to connect pooled handles for %s", name)
            await self._disconnect_handles(name, admin, producer)
            raise

        if self._generations.get(name, 0) != generation:
            logger.info("Cluster %s was disconnected while connecting; dropping new handles", name)
            await self._disconnect_handles(name, admin, producer)
            raise ClusterUnreachable(name, "connection closed while connecting")

        existing = self._entries.get(name)
        if existing is not None and existing.is_connected:
            logger.debug("Concurrent connect for %s; keeping the stored entry", name)
            await self._disconnect_handles(name, admin, producer)
            return self._touch(existing)

        entry = PooledConnection(
            wire=wire,
            admin=admin,
            producer=producer,
            last_used_at=self._clock(),
        )
        self._entries[name] = entry
        logger.info("Created pooled connection for %s", name)
        return entry

    def mark_disconnected(self, name: str) -> None:
        """Flag the entry so the next acquire reconnects instead of reusing it."""
        entry = self._entries.get(name)
        if entry is not None:
            entry.is_connected = False

    async def evict_idle(self) -> int:
        """Disconnect and drop idle or disconnected entries. Returns the count."""
        now = self._clock()
        stale = [
            name for name, entry in self._entries.items()
            if not entry.is_connected or now - entry.last_used_at > self._idle_timeout
        ]
        for name in stale:
            entry = self._entries.pop(name, None)
            if entry is None:
                continue
            logger.info("Evicting idle connection for %s", name)
            await self._disconnect_handles(name, entry.admin, entry.producer)
        return len(stale)

    async def disconnect(self, name: str) -> None:
        """Disconnect both handles for *name* and drop the entry.

        Also invalidates any acquire for *name* that is still connecting.
        """
        self._generations[name] = self._generations.get(name, 0) + 1
        entry = self._entries.pop(name, None)
        if entry is None:
            return
        entry.is_connected = False
        await self._disconnect_handles(name, entry.admin, entry.producer)

    def start(self) -> None:
        """Schedule the periodic idle sweep on the running loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop())

    async def dispose(self) -> None:
        """Stop the sweep and disconnect every entry."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None

        names = list(self._entries)
        results = await asyncio.gather(
            *(self.disconnect(name) for name in names),
            return_exceptions=True,
        )
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.warning("Error disposing connection for %s: %s", name, result)

    def has_connection(self, name: str) -> bool:
        entry = self._entries.get(name)
        return entry is not None and entry.is_connected

    def stats(self) -> dict[str, Any]:
        now = self._clock()
        return {
            "total": len(self._entries),
            "connections": {
                name: {
                    "use_count": entry.use_count,
                    "idle_seconds": round(now - entry.last_used_at, 3),
                    "is_connected": entry.is_connected,
                }
                for name, entry in self._entries.items()
            },
        }

    # --- Private ---

    def _touch(self, entry: PooledConnection) -> PooledConnection:
        entry.last_used_at = self._clock()
        entry.use_count += 1
        return entry

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.evict_idle()
            except Exception:
                logger.exception("Idle connection sweep failed")

    async def _disconnect_handles(
        self,
        name: str,
        admin: KafkaAdmin,
        producer: KafkaProducer,
    ) -> None:
        for label, handle in (("admin", admin), ("producer", producer)):
            try:
                await handle.disconnect()
            except Exception as exc:
                logger.warning("Error disconnecting %s for %s: %s", label, name, exc)
