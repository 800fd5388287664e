"""ClusterManager: the single entry point for cluster operations.

Wires the credential resolver, MSK bootstrap resolver, secret store,
cluster store, connection registry and audit log behind one class.

Usage::

    from kafka_explorer import ClusterManager, ClusterConnection

    manager = ClusterManager.from_config(load_config())
    report = await manager.load_configuration()

    await manager.add_cluster_from_connection(ClusterConnection(
        name="local",
        brokers=["localhost:9092"],
    ))
    topics = await manager.list_topics("local")

    await manager.dispose()
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from kafka_explorer.audit.log import AuditLog, AuditOperation
from kafka_explorer.config import ExplorerConfig
from kafka_explorer.credentials.aws import AwsCredentialResolver
from kafka_explorer.credentials.secrets import (
    SecretStore,
    build_secret_store,
    get_password,
    store_password,
)
from kafka_explorer.errors import (
    BootstrapFetchFailed,
    ClusterUnreachable,
    CredentialsExpired,
    CredentialsNotFound,
    InsufficientPermissions,
    InvalidClusterConfig,
    InvalidPartitionCount,
    KafkaExplorerError,
    NoBrokersAvailable,
    ProfileNotFound,
    RoleAssumptionFailed,
    TokenGenerationFailed,
    TopicOrGroupNotFound,
    UnknownCluster,
    error_text,
    looks_expired,
    translate_kafka_error,
)
from kafka_explorer.kafka.aiokafka_wire import AioKafkaWire
from kafka_explorer.kafka.consume import DEFAULT_CONSUME_TIMEOUT, OnMessage, consume_bounded
from kafka_explorer.kafka.pool import ConnectionPool
from kafka_explorer.kafka.registry import ConnectionRegistry, WireFactory
from kafka_explorer.kafka.settings import build_client_settings
from kafka_explorer.lag import compute_lag
from kafka_explorer.models import (
    BrokerDetails,
    BrokerInfo,
    ClusterConnection,
    ClusterStatistics,
    ClusterType,
    ConfigEntry,
    ConsumedMessage,
    ConsumerGroupDetails,
    ConsumerGroupSummary,
    LoadFailure,
    LoadFailureReason,
    LoadReport,
    OffsetResetMode,
    PartitionDetail,
    PartitionLag,
    ProducerRecord,
    SaslMechanism,
    SecurityProtocol,
    TopicDetails,
    TopicMetadata,
    TopicSpec,
    sanitize_for_storage,
)
from kafka_explorer.msk.bootstrap import MskBootstrapResolver
from kafka_explorer.msk.iam_token import MskIamTokenProvider
from kafka_explorer.store import ClusterStore, MemoryClusterStore, YamlClusterStore, drop_records, upsert_record

logger = logging.getLogger(__name__)

MAX_PARTITIONS = 10000

_CREDENTIAL_ERRORS = (
    CredentialsExpired, CredentialsNotFound, ProfileNotFound,
    RoleAssumptionFailed, InsufficientPermissions, TokenGenerationFailed,
)


def classify_load_failure(exc: BaseException) -> LoadFailureReason:
    """Map an add-cluster failure during startup to a notification reason."""
    if isinstance(exc, InvalidClusterConfig):
        return LoadFailureReason.INVALID_CONFIG
    text = error_text(exc).lower()
    if isinstance(exc, _CREDENTIAL_ERRORS) or looks_expired(text) or "credentials" in text:
        return LoadFailureReason.CREDENTIALS_EXPIRED
    if isinstance(exc, (NoBrokersAvailable, BootstrapFetchFailed)) or "brokers" in text:
        return LoadFailureReason.BROKER_FETCH_FAILED
    if isinstance(exc, (ClusterUnreachable, ConnectionError, TimeoutError)) or (
        "network" in text or "timeout" in text
    ):
        return LoadFailureReason.NETWORK
    return LoadFailureReason.UNKNOWN


def _looks_disconnected(exc: BaseException) -> bool:
    return isinstance(exc, (ConnectionError, TimeoutError)) or "connection" in error_text(exc).lower()


class ClusterManager:
    """Public API for managing Kafka and MSK clusters.

    Every collaborator is optional; defaults come from *config*.
    """

    def __init__(
        self,
        store: ClusterStore | None = None,
        secrets: SecretStore | None = None,
        credential_resolver: AwsCredentialResolver | None = None,
        bootstrap_resolver: MskBootstrapResolver | None = None,
        wire_factory: WireFactory | None = None,
        pool: ConnectionPool | None = None,
        audit: AuditLog | None = None,
        config: ExplorerConfig | None = None,
    ) -> None:
        self._config = config or ExplorerConfig()
        self._store: ClusterStore = store if store is not None else MemoryClusterStore()
        self._secrets = secrets if secrets is not None else build_secret_store(self._config.secrets)
        self._credentials = credential_resolver or AwsCredentialResolver(
            credentials_path=self._config.aws_credentials_file,
            config_path=self._config.aws_config_file,
        )
        self._bootstrap = bootstrap_resolver or MskBootstrapResolver(self._credentials)
        self._pool = pool or ConnectionPool(
            idle_timeout=self._config.pool.idle_timeout_seconds,
            sweep_interval=self._config.pool.sweep_interval_seconds,
        )
        self._registry = ConnectionRegistry(wire_factory or AioKafkaWire, self._pool)
        self._audit = audit if audit is not None else AuditLog(log_path=self._config.audit_log)

    @classmethod
    def from_config(cls, config: ExplorerConfig) -> ClusterManager:
        """Build a manager that persists clusters to ``config.clusters_file``."""
        return cls(store=YamlClusterStore(config.clusters_file), config=config)

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def audit(self) -> AuditLog:
        return self._audit

    @property
    def store(self) -> ClusterStore:
        return self._store

    @property
    def secrets(self) -> SecretStore:
        return self._secrets

    @property
    def config(self) -> ExplorerConfig:
        return self._config

    def start(self) -> None:
        """Start the idle connection sweep (requires a running loop)."""
        self._pool.start()

    # --- Clusters ---

    async def add_cluster_from_connection(
        self,
        connection: ClusterConnection,
        *,
        persist: bool = True,
    ) -> None:
        """Validate, resolve, register and (optionally) persist a cluster.

        A failed admin connection is logged and does not fail the add; the
        connection is retried on first use.

        Raises:
            InvalidClusterConfig: The record violates its type invariants.
            NoBrokersAvailable: No broker address could be determined.
            KafkaExplorerError: Credential or bootstrap resolution failed.
        """
        name = connection.name
        with self._audited(AuditOperation.CLUSTER_ADDED, name, metadata={"type": connection.type.value}):
            problems = connection.problems()
            if problems:
                raise InvalidClusterConfig(name, problems)

            logger.info("Adding cluster %s (type: %s)", name, connection.type.value)

            brokers = [b.strip() for b in connection.brokers if b.strip()]
            if connection.type == ClusterType.MSK:
                brokers = await self._bootstrap.get_bootstrap_brokers(
                    connection.region,
                    connection.cluster_arn,
                    connection.sasl_mechanism.value if connection.sasl_mechanism else None,
                    connection.aws_profile,
                )
            if not brokers:
                raise NoBrokersAvailable(connection.cluster_arn, auth_method=None)

            token_provider = None
            if connection.sasl_mechanism == SaslMechanism.AWS_MSK_IAM:
                token_provider = MskIamTokenProvider(
                    connection.region,
                    profile=connection.aws_profile,
                    assume_role_arn=connection.assume_role_arn,
                    resolver=self._credentials,
                )

            settings = build_client_settings(
                connection,
                brokers,
                sasl_password=connection.sasl_password or get_password(self._secrets, name, "sasl"),
                ssl_password=connection.ssl_password or get_password(self._secrets, name, "ssl"),
                token_provider=token_provider,
            )

            if self._registry.has(name):
                await self._registry.remove_cluster(name)
            self._registry.register(connection, settings)
            self._store_secrets(connection)

            try:
                await self._registry.get_admin(name)
                self._audit.success(AuditOperation.CLUSTER_CONNECTED, name)
            except KafkaExplorerError as exc:
                logger.warning("Failed to connect to cluster %s on add: %s", name, exc)

            if persist:
                self._persist(connection)

    async def add_cluster(
        self,
        name: str,
        brokers: list[str],
        sasl: dict[str, str] | None = None,
    ) -> None:
        """Add a plain Kafka cluster from a broker list and optional SASL dict.

        *sasl* keys: ``mechanism``, ``username``, ``password``.
        """
        sasl = sasl or {}
        mechanism = sasl.get("mechanism")
        await self.add_cluster_from_connection(ClusterConnection(
            name=name,
            type=ClusterType.KAFKA,
            brokers=brokers,
            security_protocol=SecurityProtocol.SASL_SSL if sasl else SecurityProtocol.PLAINTEXT,
            sasl_mechanism=SaslMechanism(mechanism.upper()) if mechanism else None,
            sasl_username=sasl.get("username"),
            sasl_password=sasl.get("password"),
        ))

    async def remove_cluster(self, name: str) -> None:
        """Tear down live handles, then forget secrets and the stored record."""
        with self._audited(AuditOperation.CLUSTER_REMOVED, name):
            logger.info("Removing cluster %s", name)
            await self._registry.remove_cluster(name)
            self._audit.success(AuditOperation.CLUSTER_DISCONNECTED, name)
            self._secrets.delete(name)
            self._store.save(drop_records(self._store.load(), {name}))

    def get_clusters(self) -> list[str]:
        return self._registry.names()

    def get_connection(self, name: str) -> ClusterConnection:
        return self._registry.connection(name)

    # --- Startup ---

    async def load_configuration(self) -> LoadReport:
        """Reconnect every stored cluster, collecting per-cluster failures."""
        return await self._load_records(self._store.load())

    async def load_cluster(self, name: str) -> ClusterConnection:
        """Register one stored cluster without touching the others.

        Raises:
            UnknownCluster: No stored record has this name.
            InvalidClusterConfig: The stored record is malformed.
        """
        record = next((r for r in self._store.load() if r.get("name") == name), None)
        if record is None:
            raise UnknownCluster(name)
        try:
            connection = ClusterConnection.model_validate(record)
        except ValidationError as exc:
            raise InvalidClusterConfig(name, [str(e["msg"]) for e in exc.errors()]) from exc
        await self.add_cluster_from_connection(connection, persist=False)
        return connection

    async def retry_failed(self, report: LoadReport) -> LoadReport:
        """Retry only the clusters that failed in *report*."""
        failed = {f.name for f in report.failures}
        records = [r for r in self._store.load() if r.get("name") in failed]
        return await self._load_records(records)

    def remove_failed(self, report: LoadReport) -> list[str]:
        """Drop the failed clusters from the store. Returns their names."""
        failed = {f.name for f in report.failures}
        self._store.save(drop_records(self._store.load(), failed))
        for name in failed:
            self._secrets.delete(name)
        logger.info("Removed %d failed cluster(s) from configuration", len(failed))
        return sorted(failed)

    async def _load_records(self, records: list[dict[str, Any]]) -> LoadReport:
        report = LoadReport(loaded_at=datetime.now(tz=UTC))
        for record in records:
            name = str(record.get("name") or "Unknown")
            try:
                connection = ClusterConnection.model_validate(record)
            except ValidationError as exc:
                logger.error("Invalid cluster configuration for %s", name)
                report.failures.append(LoadFailure(
                    name=name,
                    reason=LoadFailureReason.INVALID_CONFIG,
                    detail=f"{exc.error_count()} invalid field(s)",
                ))
                continue

            try:
                await self.add_cluster_from_connection(connection, persist=False)
            except Exception as exc:
                logger.warning("Failed to load cluster %s: %s", name, exc)
                report.failures.append(LoadFailure(
                    name=name,
                    reason=classify_load_failure(exc),
                    detail=str(exc)[:200],
                ))
                continue
            report.loaded.append(name)

        if report.failures:
            logger.warning(report.summary())
        return report

    # --- Topics ---

    async def list_topics(self, cluster: str) -> list[str]:
        admin = await self._registry.get_admin(cluster)
        with self._kafka_errors(cluster, cluster):
            return await admin.list_topics()

    async def get_topic_metadata(self, cluster: str, topic: str) -> TopicMetadata:
        admin = await self._registry.get_admin(cluster)
        with self._kafka_errors(cluster, topic):
            metadata = await admin.fetch_topic_metadata([topic])
        if not metadata or not metadata[0].partitions:
            raise TopicOrGroupNotFound(topic, cluster)
        return metadata[0]

    async def get_topic_details(self, cluster: str, topic: str) -> TopicDetails:
        """Partitions with leader, replicas, ISR and watermarks, plus configuration."""
        metadata = await self.get_topic_metadata(cluster, topic)
        admin = await self._registry.get_admin(cluster)
        with self._kafka_errors(cluster, topic):
            configuration = await admin.describe_configs(topic)
            offsets = {o.partition: o for o in await admin.fetch_topic_offsets(topic)}

        details: list[PartitionDetail] = []
        for p in metadata.partitions:
            watermark = offsets.get(p.partition)
            low = watermark.low if watermark else 0
            high = watermark.high if watermark else 0
            details.append(PartitionDetail(
                partition=p.partition,
                leader=p.leader,
                replicas=p.replicas,
                isr=p.isr,
                low_watermark=low,
                high_watermark=high,
                message_count=max(0, high - low),
            ))

        return TopicDetails(
            name=topic,
            partitions=len(metadata.partitions),
            replication_factor=len(metadata.partitions[0].replicas),
            partition_details=details,
            configuration=configuration,
        )

    async def create_topic(
        self,
        cluster: str,
        topic: str,
        num_partitions: int = 1,
        replication_factor: int = 1,
        configs: dict[str, str] | None = None,
    ) -> None:
        spec = TopicSpec(
            name=topic,
            num_partitions=num_partitions,
            replication_factor=replication_factor,
            configs=configs or {},
        )
        metadata = {"partitions": num_partitions, "replication_factor": replication_factor}
        with self._audited(AuditOperation.TOPIC_CREATED, cluster, topic, metadata):
            admin = await self._registry.get_admin(cluster)
            with self._kafka_errors(cluster, topic):
                await admin.create_topics([spec])

    async def delete_topic(self, cluster: str, topic: str) -> None:
        with self._audited(AuditOperation.TOPIC_DELETED, cluster, topic):
            admin = await self._registry.get_admin(cluster)
            with self._kafka_errors(cluster, topic):
                await admin.delete_topics([topic])

    async def get_topic_config(self, cluster: str, topic: str) -> list[ConfigEntry]:
        admin = await self._registry.get_admin(cluster)
        with self._kafka_errors(cluster, topic):
            return await admin.describe_configs(topic)

    async def alter_topic_config(self, cluster: str, topic: str, configs: dict[str, str]) -> None:
        with self._audited(AuditOperation.TOPIC_CONFIG_UPDATED, cluster, topic, {"keys": sorted(configs)}):
            admin = await self._registry.get_admin(cluster)
            with self._kafka_errors(cluster, topic):
                await admin.alter_configs(topic, configs)

    async def get_partition_count(self, cluster: str, topic: str) -> int:
        return len((await self.get_topic_metadata(cluster, topic)).partitions)

    async def add_partitions(self, cluster: str, topic: str, total: int) -> int:
        """Grow *topic* to *total* partitions. Returns the previous count.

        Raises:
            InvalidPartitionCount: *total* does not exceed the current count,
                or is above ``MAX_PARTITIONS``.
            TopicOrGroupNotFound: The topic does not exist.
        """
        with self._audited(AuditOperation.PARTITIONS_ADDED, cluster, topic, {"total": total}):
            current = await self.get_partition_count(cluster, topic)
            if total <= current:
                raise InvalidPartitionCount(
                    topic, total,
                    f"must be greater than the current count ({current}); "
                    "Kafka cannot reduce a topic's partitions",
                )
            if total > MAX_PARTITIONS:
                raise InvalidPartitionCount(topic, total, f"exceeds the maximum of {MAX_PARTITIONS}")

            admin = await self._registry.get_admin(cluster)
            with self._kafka_errors(cluster, topic):
                await admin.create_partitions(topic, total)
        logger.info("Grew %s on %s from %d to %d partitions", topic, cluster, current, total)
        return current

    # --- Messages ---

    async def produce_message(
        self,
        cluster: str,
        topic: str,
        value: str,
        key: str | None = None,
        headers: dict[str, str] | None = None,
        partition: int | None = None,
    ) -> None:
        record = ProducerRecord(value=value, key=key, headers=headers or {}, partition=partition)
        await self.produce_messages(cluster, topic, [record])

    async def produce_messages(self, cluster: str, topic: str, records: list[ProducerRecord]) -> int:
        with self._audited(AuditOperation.MESSAGE_PRODUCED, cluster, topic, {"count": len(records)}):
            producer = await self._registry.get_producer(cluster)
            with self._kafka_errors(cluster, topic):
                await producer.send(topic, records)
        return len(records)

    async def consume_messages(
        self,
        cluster: str,
        topic: str,
        limit: int = 100,
        from_beginning: bool = False,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
        on_message: OnMessage | None = None,
    ) -> list[ConsumedMessage]:
        """Read up to *limit* messages with a throwaway consumer group."""
        group_id = f"kafka-explorer-consumer-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"
        metadata = {"limit": limit, "from_beginning": from_beginning}
        with self._audited(AuditOperation.MESSAGE_CONSUMED, cluster, topic, metadata):
            async with self._registry.ephemeral_consumer(cluster, group_id) as lease:
                with self._kafka_errors(cluster, topic):
                    return await consume_bounded(
                        lease,
                        [topic],
                        limit=limit,
                        from_beginning=from_beginning,
                        timeout=timeout or self._config.consume_timeout_seconds or DEFAULT_CONSUME_TIMEOUT,
                        cancel=cancel,
                        on_message=on_message,
                    )

    # --- Consumer groups ---

    async def list_consumer_groups(self, cluster: str) -> list[ConsumerGroupSummary]:
        """All groups with their state, or state ``Unknown`` if describe fails."""
        admin = await self._registry.get_admin(cluster)
        with self._kafka_errors(cluster, cluster):
            listings = await admin.list_groups()
        if not listings:
            return []

        try:
            descriptions = await admin.describe_groups([g.group_id for g in listings])
        except Exception as exc:
            logger.warning("Error fetching consumer group states on %s: %s", cluster, exc)
            return [
                ConsumerGroupSummary(group_id=g.group_id, protocol_type=g.protocol_type)
                for g in listings
            ]
        return [
            ConsumerGroupSummary(group_id=d.group_id, state=d.state, protocol_type=d.protocol_type)
            for d in descriptions
        ]

    async def get_consumer_group_details(self, cluster: str, group_id: str) -> ConsumerGroupDetails:
        """Members and per-partition lag; topics whose offsets fail are skipped."""
        admin = await self._registry.get_admin(cluster)
        with self._kafka_errors(cluster, group_id):
            descriptions = await admin.describe_groups([group_id])
            committed = await admin.fetch_offsets(group_id)
        if not descriptions:
            raise TopicOrGroupNotFound(group_id, cluster)
        group = descriptions[0]

        lags: list[PartitionLag] = []
        for topic in sorted({o.topic for o in committed}):
            try:
                high = {p.partition: p.high for p in await admin.fetch_topic_offsets(topic)}
            except Exception as exc:
                logger.warning("Failed to get lag for %s in group %s: %s", topic, group_id, exc)
                continue
            for offset in (o for o in committed if o.topic == topic):
                watermark = high.get(offset.partition, 0)
                lags.append(PartitionLag(
                    group_id=group_id,
                    topic=topic,
                    partition=offset.partition,
                    current_offset=offset.offset,
                    high_watermark=watermark,
                    lag=compute_lag(watermark, offset.offset),
                    metadata=offset.metadata,
                ))

        return ConsumerGroupDetails(
            group_id=group.group_id,
            state=group.state,
            protocol_type=group.protocol_type,
            protocol=group.protocol,
            members=group.members,
            offsets=lags,
            total_lag=sum(lag.lag for lag in lags),
        )

    async def get_consumer_group_lag(self, cluster: str, group_id: str) -> list[PartitionLag]:
        details = await self.get_consumer_group_details(cluster, group_id)
        return details.offsets

    async def delete_consumer_group(self, cluster: str, group_id: str) -> None:
        with self._audited(AuditOperation.CONSUMER_GROUP_DELETED, cluster, group_id):
            admin = await self._registry.get_admin(cluster)
            with self._kafka_errors(cluster, group_id):
                await admin.delete_groups([group_id])

    async def reset_consumer_group_offsets(
        self,
        cluster: str,
        group_id: str,
        topic: str | None = None,
        reset_to: str = OffsetResetMode.BEGINNING,
        specific_offset: int | None = None,
    ) -> dict[str, dict[int, int]]:
        """Move a group's committed offsets on one topic (or all its topics).

        Unrecognized modes, and ``specific offset`` without an offset, reset
        to the beginning. Returns topic -> partition -> new offset.
        """
        mode = self._resolve_reset_mode(reset_to, specific_offset)
        metadata = {"reset_to": mode.value, "topic": topic}
        with self._audited(AuditOperation.CONSUMER_GROUP_OFFSETS_RESET, cluster, group_id, metadata):
            admin = await self._registry.get_admin(cluster)
            with self._kafka_errors(cluster, group_id):
                if topic:
                    topics = [topic]
                else:
                    topics = sorted({o.topic for o in await admin.fetch_offsets(group_id)})

                applied: dict[str, dict[int, int]] = {}
                for name in topics:
                    offsets: dict[int, int] = {}
                    for p in await admin.fetch_topic_offsets(name):
                        if mode == OffsetResetMode.END:
                            offsets[p.partition] = p.high
                        elif mode == OffsetResetMode.SPECIFIC:
                            offsets[p.partition] = specific_offset
                        else:
                            offsets[p.partition] = p.low
                    await admin.reset_offsets(group_id, name, offsets)
                    applied[name] = offsets
        logger.info("Reset offsets of %s on %s to %s", group_id, cluster, mode.value)
        return applied

    @staticmethod
    def _resolve_reset_mode(reset_to: str, specific_offset: int | None) -> OffsetResetMode:
        try:
            mode = OffsetResetMode(reset_to)
        except ValueError:
            logger.warning("Unknown offset reset mode %r; resetting to beginning", reset_to)
            return OffsetResetMode.BEGINNING
        if mode == OffsetResetMode.SPECIFIC and specific_offset is None:
            logger.warning("No specific offset given; resetting to beginning")
            return OffsetResetMode.BEGINNING
        return mode

    # --- Brokers ---

    async def get_brokers(self, cluster: str) -> list[BrokerInfo]:
        admin = await self._registry.get_admin(cluster)
        with self._kafka_errors(cluster, cluster):
            description = await admin.describe_cluster()
        return description.brokers

    async def get_broker_details(self, cluster: str, broker_id: int) -> BrokerDetails:
        admin = await self._registry.get_admin(cluster)
        with self._kafka_errors(cluster, str(broker_id)):
            description = await admin.describe_cluster()
            broker = next((b for b in description.brokers if b.node_id == broker_id), None)
            if broker is None:
                raise KafkaExplorerError(
                    f"Broker {broker_id} not found",
                    suggestion="Refresh the broker list.",
                    cluster=cluster,
                )
            configuration = await admin.describe_configs(str(broker_id), resource_type="broker")
        return BrokerDetails(**broker.model_dump(), configuration=configuration)

    async def get_cluster_statistics(self, cluster: str) -> ClusterStatistics:
        admin = await self._registry.get_admin(cluster)
        with self._kafka_errors(cluster, cluster):
            description = await admin.describe_cluster()
            topics = await admin.list_topics()

        total_partitions = 0
        for topic in topics:
            try:
                metadata = await admin.fetch_topic_metadata([topic])
            except Exception as exc:
                logger.debug("Skipping topic %s in statistics: %s", topic, exc)
                continue
            total_partitions += sum(len(m.partitions) for m in metadata)

        return ClusterStatistics(
            cluster_id=description.cluster_id,
            controller=description.controller,
            broker_count=len(description.brokers),
            topic_count=len(topics),
            total_partitions=total_partitions,
        )

    # --- Shutdown ---

    async def dispose(self) -> None:
        """Stop the sweep and tear down every cluster."""
        await self._registry.dispose_all()
        logger.info("Cluster manager disposed")

    # --- Private ---

    def _store_secrets(self, connection: ClusterConnection) -> None:
        if connection.sasl_password:
            store_password(self._secrets, connection.name, "sasl", connection.sasl_password)
            logger.debug("Stored SASL password for %s", connection.name)
        if connection.ssl_password:
            store_password(self._secrets, connection.name, "ssl", connection.ssl_password)
            logger.debug("Stored SSL password for %s", connection.name)
        if connection.sasl_password or connection.ssl_password:
            self._audit.success(AuditOperation.CREDENTIALS_STORED, connection.name)

    def _persist(self, connection: ClusterConnection) -> None:
        self._store.save(upsert_record(self._store.load(), sanitize_for_storage(connection)))

    @contextmanager
    def _audited(
        self,
        operation: AuditOperation,
        cluster: str,
        resource: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Iterator[None]:
        started = time.monotonic()
        try:
            yield
        except Exception as exc:
            self._audit.failure(
                operation, cluster, exc, resource, metadata,
                duration_ms=(time.monotonic() - started) * 1000,
            )
            raise
        self._audit.success(
            operation, cluster, resource, metadata,
            duration_ms=(time.monotonic() - started) * 1000,
        )

    @contextmanager
    def _kafka_errors(self, cluster: str, resource: str) -> Iterator[None]:
        """Reclassify wire errors; the wire error is always chained."""
        try:
            yield
        except KafkaExplorerError:
            raise
        except Exception as exc:
            translated = translate_kafka_error(exc, resource, cluster)
            if translated is not None:
                raise translated from exc
            if _looks_disconnected(exc):
                self._registry.mark_unhealthy(cluster)
            raise
