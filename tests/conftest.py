"""Shared fixtures: an in-memory Kafka behind the wire client protocols."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from kafka_explorer.audit.log import AuditLog
from kafka_explorer.config import ExplorerConfig
from kafka_explorer.credentials.memory_store import InMemorySecretStore
from kafka_explorer.kafka.settings import ClientSettings
from kafka_explorer.kafka.wire import MessageHandler
from kafka_explorer.manager import ClusterManager
from kafka_explorer.models import (
    BrokerInfo,
    ClusterDescription,
    ConfigEntry,
    ConsumedMessage,
    GroupDescription,
    GroupListing,
    GroupOffset,
    PartitionMetadata,
    PartitionOffsets,
    ProducerRecord,
    TopicMetadata,
    TopicSpec,
)
from kafka_explorer.store import MemoryClusterStore


class MockClock:
    """A controllable clock for testing time-dependent behavior."""

    def __init__(self, start: float = 1000.0) -> None:
        self._now = start

    def __call__(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds


@dataclass
class FakeCluster:
    """State of one fake cluster, shared by every handle created for it."""

    name: str
    # topic -> partition -> (low, high)
    topics: dict[str, dict[int, tuple[int, int]]] = field(default_factory=dict)
    configs: dict[str, dict[str, str]] = field(default_factory=dict)
    groups: dict[str, GroupDescription] = field(default_factory=dict)
    committed: dict[str, list[GroupOffset]] = field(default_factory=dict)
    brokers: list[BrokerInfo] = field(
        default_factory=lambda: [BrokerInfo(node_id=1, host="localhost", port=9092)],
    )
    messages: dict[str, list[ConsumedMessage]] = field(default_factory=dict)
    produced: list[tuple[str, ProducerRecord]] = field(default_factory=list)
    resets: list[tuple[str, str, dict[int, int]]] = field(default_factory=list)
    fail_connect: Exception | None = None
    # When set, admin connects block until the event fires.
    connect_gate: asyncio.Event | None = None
    fail_consume: Exception | None = None
    admin_connects: int = 0
    admin_disconnects: int = 0
    producer_connects: int = 0
    producer_disconnects: int = 0
    consumer_connects: int = 0
    consumer_disconnects: int = 0

    def add_topic(self, name: str, watermarks: list[tuple[int, int]]) -> None:
        self.topics[name] = dict(enumerate(watermarks))


class FakeAdmin:
    def __init__(self, cluster: FakeCluster) -> None:
        self.cluster = cluster

    async def connect(self) -> None:
        if self.cluster.connect_gate is not None:
            await self.cluster.connect_gate.wait()
        if self.cluster.fail_connect is not None:
            raise self.cluster.fail_connect
        self.cluster.admin_connects += 1

    async def disconnect(self) -> None:
        self.cluster.admin_disconnects += 1

    async def list_topics(self) -> list[str]:
        return sorted(self.cluster.topics)

    async def create_topics(self, topics: list[TopicSpec]) -> None:
        for spec in topics:
            if spec.name in self.cluster.topics:
                raise RuntimeError(f"TopicAlreadyExistsError: {spec.name}")
            self.cluster.add_topic(spec.name, [(0, 0)] * spec.num_partitions)
            self.cluster.configs[spec.name] = dict(spec.configs)

    async def delete_topics(self, names: list[str]) -> None:
        for name in names:
            if name not in self.cluster.topics:
                raise RuntimeError(f"UnknownTopicOrPartitionError: {name}")
            del self.cluster.topics[name]

    async def create_partitions(self, topic: str, total: int) -> None:
        partitions = self.cluster.topics.get(topic)
        if partitions is None:
            raise RuntimeError(f"UnknownTopicOrPartitionError: {topic}")
        if total <= len(partitions):
            raise RuntimeError(f"InvalidPartitionsError: {topic} already has {len(partitions)}")
        for p in range(len(partitions), total):
            partitions[p] = (0, 0)

    async def fetch_topic_metadata(self, topics: list[str] | None = None) -> list[TopicMetadata]:
        names = topics if topics is not None else sorted(self.cluster.topics)
        return [
            TopicMetadata(
                name=name,
                partitions=[
                    PartitionMetadata(partition=p, leader=1, replicas=[1], isr=[1])
                    for p in sorted(self.cluster.topics[name])
                ],
            )
            for name in names
            if name in self.cluster.topics
        ]

    async def describe_configs(self, name: str, resource_type: str = "topic") -> list[ConfigEntry]:
        if resource_type == "broker":
            return [ConfigEntry(name="log.retention.hours", value="168", is_default=True)]
        overrides = self.cluster.configs.get(name, {})
        entries = [ConfigEntry(name=k, value=v) for k, v in sorted(overrides.items())]
        if "cleanup.policy" not in overrides:
            entries.append(ConfigEntry(name="cleanup.policy", value="delete", is_default=True))
        return entries

    async def alter_configs(self, topic: str, configs: dict[str, str]) -> None:
        self.cluster.configs.setdefault(topic, {}).update(configs)

    async def fetch_topic_offsets(self, topic: str) -> list[PartitionOffsets]:
        if topic not in self.cluster.topics:
            raise RuntimeError(f"UnknownTopicOrPartitionError: {topic}")
        return [
            PartitionOffsets(partition=p, low=low, high=high)
            for p, (low, high) in sorted(self.cluster.topics[topic].items())
        ]

    async def list_groups(self) -> list[GroupListing]:
        return [GroupListing(group_id=g, protocol_type="consumer") for g in self.cluster.groups]

    async def describe_groups(self, group_ids: list[str]) -> list[GroupDescription]:
        return [self.cluster.groups[g] for g in group_ids if g in self.cluster.groups]

    async def fetch_offsets(self, group_id: str) -> list[GroupOffset]:
        return list(self.cluster.committed.get(group_id, []))

    async def reset_offsets(self, group_id: str, topic: str, offsets: dict[int, int]) -> None:
        self.cluster.resets.append((group_id, topic, dict(offsets)))

    async def delete_groups(self, group_ids: list[str]) -> None:
        for group_id in group_ids:
            group = self.cluster.groups.get(group_id)
            if group is None:
                raise RuntimeError(f"GroupIdNotFoundError: {group_id}")
            if group.members:
                raise RuntimeError(f"NonEmptyGroupError: {group_id}")
            del self.cluster.groups[group_id]

    async def describe_cluster(self) -> ClusterDescription:
        return ClusterDescription(cluster_id="fake-cluster", controller=1, brokers=self.cluster.brokers)


class FakeProducer:
    def __init__(self, cluster: FakeCluster) -> None:
        self.cluster = cluster

    async def connect(self) -> None:
        if self.cluster.fail_connect is not None:
            raise self.cluster.fail_connect
        self.cluster.producer_connects += 1

    async def disconnect(self) -> None:
        self.cluster.producer_disconnects += 1

    async def send(self, topic: str, records: list[ProducerRecord]) -> None:
        for record in records:
            self.cluster.produced.append((topic, record))


class FakeConsumer:
    """Delivers the cluster's queued messages, then blocks until disconnected."""

    def __init__(self, cluster: FakeCluster, group_id: str) -> None:
        self.cluster = cluster
        self.group_id = group_id
        self.topics: list[str] = []
        self.from_beginning = False
        self._stopped = asyncio.Event()

    async def connect(self) -> None:
        if self.cluster.fail_connect is not None:
            raise self.cluster.fail_connect
        self.cluster.consumer_connects += 1

    async def disconnect(self) -> None:
        self.cluster.consumer_disconnects += 1
        self._stopped.set()

    async def subscribe(self, topics: list[str], from_beginning: bool = False) -> None:
        self.topics = list(topics)
        self.from_beginning = from_beginning

    async def run(self, handler: MessageHandler) -> None:
        for topic in self.topics:
            for message in self.cluster.messages.get(topic, []):
                await handler(message)
        if self.cluster.fail_consume is not None:
            raise self.cluster.fail_consume
        await self._stopped.wait()

    async def seek(self, topic: str, partition: int, offset: int) -> None:
        return None


class FakeWire:
    def __init__(self, cluster: FakeCluster) -> None:
        self.cluster = cluster

    def admin(self) -> FakeAdmin:
        return FakeAdmin(self.cluster)

    def producer(self) -> FakeProducer:
        return FakeProducer(self.cluster)

    def consumer(self, group_id: str) -> FakeConsumer:
        return FakeConsumer(self.cluster, group_id)


class FakeKafka:
    """Wire factory over any number of fake clusters, keyed by cluster name."""

    def __init__(self) -> None:
        self.clusters: dict[str, FakeCluster] = {}
        self.settings: dict[str, ClientSettings] = {}

    def cluster(self, name: str) -> FakeCluster:
        if name not in self.clusters:
            self.clusters[name] = FakeCluster(name=name)
        return self.clusters[name]

    def __call__(self, settings: ClientSettings) -> FakeWire:
        self.settings[settings.cluster_name] = settings
        return FakeWire(self.cluster(settings.cluster_name))


class MemoryKeyring(KeyringBackend):
    """Keyring backend kept in a dict, installed with ``keyring.set_keyring``."""

    priority = 1

    def __init__(self) -> None:
        super().__init__()
        self.entries: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self.entries.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.entries[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        if self.entries.pop((service, username), None) is None:
            raise PasswordDeleteError(username)


def make_message(topic: str, offset: int, value: str, partition: int = 0) -> ConsumedMessage:
    return ConsumedMessage(topic=topic, partition=partition, offset=offset, value=value)


@pytest.fixture()
def clock() -> MockClock:
    return MockClock()


@pytest.fixture()
def fake_kafka() -> FakeKafka:
    return FakeKafka()


@pytest.fixture()
def cluster_store() -> MemoryClusterStore:
    return MemoryClusterStore()


@pytest.fixture()
def audit_log(tmp_path: Path) -> AuditLog:
    return AuditLog(log_path=tmp_path / "audit.jsonl")


@pytest.fixture()
def manager(
    fake_kafka: FakeKafka,
    cluster_store: MemoryClusterStore,
    audit_log: AuditLog,
) -> ClusterManager:
    return ClusterManager(
        store=cluster_store,
        secrets=InMemorySecretStore(env_prefix="KAFKA_EXPLORER_TEST_SECRET_"),
        wire_factory=fake_kafka,
        audit=audit_log,
        config=ExplorerConfig(consume_timeout_seconds=2.0),
    )


@pytest.fixture()
def memory_keyring() -> Iterator[MemoryKeyring]:
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)
