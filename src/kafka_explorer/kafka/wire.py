"""Kafka wire client protocols.

The broker protocol itself is delegated to a client library. These
protocols are the surface the rest of kafka-explorer relies on: a wire
client per cluster hands out admin, producer and consumer handles, and
each handle connects and disconnects independently.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from kafka_explorer.models import (
    ClusterDescription,
    ConfigEntry,
    ConsumedMessage,
    GroupDescription,
    GroupListing,
    GroupOffset,
    PartitionOffsets,
    ProducerRecord,
    TopicMetadata,
    TopicSpec,
)

MessageHandler = Callable[[ConsumedMessage], Awaitable[None]]


@runtime_checkable
class KafkaAdmin(Protocol):
    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def list_topics(self) -> list[str]: ...

    async def create_topics(self, topics: list[TopicSpec]) -> None: ...

    async def delete_topics(self, names: list[str]) -> None: ...

    async def create_partitions(self, topic: str, total: int) -> None:
        """Grow *topic* to *total* partitions."""
        ...

    async def fetch_topic_metadata(self, topics: list[str] | None = None) -> list[TopicMetadata]: ...

    async def describe_configs(self, name: str, resource_type: str = "topic") -> list[ConfigEntry]:
        """Configuration of a topic, or of a broker when *resource_type* is ``"broker"``."""
        ...

    async def alter_configs(self, topic: str, configs: dict[str, str]) -> None: ...

    async def fetch_topic_offsets(self, topic: str) -> list[PartitionOffsets]: ...

    async def list_groups(self) -> list[GroupListing]: ...

    async def describe_groups(self, group_ids: list[str]) -> list[GroupDescription]: ...

    async def fetch_offsets(self, group_id: str) -> list[GroupOffset]: ...

    async def reset_offsets(self, group_id: str, topic: str, offsets: dict[int, int]) -> None:
        """Commit *offsets* (partition -> offset) for *group_id* on *topic*."""
        ...

    async def delete_groups(self, group_ids: list[str]) -> None: ...

    async def describe_cluster(self) -> ClusterDescription: ...


@runtime_checkable
class KafkaProducer(Protocol):
    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def send(self, topic: str, records: list[ProducerRecord]) -> None: ...


@runtime_checkable
class KafkaConsumer(Protocol):
    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def subscribe(self, topics: list[str], from_beginning: bool = False) -> None: ...

    async def run(self, handler: MessageHandler) -> None:
        """Deliver messages to *handler* until the consumer is disconnected."""
        ...

    async def seek(self, topic: str, partition: int, offset: int) -> None: ...


@runtime_checkable
class KafkaWire(Protocol):
    """One wire client per cluster; handles are created unconnected."""

    def admin(self) -> KafkaAdmin: ...

    def producer(self) -> KafkaProducer: ...

    def consumer(self, group_id: str) -> KafkaConsumer: ...
