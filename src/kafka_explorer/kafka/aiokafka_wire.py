"""aiokafka-backed implementation of the wire client protocols.

Each handle builds its aiokafka client lazily in ``connect()``, since aiokafka
clients bind to the running event loop. Responses are converted into the
kafka-explorer wire models so nothing above this module sees aiokafka types.
"""

from __future__ import annotations

import logging
from typing import Any

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, ConsumerRebalanceListener, TopicPartition
from aiokafka.abc import AbstractTokenProvider
from aiokafka.admin import AIOKafkaAdminClient, NewPartitions, NewTopic
from aiokafka.admin.config_resource import ConfigResource, ConfigResourceType
from aiokafka.errors import for_code
from aiokafka.protocol.admin import DeleteGroupsRequest

from kafka_explorer.kafka.settings import ClientSettings
from kafka_explorer.kafka.wire import MessageHandler
from kafka_explorer.models import (
    BrokerInfo,
    ClusterDescription,
    ConfigEntry,
    ConsumedMessage,
    GroupDescription,
    GroupListing,
    GroupMember,
    GroupOffset,
    PartitionMetadata,
    PartitionOffsets,
    ProducerRecord,
    TopicMetadata,
    TopicSpec,
)
from kafka_explorer.msk.iam_token import MskIamTokenProvider

logger = logging.getLogger(__name__)

# DescribeConfigs v1+ reports a source instead of is_default.
_DEFAULT_CONFIG_SOURCES = {4, 5}


class OAuthBearerTokenProvider(AbstractTokenProvider):
    """Hands MSK IAM tokens to aiokafka's SASL/OAUTHBEARER authenticator."""

    def __init__(self, provider: MskIamTokenProvider) -> None:
        self._provider = provider

    async def token(self) -> str:
        auth = await self._provider.generate_auth_token()
        return auth.password


def client_kwargs(settings: ClientSettings) -> dict[str, Any]:
    """Keyword arguments shared by the aiokafka admin, producer and consumer."""
    kwargs: dict[str, Any] = {
        "bootstrap_servers": ",".join(settings.brokers),
        "client_id": settings.client_id,
        "request_timeout_ms": settings.request_timeout_ms,
        "retry_backoff_ms": settings.retry_backoff_ms,
        "security_protocol": settings.security_protocol,
    }
    if settings.ssl_context is not None:
        kwargs["ssl_context"] = settings.ssl_context
    if settings.sasl_mechanism:
        kwargs["sasl_mechanism"] = settings.sasl_mechanism
    if settings.token_provider is not None:
        kwargs["sasl_oauth_token_provider"] = OAuthBearerTokenProvider(settings.token_provider)
    elif settings.sasl_mechanism:
        kwargs["sasl_plain_username"] = settings.sasl_username
        kwargs["sasl_plain_password"] = settings.sasl_password
    return kwargs


def _raise_for_code(code: int, resource: str, message: str | None = None) -> None:
    if code:
        error_cls = for_code(code)
        raise error_cls(f"{resource}: {message or error_cls.__name__}")


def _decode(data: bytes | None) -> str | None:
    if data is None:
        return None
    return data.decode("utf-8", errors="replace")


def _as_list(response: Any) -> list[Any]:
    return response if isinstance(response, list) else [response]


class AioKafkaAdmin:
    def __init__(self, settings: ClientSettings) -> None:
        self._settings = settings
        self._client: AIOKafkaAdminClient | None = None

    @property
    def client(self) -> AIOKafkaAdminClient:
        if self._client is None:
            raise RuntimeError(f"Admin for {self._settings.cluster_name} is not connected")
        return self._client

    async def connect(self) -> None:
        self._client = AIOKafkaAdminClient(**client_kwargs(self._settings))
        await self._client.start()

    async def disconnect(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.close()

    # --- Topics ---

    async def list_topics(self) -> list[str]:
        return sorted(await self.client.list_topics())

    async def create_topics(self, topics: list[TopicSpec]) -> None:
        new_topics = [
            NewTopic(
                name=t.name,
                num_partitions=t.num_partitions,
                replication_factor=t.replication_factor,
                topic_configs=dict(t.configs),
            )
            for t in topics
        ]
        response = await self.client.create_topics(new_topics)
        for item in response.to_object().get("topic_errors", []):
            _raise_for_code(item["error_code"], item["topic"], item.get("error_message"))

    async def delete_topics(self, names: list[str]) -> None:
        response = await self.client.delete_topics(names)
        for item in response.to_object().get("topic_error_codes", []):
            _raise_for_code(item["error_code"], item["topic"])

    async def create_partitions(self, topic: str, total: int) -> None:
        await self.client.create_partitions({topic: NewPartitions(total_count=total)})

    async def fetch_topic_metadata(self, topics: list[str] | None = None) -> list[TopicMetadata]:
        described = await self.client.describe_topics(topics)
        result: list[TopicMetadata] = []
        for topic in described:
            _raise_for_code(topic.get("error_code", 0), topic["topic"])
            result.append(TopicMetadata(
                name=topic["topic"],
                is_internal=bool(topic.get("is_internal", False)),
                partitions=sorted(
                    (
                        PartitionMetadata(
                            partition=p["partition"],
                            leader=p["leader"],
                            replicas=list(p.get("replicas", [])),
                            isr=list(p.get("isr", [])),
                        )
                        for p in topic.get("partitions", [])
                    ),
                    key=lambda p: p.partition,
                ),
            ))
        return result

    async def describe_configs(self, name: str, resource_type: str = "topic") -> list[ConfigEntry]:
        kind = ConfigResourceType.BROKER if resource_type == "broker" else ConfigResourceType.TOPIC
        responses = await self.client.describe_configs([ConfigResource(kind, name)])
        entries: list[ConfigEntry] = []
        for response in _as_list(responses):
            for res in response.to_object().get("resources", []):
                _raise_for_code(res["error_code"], name, res.get("error_message"))
                for entry in res.get("config_entries", []):
                    config_name = entry.get("config_names", entry.get("config_name"))
                    if "is_default" in entry:
                        is_default = bool(entry["is_default"])
                    else:
                        is_default = entry.get("config_source") in _DEFAULT_CONFIG_SOURCES
                    entries.append(ConfigEntry(
                        name=config_name,
                        value=entry.get("config_value"),
                        read_only=bool(entry.get("read_only", False)),
                        is_default=is_default,
                        is_sensitive=bool(entry.get("is_sensitive", False)),
                    ))
        return sorted(entries, key=lambda e: e.name)

    async def alter_configs(self, topic: str, configs: dict[str, str]) -> None:
        resource = ConfigResource(ConfigResourceType.TOPIC, topic, configs=dict(configs))
        responses = await self.client.alter_configs([resource])
        for response in _as_list(responses):
            for res in response.to_object().get("resources", []):
                _raise_for_code(res["error_code"], topic, res.get("error_message"))

    async def fetch_topic_offsets(self, topic: str) -> list[PartitionOffsets]:
        [metadata] = await self.fetch_topic_metadata([topic])
        partitions = [TopicPartition(topic, p.partition) for p in metadata.partitions]
        if not partitions:
            return []

        consumer = AIOKafkaConsumer(enable_auto_commit=False, **client_kwargs(self._settings))
        await consumer.start()
        try:
            low = await consumer.beginning_offsets(partitions)
            high = await consumer.end_offsets(partitions)
        finally:
            await consumer.stop()

        return [
            PartitionOffsets(partition=tp.partition, low=low[tp], high=high[tp])
            for tp in partitions
        ]

    # --- Consumer groups ---

    async def list_groups(self) -> list[GroupListing]:
        groups = await self.client.list_consumer_groups()
        return [
            GroupListing(group_id=group_id, protocol_type=protocol_type or "")
            for group_id, protocol_type in groups
        ]

    async def describe_groups(self, group_ids: list[str]) -> list[GroupDescription]:
        responses = await self.client.describe_consumer_groups(group_ids)
        result: list[GroupDescription] = []
        for response in _as_list(responses):
            for group in response.to_object().get("groups", []):
                _raise_for_code(group["error_code"], group["group"])
                result.append(GroupDescription(
                    group_id=group["group"],
                    state=group.get("state") or "Unknown",
                    protocol_type=group.get("protocol_type") or "",
                    protocol=group.get("protocol") or "",
                    members=[
                        GroupMember(
                            member_id=m["member_id"],
                            client_id=m.get("client_id", ""),
                            client_host=m.get("client_host", ""),
                        )
                        for m in group.get("members", [])
                    ],
                ))
        return result

    async def fetch_offsets(self, group_id: str) -> list[GroupOffset]:
        offsets = await self.client.list_consumer_group_offsets(group_id)
        return sorted(
            (
                GroupOffset(
                    topic=tp.topic,
                    partition=tp.partition,
                    offset=meta.offset,
                    metadata=meta.metadata or "",
                )
                for tp, meta in offsets.items()
            ),
            key=lambda o: (o.topic, o.partition),
        )

    async def reset_offsets(self, group_id: str, topic: str, offsets: dict[int, int]) -> None:
        targets = {TopicPartition(topic, p): offset for p, offset in offsets.items()}
        consumer = AIOKafkaConsumer(
            group_id=group_id,
            enable_auto_commit=False,
            **client_kwargs(self._settings),
        )
        await consumer.start()
        try:
            consumer.assign(list(targets))
            await consumer.commit(targets)
        finally:
            await consumer.stop()

    async def delete_groups(self, group_ids: list[str]) -> None:
        # DeleteGroups must go to each group's coordinator.
        by_coordinator: dict[int, list[str]] = {}
        for group_id in group_ids:
            node_id = await self.client.find_coordinator(group_id)
            by_coordinator.setdefault(node_id, []).append(group_id)

        for node_id, names in by_coordinator.items():
            response = await self.client._send_request(DeleteGroupsRequest(names), node_id)
            for item in response.to_object().get("results", []):
                _raise_for_code(item["error_code"], item["group_id"])

    async def describe_cluster(self) -> ClusterDescription:
        info = await self.client.describe_cluster()
        return ClusterDescription(
            cluster_id=info.get("cluster_id"),
            controller=info.get("controller_id"),
            brokers=[
                BrokerInfo(
                    node_id=b["node_id"],
                    host=b["host"],
                    port=b["port"],
                    rack=b.get("rack"),
                )
                for b in info.get("brokers", [])
            ],
        )


class AioKafkaProducer:
    def __init__(self, settings: ClientSettings) -> None:
        self._settings = settings
        self._producer: AIOKafkaProducer | None = None

    async def connect(self) -> None:
        self._producer = AIOKafkaProducer(**client_kwargs(self._settings))
        await self._producer.start()

    async def disconnect(self) -> None:
        if self._producer is not None:
            producer, self._producer = self._producer, None
            await producer.stop()

    async def send(self, topic: str, records: list[ProducerRecord]) -> None:
        if self._producer is None:
            raise RuntimeError(f"Producer for {self._settings.cluster_name} is not connected")
        for record in records:
            await self._producer.send_and_wait(
                topic,
                value=record.value.encode("utf-8"),
                key=record.key.encode("utf-8") if record.key is not None else None,
                partition=record.partition,
                headers=[(k, v.encode("utf-8")) for k, v in record.headers.items()] or None,
            )


class _SeekToBeginning(ConsumerRebalanceListener):
    def __init__(self, consumer: AIOKafkaConsumer) -> None:
        self._consumer = consumer

    async def on_partitions_revoked(self, revoked: Any) -> None:
        pass

    async def on_partitions_assigned(self, assigned: Any) -> None:
        if assigned:
            await self._consumer.seek_to_beginning(*assigned)


class AioKafkaConsumerHandle:
    def __init__(self, settings: ClientSettings, group_id: str) -> None:
        self._settings = settings
        self._group_id = group_id
        self._consumer: AIOKafkaConsumer | None = None

    @property
    def consumer(self) -> AIOKafkaConsumer:
        if self._consumer is None:
            raise RuntimeError(f"Consumer {self._group_id} is not connected")
        return self._consumer

    async def connect(self) -> None:
        self._consumer = AIOKafkaConsumer(
            group_id=self._group_id,
            enable_auto_commit=True,
            auto_offset_reset="latest",
            **client_kwargs(self._settings),
        )
        await self._consumer.start()

    async def disconnect(self) -> None:
        if self._consumer is not None:
            consumer, self._consumer = self._consumer, None
            await consumer.stop()

    async def subscribe(self, topics: list[str], from_beginning: bool = False) -> None:
        consumer = self.consumer
        if from_beginning:
            consumer.subscribe(topics, listener=_SeekToBeginning(consumer))
        else:
            consumer.subscribe(topics)

    async def run(self, handler: MessageHandler) -> None:
        async for msg in self.consumer:
            await handler(ConsumedMessage(
                topic=msg.topic,
                partition=msg.partition,
                offset=msg.offset,
                key=_decode(msg.key),
                value=_decode(msg.value),
                timestamp=msg.timestamp,
                headers={k: _decode(v) or "" for k, v in (msg.headers or ())},
            ))

    async def seek(self, topic: str, partition: int, offset: int) -> None:
        self.consumer.seek(TopicPartition(topic, partition), offset)


class AioKafkaWire:
    """Wire client for one cluster; every handle shares its settings."""

    def __init__(self, settings: ClientSettings) -> None:
        self._settings = settings

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    def admin(self) -> AioKafkaAdmin:
        return AioKafkaAdmin(self._settings)

    def producer(self) -> AioKafkaProducer:
        return AioKafkaProducer(self._settings)

    def consumer(self, group_id: str) -> AioKafkaConsumerHandle:
        return AioKafkaConsumerHandle(self._settings, group_id)
