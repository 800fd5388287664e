"""Kafka connection layer: wire protocols, pooling and the connection registry.

Wire clients: AioKafkaWire (aiokafka).
"""

from kafka_explorer.kafka.pool import ConnectionPool, PooledConnection
from kafka_explorer.kafka.registry import ConnectionRegistry, ConsumerLease
from kafka_explorer.kafka.settings import ClientSettings, build_client_settings

__all__ = [
    "ClientSettings",
    "ConnectionPool",
    "ConnectionRegistry",
    "ConsumerLease",
    "PooledConnection",
    "build_client_settings",
]
