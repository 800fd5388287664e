"""Core data models for kafka-explorer.

Defines the schemas for:
- Cluster connections (what the user configured)
- AWS credentials and MSK IAM tokens
- Wire-level Kafka data (topics, partitions, groups, offsets, messages)
- Facade results (topic details, lag, load reports)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# --- Enums ---


class ClusterType(enum.StrEnum):
    KAFKA = "kafka"
    MSK = "msk"


class SecurityProtocol(enum.StrEnum):
    PLAINTEXT = "PLAINTEXT"
    SSL = "SSL"
    SASL_PLAINTEXT = "SASL_PLAINTEXT"
    SASL_SSL = "SASL_SSL"

    @property
    def uses_ssl(self) -> bool:
        return "SSL" in self.value

    @property
    def uses_sasl(self) -> bool:
        return self.value.startswith("SASL")


class SaslMechanism(enum.StrEnum):
    PLAIN = "PLAIN"
    SCRAM_SHA_256 = "SCRAM-SHA-256"
    SCRAM_SHA_512 = "SCRAM-SHA-512"
    AWS_MSK_IAM = "AWS_MSK_IAM"


class OffsetResetMode(enum.StrEnum):
    BEGINNING = "beginning"
    END = "end"
    SPECIFIC = "specific offset"


class LoadFailureReason(enum.StrEnum):
    INVALID_CONFIG = "invalid_config"
    CREDENTIALS_EXPIRED = "credentials_expired"
    BROKER_FETCH_FAILED = "broker_fetch_failed"
    NETWORK = "network"
    UNKNOWN = "unknown"


# --- Cluster connection ---


class ClusterConnection(BaseModel):
    """One configured cluster.

    Records are replaced as a whole; there are no partial updates.
    """

    name: str = Field(..., min_length=1)
    type: ClusterType = ClusterType.KAFKA
    brokers: list[str] = Field(default_factory=list)
    security_protocol: SecurityProtocol = SecurityProtocol.PLAINTEXT

    # SASL
    sasl_mechanism: SaslMechanism | None = None
    sasl_username: str | None = None
    sasl_password: str | None = Field(default=None, repr=False)

    # SSL (file paths, never contents)
    ssl_ca_file: str | None = None
    ssl_cert_file: str | None = None
    ssl_key_file: str | None = None
    ssl_password: str | None = Field(default=None, repr=False)
    reject_unauthorized: bool = True

    # AWS MSK
    region: str | None = None
    cluster_arn: str | None = None
    aws_profile: str | None = None
    assume_role_arn: str | None = None

    def problems(self) -> list[str]:
        """Return the type-specific invariant violations (empty when valid)."""
        found: list[str] = []
        if self.type == ClusterType.MSK:
            if not self.region:
                found.append("MSK clusters require a region")
            if not self.cluster_arn:
                found.append("MSK clusters require a cluster ARN")
        elif not [b for b in self.brokers if b.strip()]:
            found.append("Kafka clusters require at least one broker address")
        if self.sasl_mechanism == SaslMechanism.AWS_MSK_IAM and not self.region:
            found.append("AWS MSK IAM authentication requires a region")
        return found

    @property
    def has_ssl_files(self) -> bool:
        return bool(self.ssl_ca_file or self.ssl_cert_file or self.ssl_key_file)


def sanitize_for_storage(connection: ClusterConnection) -> dict[str, Any]:
    """Strip secrets from a connection before it is persisted.

    Keeps what is needed to reconnect: MSK coordinates and role, the SASL
    mechanism (and username for non-MSK clusters) and SSL file paths.
    """
    sanitized: dict[str, Any] = {
        "name": connection.name,
        "type": connection.type.value,
        "brokers": list(connection.brokers),
        "security_protocol": connection.security_protocol.value,
    }

    if connection.type == ClusterType.MSK:
        sanitized["region"] = connection.region
        sanitized["cluster_arn"] = connection.cluster_arn
        sanitized["aws_profile"] = connection.aws_profile
        sanitized["assume_role_arn"] = connection.assume_role_arn
        sanitized["sasl_mechanism"] = (
            connection.sasl_mechanism.value if connection.sasl_mechanism else None
        )
    elif connection.sasl_mechanism:
        sanitized["sasl_mechanism"] = connection.sasl_mechanism.value
        sanitized["sasl_username"] = connection.sasl_username

    if connection.has_ssl_files:
        sanitized["ssl_ca_file"] = connection.ssl_ca_file
        sanitized["ssl_cert_file"] = connection.ssl_cert_file
        sanitized["ssl_key_file"] = connection.ssl_key_file
        sanitized["reject_unauthorized"] = connection.reject_unauthorized

    return {k: v for k, v in sanitized.items() if v is not None}


# --- Credentials ---


class AwsCredentials(BaseModel):
    """A resolved AWS key pair with optional session token."""

    access_key_id: str
    secret_access_key: str = Field(repr=False)
    session_token: str | None = Field(default=None, repr=False)


class StoredCredentials(BaseModel):
    """Secret-store payload for one cluster."""

    sasl_password: str | None = None
    ssl_password: str | None = None

    def is_empty(self) -> bool:
        return self.sasl_password is None and self.ssl_password is None


@dataclass(frozen=True)
class CachedToken:
    """An MSK IAM token and the monotonic time at which it stops being served."""

    token: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class AuthToken(BaseModel):
    """SASL/OAUTHBEARER credentials: the signed token is both fields."""

    username: str = Field(repr=False)
    password: str = Field(repr=False)


# --- Wire-level data ---


class TopicSpec(BaseModel):
    name: str
    num_partitions: int = Field(1, ge=1)
    replication_factor: int = Field(1, ge=1)
    configs: dict[str, str] = Field(default_factory=dict)


class PartitionMetadata(BaseModel):
    partition: int
    leader: int
    replicas: list[int] = Field(default_factory=list)
    isr: list[int] = Field(default_factory=list)


class TopicMetadata(BaseModel):
    name: str
    partitions: list[PartitionMetadata] = Field(default_factory=list)
    is_internal: bool = False


class PartitionOffsets(BaseModel):
    """Low and high watermark for one partition."""

    partition: int
    low: int
    high: int


class ConfigEntry(BaseModel):
    name: str
    value: str | None = None
    read_only: bool = False
    is_default: bool = False
    is_sensitive: bool = False


class GroupListing(BaseModel):
    group_id: str
    protocol_type: str = ""


class GroupMember(BaseModel):
    member_id: str
    client_id: str = ""
    client_host: str = ""


class GroupDescription(BaseModel):
    group_id: str
    state: str = "Unknown"
    protocol_type: str = ""
    protocol: str = ""
    members: list[GroupMember] = Field(default_factory=list)


class GroupOffset(BaseModel):
    """A committed offset of a consumer group."""

    topic: str
    partition: int
    offset: int
    metadata: str = ""


class BrokerInfo(BaseModel):
    node_id: int
    host: str
    port: int
    rack: str | None = None


class ClusterDescription(BaseModel):
    cluster_id: str | None = None
    controller: int | None = None
    brokers: list[BrokerInfo] = Field(default_factory=list)


class ProducerRecord(BaseModel):
    value: str
    key: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    partition: int | None = None


class ConsumedMessage(BaseModel):
    topic: str
    partition: int
    offset: int
    key: str | None = None
    value: str | None = None
    timestamp: int | None = None
    headers: dict[str, str] = Field(default_factory=dict)


# --- Facade results ---


class PartitionDetail(BaseModel):
    partition: int
    leader: int
    replicas: list[int] = Field(default_factory=list)
    isr: list[int] = Field(default_factory=list)
    low_watermark: int = 0
    high_watermark: int = 0
    message_count: int = 0


class TopicDetails(BaseModel):
    name: str
    partitions: int
    replication_factor: int
    partition_details: list[PartitionDetail] = Field(default_factory=list)
    configuration: list[ConfigEntry] = Field(default_factory=list)


class PartitionLag(BaseModel):
    group_id: str
    topic: str
    partition: int
    current_offset: int
    high_watermark: int
    lag: int = Field(ge=0)
    metadata: str = ""


class ConsumerGroupSummary(BaseModel):
    group_id: str
    state: str = "Unknown"
    protocol_type: str = ""


class ConsumerGroupDetails(BaseModel):
    group_id: str
    state: str
    protocol_type: str = ""
    protocol: str = ""
    members: list[GroupMember] = Field(default_factory=list)
    offsets: list[PartitionLag] = Field(default_factory=list)
    total_lag: int = 0


class BrokerDetails(BaseModel):
    node_id: int
    host: str
    port: int
    rack: str | None = None
    configuration: list[ConfigEntry] = Field(default_factory=list)


class ClusterStatistics(BaseModel):
    cluster_id: str | None = None
    controller: int | None = None
    broker_count: int = 0
    topic_count: int = 0
    total_partitions: int = 0


class LoadFailure(BaseModel):
    name: str
    reason: LoadFailureReason
    detail: str = ""


class LoadReport(BaseModel):
    """Outcome of loading persisted clusters at startup."""

    loaded: list[str] = Field(default_factory=list)
    failures: list[LoadFailure] = Field(default_factory=list)
    loaded_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        if not self.failures:
            return f"Loaded {len(self.loaded)} cluster(s)"
        lines = [f"Failed to reconnect {len(self.failures)} cluster(s):"]
        lines.extend(f"- {f.name}: {f.reason.value}" for f in self.failures)
        return "\n".join(lines)
