"""kafka-explorer: connection and credential management for Kafka and AWS MSK clusters."""

__version__ = "0.4.0"

from kafka_explorer.audit.log import AuditEntry, AuditLog, AuditOperation, AuditResult
from kafka_explorer.config import ExplorerConfig, LagAlertSettings, PoolSettings, find_config, load_config
from kafka_explorer.credentials.aws import AwsCredentialResolver
from kafka_explorer.credentials.keyring_store import KeyringSecretStore
from kafka_explorer.credentials.memory_store import InMemorySecretStore
from kafka_explorer.credentials.secrets import SecretStore, SecretStoreError
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
    describe_error,
)
from kafka_explorer.lag import LagAlertSummary, LagMonitor
from kafka_explorer.manager import ClusterManager
from kafka_explorer.models import (
    AwsCredentials,
    BrokerInfo,
    ClusterConnection,
    ClusterType,
    ConsumedMessage,
    ConsumerGroupDetails,
    LoadReport,
    OffsetResetMode,
    SaslMechanism,
    SecurityProtocol,
    TopicDetails,
)
from kafka_explorer.msk.bootstrap import MskBootstrapResolver
from kafka_explorer.msk.iam_token import MskIamTokenProvider
from kafka_explorer.store import ClusterStore, MemoryClusterStore, YamlClusterStore

__all__ = [
    "AuditEntry",
    "AuditLog",
    "AuditOperation",
    "AuditResult",
    "AwsCredentialResolver",
    "AwsCredentials",
    "BootstrapFetchFailed",
    "BrokerInfo",
    "ClusterConnection",
    "ClusterManager",
    "ClusterStore",
    "ClusterType",
    "ClusterUnreachable",
    "ConsumedMessage",
    "ConsumerGroupDetails",
    "CredentialsExpired",
    "CredentialsNotFound",
    "describe_error",
    "ExplorerConfig",
    "find_config",
    "InMemorySecretStore",
    "InsufficientPermissions",
    "InvalidClusterConfig",
    "InvalidPartitionCount",
    "KafkaExplorerError",
    "KeyringSecretStore",
    "LagAlertSettings",
    "LagAlertSummary",
    "LagMonitor",
    "load_config",
    "LoadReport",
    "MemoryClusterStore",
    "MskBootstrapResolver",
    "MskIamTokenProvider",
    "NoBrokersAvailable",
    "OffsetResetMode",
    "PoolSettings",
    "ProfileNotFound",
    "RoleAssumptionFailed",
    "SaslMechanism",
    "SecretStore",
    "SecretStoreError",
    "SecurityProtocol",
    "TokenGenerationFailed",
    "TopicDetails",
    "TopicOrGroupNotFound",
    "UnknownCluster",
    "YamlClusterStore",
    "__version__",
]
