"""Error taxonomy for kafka-explorer.

Every error raised by the connection and credential layers derives from
``KafkaExplorerError`` and carries:

- ``context``: the cluster, profile, role ARN or resource involved
- ``suggestion``: the primary remediation to offer the user (may be empty)

Errors propagate unchanged from the credential/bootstrap/token layers up to
the facade. ``describe_error()`` reclassifies any exception for display only;
it never replaces or hides the underlying cause.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any


class KafkaExplorerError(Exception):
    """Base class for all kafka-explorer errors."""

    suggestion: str = ""

    def __init__(
        self,
        message: str,
        *,
        suggestion: str | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message)
        if suggestion is not None:
            self.suggestion = suggestion
        self.context = {k: v for k, v in context.items() if v is not None}


# --- Credential errors ---


class CredentialsNotFound(KafkaExplorerError):
    """No credential source produced a complete access key pair."""

    suggestion = "Run 'aws configure' or set AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY."


class CredentialsExpired(KafkaExplorerError):
    """The resolved AWS credentials (or SSO session) have expired."""

    def __init__(self, profile: str | None = None, detail: str = "") -> None:
        who = f' for profile "{profile}"' if profile else ""
        message = f"AWS credentials expired{who}."
        if detail:
            message = f"{message} {detail}"
        super().__init__(
            message,
            suggestion=f"Refresh your credentials: aws sso login --profile {profile or 'default'}",
            profile=profile,
        )
        self.profile = profile


class RoleAssumptionFailed(KafkaExplorerError):
    """STS AssumeRole failed for the configured role."""

    def __init__(
        self,
        role_arn: str | None,
        profile: str | None = None,
        cause: str = "",
    ) -> None:
        super().__init__(
            f'Failed to assume role "{role_arn}" using profile '
            f'"{profile or "default"}": {cause}',
            suggestion=(
                "Check that the profile has sts:AssumeRole permission and that "
                "the role's trust policy allows your account."
            ),
            role_arn=role_arn,
            profile=profile,
        )
        self.role_arn = role_arn
        self.profile = profile


class ProfileNotFound(KafkaExplorerError):
    """The requested profile has no section in the credentials file."""

    def __init__(
        self,
        profile: str,
        path: str = "",
        available: list[str] | None = None,
    ) -> None:
        message = f'AWS profile "{profile}" not found'
        if path:
            message += f" in {path}"
        if available is not None:
            message += f". Available profiles: {', '.join(available) or '(none)'}"
        super().__init__(
            message,
            suggestion="List configured profiles with 'aws configure list-profiles'.",
            profile=profile,
            path=path or None,
        )
        self.profile = profile


class InsufficientPermissions(KafkaExplorerError):
    """The caller lacks an IAM permission required by the operation."""

    def __init__(self, permission: str, resource: str | None = None) -> None:
        target = f" on {resource}" if resource else ""
        super().__init__(
            f"Access denied: missing {permission} permission{target}.",
            suggestion=f"Grant {permission} to the IAM identity in use.",
            permission=permission,
            resource=resource,
        )
        self.permission = permission


class TokenGenerationFailed(KafkaExplorerError):
    """The MSK IAM SASL signer could not produce a token."""

    def __init__(
        self,
        cause: str,
        profile: str | None = None,
        role_arn: str | None = None,
    ) -> None:
        super().__init__(
            f"Failed to generate MSK IAM auth token: {cause}. "
            f"Profile: {profile or 'default'}, Role: {role_arn or 'none'}.",
            suggestion="Verify your AWS credentials and the cluster region.",
            profile=profile,
            role_arn=role_arn,
        )


# --- Bootstrap / connection errors ---


class NoBrokersAvailable(KafkaExplorerError):
    """No broker endpoint matches the configured authentication method."""

    def __init__(self, cluster_arn: str | None = None, auth_method: str | None = None) -> None:
        method = auth_method or "the configured authentication"
        super().__init__(
            f"No bootstrap brokers available for {method} on cluster {cluster_arn}.",
            suggestion=(
                "Enable the matching client authentication on the MSK cluster "
                "or choose a different authentication method."
            ),
            cluster_arn=cluster_arn,
            auth_method=auth_method,
        )


class BootstrapFetchFailed(KafkaExplorerError):
    """The MSK control plane call failed for a non-credential reason."""

    def __init__(self, cluster_arn: str, cause: str = "") -> None:
        super().__init__(
            f"Failed to get MSK bootstrap brokers for {cluster_arn}: {cause}",
            suggestion="Verify the cluster ARN, region and AWS credentials.",
            cluster_arn=cluster_arn,
        )


class ClusterUnreachable(KafkaExplorerError):
    """Admin/producer connection to the brokers failed."""

    def __init__(self, cluster_name: str, cause: str = "") -> None:
        super().__init__(
            f"Failed to connect to Kafka cluster {cluster_name}: {cause or 'unknown error'}.",
            suggestion=(
                "Check that the brokers are accessible and your credentials are valid, "
                "then reconnect the cluster."
            ),
            cluster=cluster_name,
        )
        self.cluster_name = cluster_name


class UnknownCluster(KafkaExplorerError):
    """The cluster name is not registered."""

    def __init__(self, cluster_name: str) -> None:
        super().__init__(
            f"Cluster {cluster_name} not found",
            suggestion="Add the cluster first or check the name.",
            cluster=cluster_name,
        )
        self.cluster_name = cluster_name


class InvalidClusterConfig(KafkaExplorerError):
    """A cluster connection record violates its type-specific invariants."""

    def __init__(self, name: str | None, problems: list[str]) -> None:
        super().__init__(
            f"Invalid configuration for cluster \"{name or 'Unknown'}\": "
            + "; ".join(problems),
            suggestion="Edit the cluster settings and supply the missing fields.",
            cluster=name,
        )
        self.problems = problems


# --- Kafka resource errors ---


class TopicOrGroupNotFound(KafkaExplorerError):
    def __init__(self, resource: str, cluster_name: str | None = None) -> None:
        super().__init__(
            f"Topic or consumer group not found: {resource}",
            suggestion="Refresh the cluster view; the resource may have been deleted.",
            resource=resource,
            cluster=cluster_name,
        )


class InvalidPartitionCount(KafkaExplorerError):
    def __init__(self, topic: str, total: int, reason: str) -> None:
        super().__init__(
            f"Invalid partition count {total} for topic {topic}: {reason}.",
            suggestion="Choose a larger partition count.",
            resource=topic,
        )
        self.total = total


class CoordinatorUnavailable(KafkaExplorerError):
    def __init__(self, group_id: str, cluster_name: str | None = None) -> None:
        super().__init__(
            f"Group coordinator unavailable for consumer group {group_id}.",
            suggestion="Retry in a few seconds; the coordinator may be moving.",
            resource=group_id,
            cluster=cluster_name,
        )


class GroupHasActiveMembers(KafkaExplorerError):
    def __init__(self, group_id: str, cluster_name: str | None = None) -> None:
        super().__init__(
            f"Consumer group {group_id} still has active members.",
            suggestion="Stop all consumers in the group before changing it.",
            resource=group_id,
            cluster=cluster_name,
        )


# --- Pattern helpers shared by the classifiers ---


def _normalize(text: str) -> str:
    return text.lower().replace("_", "").replace(" ", "")


def error_text(exc: BaseException) -> str:
    """Class name plus message, for pattern matching on opaque SDK errors."""
    return f"{type(exc).__name__}: {exc}"


def looks_expired(text: str) -> bool:
    lowered = text.lower()
    return "expired" in lowered or "expiredtoken" in _normalize(text)


def looks_access_denied(text: str) -> bool:
    return "accessdenied" in _normalize(text)


def translate_kafka_error(
    exc: BaseException,
    resource: str,
    cluster_name: str | None = None,
) -> KafkaExplorerError | None:
    """Map an opaque wire-client error to the taxonomy, or return None."""
    if isinstance(exc, KafkaExplorerError):
        return None
    text = _normalize(error_text(exc))
    if "unknowntopic" in text or "groupidnotfound" in text:
        return TopicOrGroupNotFound(resource, cluster_name)
    if "notcoordinator" in text or "coordinatornotavailable" in text:
        return CoordinatorUnavailable(resource, cluster_name)
    if "nonemptygroup" in text:
        return GroupHasActiveMembers(resource, cluster_name)
    return None


# --- Display classification ---


class ErrorCategory(enum.StrEnum):
    CREDENTIALS = "credentials"
    NETWORK = "network"
    KAFKA = "kafka"
    OTHER = "other"


@dataclass(frozen=True)
class ErrorReport:
    """User-facing rendering of an error."""

    category: ErrorCategory
    message: str
    suggestion: str = ""


_CREDENTIAL_MARKERS = (
    "credential", "expired", "expiredtoken", "accessdenied",
    "unauthorized", "authentication", "unauthenticated",
)
_NETWORK_MARKERS = ("econnrefused", "enotfound", "timeout", "timedout", "network", "connection")
_KAFKA_MARKERS = ("broker", "topic", "partition", "consumergroup", "kafka")

_CREDENTIAL_TYPES = (
    CredentialsNotFound, CredentialsExpired, RoleAssumptionFailed,
    ProfileNotFound, InsufficientPermissions, TokenGenerationFailed,
)


def _simplify_credential(text: str) -> str | None:
    if looks_expired(text):
        return "AWS credentials have expired. Please refresh your credentials and try again."
    if looks_access_denied(text):
        return "Access denied. Check that your AWS profile has the necessary permissions."
    if "no credentials" in text.lower():
        return "No AWS credentials found. Please configure your AWS credentials."
    return None


def _simplify_network(text: str) -> str | None:
    lowered = text.lower()
    if "econnrefused" in lowered or "connection refused" in lowered:
        return "Connection refused. Check that the broker is running and accessible."
    if "enotfound" in lowered or "name or service not known" in lowered:
        return "Host not found. Check the broker address."
    if "timeout" in lowered or "timed out" in lowered:
        return "Operation timed out. Check network connectivity and broker availability."
    return None


def _simplify_kafka(text: str) -> str | None:
    normalized = _normalize(text)
    if "topicalreadyexists" in normalized:
        return "Topic already exists."
    if "unknowntopicorpartition" in normalized:
        return "Topic or partition not found."
    if "notcoordinator" in normalized:
        return "Not the coordinator for this consumer group."
    return None


def describe_error(exc: BaseException, context: str = "") -> ErrorReport:
    """Classify an error for display.

    Taxonomy errors keep their own message and suggestion; anything else is
    matched on its text. The prefix names the operation in *context*.
    """
    text = str(exc) or type(exc).__name__
    where = f" in {context}" if context else ""
    normalized = _normalize(error_text(exc))
    suggestion = getattr(exc, "suggestion", "") if isinstance(exc, KafkaExplorerError) else ""

    if isinstance(exc, _CREDENTIAL_TYPES) or any(m in normalized for m in _CREDENTIAL_MARKERS):
        simplified = text if isinstance(exc, KafkaExplorerError) else _simplify_credential(text) or text
        return ErrorReport(
            ErrorCategory.CREDENTIALS,
            f"AWS credentials error{where}: {simplified}",
            suggestion or "Review your AWS credentials.",
        )
    if isinstance(exc, (ClusterUnreachable, TimeoutError, ConnectionError)) or any(
        m in normalized for m in _NETWORK_MARKERS
    ):
        simplified = text if isinstance(exc, KafkaExplorerError) else _simplify_network(text) or text
        return ErrorReport(
            ErrorCategory.NETWORK,
            f"Network error{where}: {simplified}",
            suggestion or "Retry once the cluster is reachable.",
        )
    if isinstance(exc, KafkaExplorerError) or any(m in normalized for m in _KAFKA_MARKERS):
        simplified = text if isinstance(exc, KafkaExplorerError) else _simplify_kafka(text) or text
        return ErrorReport(ErrorCategory.KAFKA, f"Kafka error{where}: {simplified}", suggestion)
    return ErrorReport(ErrorCategory.OTHER, f"Error{where}: {text}")
