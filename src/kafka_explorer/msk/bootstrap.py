"""MSK bootstrap broker discovery.

Asks the MSK control plane for the cluster's bootstrap broker strings and
picks the one that matches the client's authentication method. Listing
brokers only needs account-level read access, so the base profile is used
here and role assumption is left to the token provider.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from kafka_explorer.credentials.aws import AwsCredentialResolver
from kafka_explorer.errors import (
    BootstrapFetchFailed,
    CredentialsExpired,
    InsufficientPermissions,
    KafkaExplorerError,
    NoBrokersAvailable,
    error_text,
    looks_access_denied,
    looks_expired,
)
from kafka_explorer.models import AwsCredentials, SaslMechanism

logger = logging.getLogger(__name__)

KafkaClientFactory = Callable[[AwsCredentials, str], Any]


def _default_kafka_client(credentials: AwsCredentials, region: str) -> Any:
    import boto3

    session = boto3.Session(
        aws_access_key_id=credentials.access_key_id,
        aws_secret_access_key=credentials.secret_access_key,
        aws_session_token=credentials.session_token,
        region_name=region,
    )
    return session.client("kafka")


def select_broker_string(response: dict[str, Any], auth_method: str | None) -> str | None:
    """Pick the bootstrap string for *auth_method* from a GetBootstrapBrokers response.

    IAM and SCRAM only accept their own listener; other methods prefer TLS
    and fall back to plaintext.
    """
    if auth_method == SaslMechanism.AWS_MSK_IAM:
        return response.get("BootstrapBrokerStringSaslIam")
    if auth_method and "SCRAM" in auth_method.upper():
        return response.get("BootstrapBrokerStringSaslScram")
    return response.get("BootstrapBrokerStringTls") or response.get("BootstrapBrokerString")


def split_brokers(broker_string: str) -> list[str]:
    return [b.strip() for b in broker_string.split(",") if b.strip()]


class MskBootstrapResolver:
    """Resolves the broker list of an MSK cluster."""

    def __init__(
        self,
        credential_resolver: AwsCredentialResolver | None = None,
        client_factory: KafkaClientFactory | None = None,
    ) -> None:
        self._credentials = credential_resolver or AwsCredentialResolver()
        self._client_factory = client_factory or _default_kafka_client

    async def get_bootstrap_brokers(
        self,
        region: str,
        cluster_arn: str,
        auth_method: str | None = None,
        aws_profile: str | None = None,
    ) -> list[str]:
        """Return ``host:port`` entries for the cluster.

        Raises:
            NoBrokersAvailable: The cluster exposes no listener for *auth_method*.
            CredentialsExpired: The base credentials have expired.
            InsufficientPermissions: ``kafka:GetBootstrapBrokers`` was denied.
            BootstrapFetchFailed: Any other control plane failure.
        """
        response = await asyncio.to_thread(
            self._fetch, region, cluster_arn, aws_profile,
        )

        broker_string = select_broker_string(response, auth_method)
        if not broker_string:
            raise NoBrokersAvailable(cluster_arn, auth_method)

        brokers = split_brokers(broker_string)
        if not brokers:
            raise NoBrokersAvailable(cluster_arn, auth_method)

        logger.info(
            "Resolved %d bootstrap brokers for %s (%s)",
            len(brokers), cluster_arn, auth_method or "default",
        )
        return brokers

    def _fetch(
        self,
        region: str,
        cluster_arn: str,
        aws_profile: str | None,
    ) -> dict[str, Any]:
        credentials = self._credentials.resolve_base(aws_profile)
        try:
            client = self._client_factory(credentials, region)
            return client.get_bootstrap_brokers(ClusterArn=cluster_arn)
        except KafkaExplorerError:
            raise
        except Exception as exc:
            text = error_text(exc)
            if looks_expired(text):
                raise CredentialsExpired(aws_profile, str(exc)) from exc
            if looks_access_denied(text):
                raise InsufficientPermissions("kafka:GetBootstrapBrokers", cluster_arn) from exc
            raise BootstrapFetchFailed(cluster_arn, str(exc)) from exc
