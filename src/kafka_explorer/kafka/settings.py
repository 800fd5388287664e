"""Effective wire client settings for a cluster.

Built once per registration from the connection record, the resolved
broker list and any secrets. SSL material is loaded from the configured
file paths into an ``SSLContext`` here; the file contents are not kept.
"""

from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass, field
from pathlib import Path

from aiokafka.helpers import create_ssl_context

from kafka_explorer.errors import InvalidClusterConfig
from kafka_explorer.models import ClusterConnection, SaslMechanism, SecurityProtocol
from kafka_explorer.msk.iam_token import MskIamTokenProvider

logger = logging.getLogger(__name__)

CLIENT_ID = "kafka-explorer"
REQUEST_TIMEOUT_MS = 30_000
RETRY_BACKOFF_MS = 300


@dataclass
class ClientSettings:
    """Connection parameters shared by every handle of one cluster."""

    cluster_name: str
    brokers: list[str]
    security_protocol: str = SecurityProtocol.PLAINTEXT.value
    ssl_context: ssl.SSLContext | None = field(default=None, repr=False)
    sasl_mechanism: str | None = None
    sasl_username: str | None = None
    sasl_password: str | None = field(default=None, repr=False)
    token_provider: MskIamTokenProvider | None = field(default=None, repr=False)
    client_id: str = CLIENT_ID
    request_timeout_ms: int = REQUEST_TIMEOUT_MS
    retry_backoff_ms: int = RETRY_BACKOFF_MS

    @property
    def uses_iam(self) -> bool:
        return self.token_provider is not None


def build_ssl_context(
    connection: ClusterConnection,
    ssl_password: str | None = None,
) -> ssl.SSLContext:
    """Load the connection's CA, certificate and key into an SSL context.

    Raises:
        InvalidClusterConfig: A configured file does not exist.
    """
    missing = [
        f"{label} not found: {path}"
        for label, path in (
            ("CA certificate", connection.ssl_ca_file),
            ("client certificate", connection.ssl_cert_file),
            ("client key", connection.ssl_key_file),
        )
        if path and not Path(path).expanduser().is_file()
    ]
    if missing:
        raise InvalidClusterConfig(connection.name, missing)

    def _expand(path: str | None) -> str | None:
        return str(Path(path).expanduser()) if path else None

    context = create_ssl_context(
        cafile=_expand(connection.ssl_ca_file),
        certfile=_expand(connection.ssl_cert_file),
        keyfile=_expand(connection.ssl_key_file),
        password=ssl_password,
    )
    if not connection.reject_unauthorized:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def build_client_settings(
    connection: ClusterConnection,
    brokers: list[str],
    *,
    sasl_password: str | None = None,
    ssl_password: str | None = None,
    token_provider: MskIamTokenProvider | None = None,
) -> ClientSettings:
    """Map a connection record onto wire client settings.

    AWS_MSK_IAM always runs over SASL_SSL with OAUTHBEARER and requires
    *token_provider*. PLAIN and SCRAM apply only to SASL protocols and use
    the username and *sasl_password*.
    """
    settings = ClientSettings(
        cluster_name=connection.name,
        brokers=list(brokers),
        security_protocol=connection.security_protocol.value,
    )

    if connection.sasl_mechanism == SaslMechanism.AWS_MSK_IAM:
        if token_provider is None:
            raise InvalidClusterConfig(
                connection.name, ["AWS MSK IAM authentication requires a token provider"],
            )
        settings.security_protocol = SecurityProtocol.SASL_SSL.value
        settings.sasl_mechanism = "OAUTHBEARER"
        settings.token_provider = token_provider
    elif connection.sasl_mechanism is not None and connection.security_protocol.uses_sasl:
        settings.sasl_mechanism = connection.sasl_mechanism.value
        settings.sasl_username = connection.sasl_username
        settings.sasl_password = sasl_password or connection.sasl_password

    if "SSL" in settings.security_protocol:
        settings.ssl_context = build_ssl_context(
            connection, ssl_password or connection.ssl_password,
        )

    logger.debug(
        "Client settings for %s: protocol=%s mechanism=%s brokers=%d",
        connection.name,
        settings.security_protocol,
        settings.sasl_mechanism or "none",
        len(settings.brokers),
    )
    return settings
