"""Secret store protocol and error types.

Defines the interface that all secret storage backends must satisfy.
Built-in backends: InMemorySecretStore (session-only, env var fallback)
and KeyringSecretStore (OS keyring, survives restarts). SASL and SSL
passwords go through this interface and never through the plain cluster
configuration store.
"""

from __future__ import annotations

import os
import re
from typing import Any, Protocol, runtime_checkable

from kafka_explorer.models import StoredCredentials

DEFAULT_ENV_PREFIX = "KAFKA_EXPLORER_SECRET_"

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")


class SecretStoreError(Exception):
    """Raised when a secret backend cannot read, store or delete a secret."""


@runtime_checkable
class SecretStore(Protocol):
    """Protocol for secret storage backends.

    Any object with ``get()``, ``store()``, ``delete()`` and
    ``env_var_base()`` satisfies this protocol. ``persistent`` tells
    callers whether stored secrets outlive the process.
    """

    persistent: bool

    def get(self, cluster_id: str) -> StoredCredentials | None:
        """Return the stored secrets for a cluster, or ``None``."""
        ...

    def store(self, cluster_id: str, credentials: StoredCredentials) -> None:
        """Replace the stored secrets for a cluster.

        Raises:
            SecretStoreError: If the backend cannot persist the secret.
        """
        ...

    def delete(self, cluster_id: str) -> None:
        """Forget the secrets for a cluster (no error if absent)."""
        ...

    def env_var_base(self, cluster_id: str) -> str:
        """Stem of the env vars consulted when nothing is stored."""
        ...


def env_var_base(env_prefix: str, cluster_id: str) -> str:
    """Env var stem for a cluster, e.g. ``KAFKA_EXPLORER_SECRET_PROD_MSK``."""
    slug = _NON_ALNUM.sub("_", cluster_id).strip("_").upper()
    return f"{env_prefix}{slug}"


def credentials_from_env(env_prefix: str, cluster_id: str) -> StoredCredentials | None:
    """Read ``{base}_SASL_PASSWORD`` / ``{base}_SSL_PASSWORD``, or ``None``."""
    base = env_var_base(env_prefix, cluster_id)
    from_env = StoredCredentials(
        sasl_password=os.environ.get(f"{base}_SASL_PASSWORD"),
        ssl_password=os.environ.get(f"{base}_SSL_PASSWORD"),
    )
    return None if from_env.is_empty() else from_env


def store_password(
    secrets: SecretStore,
    cluster_id: str,
    kind: str,
    password: str,
) -> None:
    """Update a single password (``"sasl"`` or ``"ssl"``), keeping the other."""
    existing = secrets.get(cluster_id) or StoredCredentials()
    if kind == "sasl":
        updated = existing.model_copy(update={"sasl_password": password})
    elif kind == "ssl":
        updated = existing.model_copy(update={"ssl_password": password})
    else:
        raise SecretStoreError(f"Unknown password type: {kind}")
    secrets.store(cluster_id, updated)


def get_password(secrets: SecretStore, cluster_id: str, kind: str) -> str | None:
    stored = secrets.get(cluster_id)
    if stored is None:
        return None
    return stored.sasl_password if kind == "sasl" else stored.ssl_password


def build_secret_store(config: dict[str, Any]) -> SecretStore:
    """Build a secret store from a configuration dict.

    Supported keys:
    - type: ``"memory"`` (default) or ``"keyring"``
    - env_prefix: environment variable prefix
      (default ``"KAFKA_EXPLORER_SECRET_"``)
    - service: keyring service name (default ``"kafka-explorer"``)
    """
    store_type = config.get("type", "memory")
    env_prefix = config.get("env_prefix", DEFAULT_ENV_PREFIX)

    if store_type == "memory":
        from kafka_explorer.credentials.memory_store import InMemorySecretStore

        return InMemorySecretStore(env_prefix=env_prefix)

    if store_type == "keyring":
        from kafka_explorer.credentials.keyring_store import DEFAULT_SERVICE, KeyringSecretStore

        return KeyringSecretStore(
            service=config.get("service", DEFAULT_SERVICE),
            env_prefix=env_prefix,
        )

    raise SecretStoreError(
        f"Unknown secret store type: {store_type}. Available: 'memory', 'keyring'."
    )
