"""Session-only secret store with environment variable fallback.

Secrets live in process memory for the lifetime of the session. When a
cluster has nothing stored, the store looks for
``{prefix}{CLUSTER}_SASL_PASSWORD`` and ``{prefix}{CLUSTER}_SSL_PASSWORD``
so scripted sessions can supply passwords without typing them.
"""

from __future__ import annotations

from kafka_explorer.credentials.secrets import DEFAULT_ENV_PREFIX, credentials_from_env, env_var_base
from kafka_explorer.models import StoredCredentials


class InMemorySecretStore:
    """Secret store backed by a dict, with env var lookup as a fallback.

    Lookup strategy:
    1. Secrets stored during this session for the cluster.
    2. Otherwise, env vars derived from the cluster name.
    3. Otherwise ``None``.
    """

    persistent = False

    def __init__(self, env_prefix: str = DEFAULT_ENV_PREFIX) -> None:
        self._env_prefix = env_prefix
        self._secrets: dict[str, StoredCredentials] = {}

    def get(self, cluster_id: str) -> StoredCredentials | None:
        if cluster_id in self._secrets:
            return self._secrets[cluster_id]
        return credentials_from_env(self._env_prefix, cluster_id)

    def store(self, cluster_id: str, credentials: StoredCredentials) -> None:
        self._secrets[cluster_id] = credentials

    def delete(self, cluster_id: str) -> None:
        self._secrets.pop(cluster_id, None)

    def env_var_base(self, cluster_id: str) -> str:
        """Env var stem for a cluster, e.g. ``KAFKA_EXPLORER_SECRET_PROD_MSK``."""
        return env_var_base(self._env_prefix, cluster_id)

    @property
    def stored_count(self) -> int:
        """Number of clusters with session secrets (for testing)."""
        return len(self._secrets)
