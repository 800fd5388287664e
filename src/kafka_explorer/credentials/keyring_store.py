"""OS keyring secret store.

Each cluster's passwords are kept as one JSON entry in the platform
keyring (macOS Keychain, Secret Service, Windows Credential Locker)
under the ``kafka-explorer`` service, so they survive between CLI runs.
Env vars are consulted when the keyring has no entry for a cluster.
"""

from __future__ import annotations

import logging

import keyring
from keyring.errors import KeyringError, PasswordDeleteError
from pydantic import ValidationError

from kafka_explorer.credentials.secrets import (
    DEFAULT_ENV_PREFIX,
    SecretStoreError,
    credentials_from_env,
    env_var_base,
)
from kafka_explorer.models import StoredCredentials

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "kafka-explorer"


class KeyringSecretStore:
    """Secret store backed by the ``keyring`` library."""

    persistent = True

    def __init__(
        self,
        service: str = DEFAULT_SERVICE,
        env_prefix: str = DEFAULT_ENV_PREFIX,
    ) -> None:
        self._service = service
        self._env_prefix = env_prefix

    @property
    def service(self) -> str:
        return self._service

    def get(self, cluster_id: str) -> StoredCredentials | None:
        try:
            raw = keyring.get_password(self._service, cluster_id)
        except KeyringError as exc:
            raise SecretStoreError(f"Could not read secrets for {cluster_id}: {exc}") from exc
        if raw is None:
            return credentials_from_env(self._env_prefix, cluster_id)
        try:
            return StoredCredentials.model_validate_json(raw)
        except ValidationError as exc:
            raise SecretStoreError(f"Corrupt keyring entry for {cluster_id}") from exc

    def store(self, cluster_id: str, credentials: StoredCredentials) -> None:
        try:
            keyring.set_password(self._service, cluster_id, credentials.model_dump_json())
        except KeyringError as exc:
            raise SecretStoreError(f"Could not store secrets for {cluster_id}: {exc}") from exc
        logger.debug("Stored secrets for %s in keyring service %s", cluster_id, self._service)

    def delete(self, cluster_id: str) -> None:
        try:
            keyring.delete_password(self._service, cluster_id)
        except PasswordDeleteError:
            return
        except KeyringError as exc:
            raise SecretStoreError(f"Could not delete secrets for {cluster_id}: {exc}") from exc

    def env_var_base(self, cluster_id: str) -> str:
        return env_var_base(self._env_prefix, cluster_id)
