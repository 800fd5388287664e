"""AWS credential resolution for MSK clusters.

The resolver:
1. Reads an explicitly named profile straight from the shared credentials
   file, so ``AWS_PROFILE`` or ``AWS_ACCESS_KEY_ID`` never override it
2. Otherwise walks environment, shared files and credential process
3. Optionally exchanges the base credentials for a role via STS AssumeRole
4. Returns an ``AwsCredentials`` triple

The resolver never writes to the credentials file.
"""

from __future__ import annotations

import configparser
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from botocore import configloader
from botocore.credentials import (
    ConfigProvider,
    EnvProvider,
    ProcessProvider,
    SharedCredentialProvider,
)

from kafka_explorer.errors import (
    CredentialsExpired,
    CredentialsNotFound,
    ProfileNotFound,
    RoleAssumptionFailed,
    error_text,
    looks_expired,
)
from kafka_explorer.models import AwsCredentials
from kafka_explorer.msk.environ import environment_snapshot

logger = logging.getLogger(__name__)

ROLE_SESSION_NAME = "kafka-explorer-msk-iam"
ROLE_SESSION_SECONDS = 3600
DEFAULT_CREDENTIALS_PATH = Path.home() / ".aws" / "credentials"
DEFAULT_CONFIG_PATH = Path.home() / ".aws" / "config"

StsClientFactory = Callable[[AwsCredentials, str | None], Any]


def _default_sts_client(credentials: AwsCredentials, region: str | None) -> Any:
    """Build an STS client bound to explicit credentials."""
    import boto3

    kwargs: dict[str, Any] = {
        "aws_access_key_id": credentials.access_key_id,
        "aws_secret_access_key": credentials.secret_access_key,
    }
    if credentials.session_token:
        kwargs["aws_session_token"] = credentials.session_token
    if region:
        kwargs["region_name"] = region
    return boto3.Session(**kwargs).client("sts")


class AwsCredentialResolver:
    """Produces AWS credentials for a profile, optionally assuming a role.

    Stateless apart from the file paths and the STS client factory.
    """

    def __init__(
        self,
        credentials_path: str | Path | None = None,
        config_path: str | Path | None = None,
        sts_client_factory: StsClientFactory | None = None,
    ) -> None:
        self._credentials_path = Path(credentials_path or DEFAULT_CREDENTIALS_PATH)
        self._config_path = Path(config_path or DEFAULT_CONFIG_PATH)
        self._sts_client_factory = sts_client_factory or _default_sts_client

    @property
    def credentials_path(self) -> Path:
        return self._credentials_path

    def resolve(
        self,
        profile: str | None = None,
        assume_role_arn: str | None = None,
        region: str | None = None,
    ) -> AwsCredentials:
        """Resolve credentials, assuming *assume_role_arn* when given.

        Raises:
            CredentialsNotFound: No source yielded a complete key pair.
            ProfileNotFound: *profile* has no section in the credentials file.
            CredentialsExpired: STS rejected the base credentials as expired.
            RoleAssumptionFailed: Any other AssumeRole failure.
        """
        base = self.resolve_base(profile)
        if not assume_role_arn:
            return base
        return self.assume_role(base, assume_role_arn, region=region, profile=profile)

    def resolve_base(self, profile: str | None = None) -> AwsCredentials:
        """Credentials for *profile* (or the default chain), never role-assumed."""
        if profile:
            return self.read_profile(profile)
        return self._default_chain()

    def read_profile(self, profile: str) -> AwsCredentials:
        path = self._credentials_path
        if not path.is_file():
            raise CredentialsNotFound(
                f"Could not read {path}: file not found",
                profile=profile,
                path=str(path),
            )

        parser = configparser.RawConfigParser()
        parser.read(path, encoding="utf-8")

        if not parser.has_section(profile):
            raise ProfileNotFound(profile, str(path), available=parser.sections())

        section = parser[profile]
        access_key = section.get("aws_access_key_id", "").strip()
        secret_key = section.get("aws_secret_access_key", "").strip()
        missing = [
            key for key, value in (
                ("aws_access_key_id", access_key),
                ("aws_secret_access_key", secret_key),
            ) if not value
        ]
        if missing:
            raise CredentialsNotFound(
                f'Profile "{profile}" is missing credentials: {", ".join(missing)}',
                profile=profile,
                path=str(path),
            )

        token = section.get("aws_session_token") or section.get("aws_security_token")
        logger.debug("Using credentials from profile %s", profile)
        return AwsCredentials(
            access_key_id=access_key,
            secret_access_key=secret_key,
            session_token=token.strip() if token else None,
        )

    def assume_role(
        self,
        base: AwsCredentials,
        role_arn: str,
        region: str | None = None,
        profile: str | None = None,
    ) -> AwsCredentials:
        logger.info("Assuming role %s", role_arn)
        try:
            client = self._sts_client_factory(base, region)
            response = client.assume_role(
                RoleArn=role_arn,
                RoleSessionName=ROLE_SESSION_NAME,
                DurationSeconds=ROLE_SESSION_SECONDS,
            )
        except Exception as exc:
            text = error_text(exc)
            if looks_expired(text):
                raise CredentialsExpired(profile, str(exc)) from exc
            raise RoleAssumptionFailed(role_arn, profile, str(exc)) from exc

        creds = response.get("Credentials") or {}
        if not creds.get("AccessKeyId") or not creds.get("SecretAccessKey"):
            raise RoleAssumptionFailed(role_arn, profile, "No credentials returned from AssumeRole")

        return AwsCredentials(
            access_key_id=creds["AccessKeyId"],
            secret_access_key=creds["SecretAccessKey"],
            session_token=creds.get("SessionToken"),
        )

    # --- Private: default chain ---

    def _default_chain(self) -> AwsCredentials:
        environ = environment_snapshot()
        profile_name = environ.get("AWS_PROFILE") or "default"
        config_path = str(self._config_path)

        providers: list[tuple[str, Any]] = [
            ("environment", EnvProvider(environ=environ)),
            (
                "shared credentials file",
                SharedCredentialProvider(
                    creds_filename=str(self._credentials_path),
                    profile_name=profile_name,
                ),
            ),
            (
                "config file",
                ConfigProvider(config_filename=config_path, profile_name=profile_name),
            ),
            (
                "credential process",
                ProcessProvider(
                    profile_name=profile_name,
                    load_config=lambda: configloader.load_config(config_path),
                ),
            ),
        ]

        for source, provider in providers:
            try:
                loaded = provider.load()
            except Exception as exc:
                logger.debug("Credential source %s failed: %s", source, exc)
                continue
            if loaded is None:
                continue
            frozen = loaded.get_frozen_credentials()
            if not frozen.access_key or not frozen.secret_key:
                logger.debug("Credential source %s returned incomplete credentials", source)
                continue
            logger.debug("Using credentials from %s", source)
            return AwsCredentials(
                access_key_id=frozen.access_key,
                secret_access_key=frozen.secret_key,
                session_token=frozen.token,
            )

        raise CredentialsNotFound(
            "No AWS credentials found. Tried: environment variables, "
            "~/.aws/credentials (default profile) and credential_process."
        )
