"""Tests for AWS credential resolution (profiles, default chain, AssumeRole)."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError

from kafka_explorer.credentials.aws import (
    ROLE_SESSION_NAME,
    ROLE_SESSION_SECONDS,
    AwsCredentialResolver,
)
from kafka_explorer.errors import (
    CredentialsExpired,
    CredentialsNotFound,
    ProfileNotFound,
    RoleAssumptionFailed,
)
from kafka_explorer.models import AwsCredentials
from kafka_explorer.msk.environ import AWS_ENV_VARS

ROLE_ARN = "arn:aws:iam::123456789012:role/msk-reader"


class FakeSts:
    def __init__(self, response: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self.response = response or {
            "Credentials": {
                "AccessKeyId": "ASIAROLE",
                "SecretAccessKey": "role-secret",
                "SessionToken": "role-token",
            },
        }
        self.error = error
        self.calls: list[dict[str, Any]] = []
        self.bound: list[tuple[AwsCredentials, str | None]] = []

    def factory(self, credentials: AwsCredentials, region: str | None) -> FakeSts:
        self.bound.append((credentials, region))
        return self

    def assume_role(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture(autouse=True)
def clean_aws_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in AWS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def credentials_file(tmp_path: Path) -> Path:
    path = tmp_path / "credentials"
    path.write_text(
        "[default]\n"
        "aws_access_key_id = AKIADEFAULT\n"
        "aws_secret_access_key = default-secret\n"
        "\n"
        "[dev]\n"
        "aws_access_key_id = AKIADEV\n"
        "aws_secret_access_key = dev-secret\n"
        "aws_session_token = dev-token\n"
        "\n"
        "[legacy]\n"
        "aws_access_key_id = AKIALEGACY\n"
        "aws_secret_access_key = legacy-secret\n"
        "aws_security_token = legacy-token\n"
        "\n"
        "[broken]\n"
        "aws_access_key_id = AKIABROKEN\n",
        encoding="utf-8",
    )
    return path


def _resolver(tmp_path: Path, credentials: Path | None = None, sts: FakeSts | None = None):
    return AwsCredentialResolver(
        credentials_path=credentials or tmp_path / "missing-credentials",
        config_path=tmp_path / "missing-config",
        sts_client_factory=sts.factory if sts else None,
    )


# --- Named profiles ---


class TestNamedProfile:
    def test_reads_keys_and_session_token(self, tmp_path: Path, credentials_file: Path):
        creds = _resolver(tmp_path, credentials_file).resolve("dev")
        assert creds == AwsCredentials(
            access_key_id="AKIADEV",
            secret_access_key="dev-secret",
            session_token="dev-token",
        )

    def test_security_token_alias(self, tmp_path: Path, credentials_file: Path):
        creds = _resolver(tmp_path, credentials_file).resolve("legacy")
        assert creds.session_token == "legacy-token"

    def test_environment_does_not_override_named_profile(
        self, tmp_path: Path, credentials_file: Path, monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIAENV")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "env-secret")
        monkeypatch.setenv("AWS_PROFILE", "default")
        assert _resolver(tmp_path, credentials_file).resolve("dev").access_key_id == "AKIADEV"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(CredentialsNotFound, match="file not found"):
            _resolver(tmp_path).resolve("dev")

    def test_missing_profile_lists_available(self, tmp_path: Path, credentials_file: Path):
        with pytest.raises(ProfileNotFound) as exc_info:
            _resolver(tmp_path, credentials_file).resolve("prod")
        assert "Available profiles: default, dev, legacy, broken" in str(exc_info.value)

    def test_incomplete_profile(self, tmp_path: Path, credentials_file: Path):
        with pytest.raises(CredentialsNotFound, match="missing credentials: aws_secret_access_key"):
            _resolver(tmp_path, credentials_file).resolve("broken")


# --- Default chain ---


class TestDefaultChain:
    def test_environment_first(
        self, tmp_path: Path, credentials_file: Path, monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIAENV")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "env-secret")
        monkeypatch.setenv("AWS_SESSION_TOKEN", "env-token")
        creds = _resolver(tmp_path, credentials_file).resolve()
        assert creds.access_key_id == "AKIAENV"
        assert creds.session_token == "env-token"

    def test_shared_file_default_profile(self, tmp_path: Path, credentials_file: Path):
        creds = _resolver(tmp_path, credentials_file).resolve()
        assert creds.access_key_id == "AKIADEFAULT"
        assert creds.session_token is None

    def test_aws_profile_selects_section(
        self, tmp_path: Path, credentials_file: Path, monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setenv("AWS_PROFILE", "dev")
        assert _resolver(tmp_path, credentials_file).resolve().access_key_id == "AKIADEV"

    def test_nothing_found(self, tmp_path: Path):
        with pytest.raises(CredentialsNotFound, match="No AWS credentials found"):
            _resolver(tmp_path).resolve()


# --- AssumeRole ---


class TestAssumeRole:
    def test_exchanges_base_credentials(self, tmp_path: Path, credentials_file: Path):
        sts = FakeSts()
        creds = _resolver(tmp_path, credentials_file, sts).resolve("dev", ROLE_ARN, "us-east-1")

        assert creds == AwsCredentials(
            access_key_id="ASIAROLE",
            secret_access_key="role-secret",
            session_token="role-token",
        )
        assert sts.calls == [{
            "RoleArn": ROLE_ARN,
            "RoleSessionName": ROLE_SESSION_NAME,
            "DurationSeconds": ROLE_SESSION_SECONDS,
        }]
        base, region = sts.bound[0]
        assert base.access_key_id == "AKIADEV"
        assert region == "us-east-1"

    def test_no_role_skips_sts(self, tmp_path: Path, credentials_file: Path):
        sts = FakeSts()
        _resolver(tmp_path, credentials_file, sts).resolve("dev")
        assert sts.calls == []

    def test_expired_base_credentials(self, tmp_path: Path, credentials_file: Path):
        sts = FakeSts(error=ClientError(
            {"Error": {"Code": "ExpiredTokenException", "Message": "The security token is expired"}},
            "AssumeRole",
        ))
        with pytest.raises(CredentialsExpired) as exc_info:
            _resolver(tmp_path, credentials_file, sts).resolve("dev", ROLE_ARN)
        assert exc_info.value.profile == "dev"
        assert isinstance(exc_info.value.__cause__, ClientError)

    def test_access_denied(self, tmp_path: Path, credentials_file: Path):
        sts = FakeSts(error=ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "not authorized to perform sts:AssumeRole"}},
            "AssumeRole",
        ))
        with pytest.raises(RoleAssumptionFailed) as exc_info:
            _resolver(tmp_path, credentials_file, sts).resolve("dev", ROLE_ARN)
        assert exc_info.value.role_arn == ROLE_ARN
        assert "AccessDenied" in str(exc_info.value)

    def test_empty_response(self, tmp_path: Path, credentials_file: Path):
        sts = FakeSts(response={"Credentials": {}})
        with pytest.raises(RoleAssumptionFailed, match="No credentials returned from AssumeRole"):
            _resolver(tmp_path, credentials_file, sts).resolve("dev", ROLE_ARN)
