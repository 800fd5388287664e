"""Tests for scoped AWS environment injection."""

import os
import threading

import pytest

from kafka_explorer.models import AwsCredentials
from kafka_explorer.msk.environ import (
    AWS_ENV_VARS,
    environment_snapshot,
    isolated_aws_environment,
)

CREDS = AwsCredentials(access_key_id="AKIAINJECT", secret_access_key="inject-secret")


@pytest.fixture(autouse=True)
def outer_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in AWS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AWS_PROFILE", "outer")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "outer-token")


class TestIsolatedAwsEnvironment:
    def test_injects_only_given_credentials(self):
        with isolated_aws_environment(CREDS):
            assert os.environ["AWS_ACCESS_KEY_ID"] == "AKIAINJECT"
            assert os.environ["AWS_SECRET_ACCESS_KEY"] == "inject-secret"
            assert "AWS_PROFILE" not in os.environ
            assert "AWS_SESSION_TOKEN" not in os.environ

    def test_session_token_injected(self):
        creds = CREDS.model_copy(update={"session_token": "inner-token"})
        with isolated_aws_environment(creds):
            assert os.environ["AWS_SESSION_TOKEN"] == "inner-token"

    def test_restores_previous_values(self):
        with isolated_aws_environment(CREDS):
            pass
        assert os.environ["AWS_PROFILE"] == "outer"
        assert os.environ["AWS_SESSION_TOKEN"] == "outer-token"
        assert "AWS_ACCESS_KEY_ID" not in os.environ

    def test_restores_after_error(self):
        with pytest.raises(RuntimeError), isolated_aws_environment(CREDS):
            raise RuntimeError("signer failed")
        assert os.environ["AWS_PROFILE"] == "outer"
        assert "AWS_SECRET_ACCESS_KEY" not in os.environ

    def test_snapshot_waits_for_injection_window(self):
        seen: dict[str, str] = {}
        entered = threading.Event()

        def reader() -> None:
            entered.wait()
            seen.update(environment_snapshot())

        thread = threading.Thread(target=reader)
        thread.start()
        with isolated_aws_environment(CREDS):
            entered.set()
            thread.join(timeout=0.2)
            assert thread.is_alive()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert seen["AWS_PROFILE"] == "outer"
        assert "AWS_ACCESS_KEY_ID" not in seen
