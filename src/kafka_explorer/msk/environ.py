"""Scoped AWS environment injection for the MSK IAM signer.

The signer library only reads credentials through the default AWS chain,
which starts with process environment variables. ``isolated_aws_environment``
is the single place that mutates those variables. It holds a process-wide
lock for the whole injection window, and ``environment_snapshot`` takes the
same lock, so readers in worker threads never observe injected values.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from kafka_explorer.models import AwsCredentials

AWS_ENV_VARS = (
    "AWS_PROFILE",
    "AWS_DEFAULT_PROFILE",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "AWS_SECURITY_TOKEN",
)

_env_lock = threading.Lock()


@contextmanager
def isolated_aws_environment(credentials: AwsCredentials) -> Iterator[None]:
    """Expose exactly *credentials* to the default AWS chain, then restore.

    Profile selectors are cleared so the environment provider wins. The
    previous values are restored on every exit path, including errors.
    """
    with _env_lock:
        saved = {name: os.environ.get(name) for name in AWS_ENV_VARS}
        try:
            for name in AWS_ENV_VARS:
                os.environ.pop(name, None)
            os.environ["AWS_ACCESS_KEY_ID"] = credentials.access_key_id
            os.environ["AWS_SECRET_ACCESS_KEY"] = credentials.secret_access_key
            if credentials.session_token:
                os.environ["AWS_SESSION_TOKEN"] = credentials.session_token
            yield
        finally:
            for name, value in saved.items():
                if value is None:
                    os.environ.pop(name, None)
                else:
                    os.environ[name] = value


def environment_snapshot() -> dict[str, str]:
    """Copy of ``os.environ`` taken outside any injection window."""
    with _env_lock:
        return dict(os.environ)
