"""MSK IAM SASL token provider.

One provider per IAM-authenticated cluster. Tokens are valid for 15 minutes;
the provider serves a cached token for 14 and signs a new one afterwards.
Concurrent callers that arrive while a token is being generated share the
same in-flight task, so each refresh invokes the signer exactly once.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from aws_msk_iam_sasl_signer import MSKAuthTokenProvider

from kafka_explorer.credentials.aws import AwsCredentialResolver
from kafka_explorer.errors import (
    CredentialsExpired,
    KafkaExplorerError,
    TokenGenerationFailed,
    error_text,
    looks_expired,
)
from kafka_explorer.models import AuthToken, AwsCredentials, CachedToken
from kafka_explorer.msk.environ import isolated_aws_environment

logger = logging.getLogger(__name__)

TOKEN_CACHE_SECONDS = 14 * 60

# (region) -> (token, expiry in epoch milliseconds)
Signer = Callable[[str], tuple[str, int]]


class MskIamTokenProvider:
    """Generates and caches SASL/OAUTHBEARER tokens for AWS MSK IAM.

    Credentials come from the configured profile, exchanged for
    *assume_role_arn* when one is set.
    """

    def __init__(
        self,
        region: str,
        profile: str | None = None,
        assume_role_arn: str | None = None,
        resolver: AwsCredentialResolver | None = None,
        signer: Signer | None = None,
        _clock: Callable[[], float] | None = None,
    ) -> None:
        self._region = region
        self._profile = profile
        self._assume_role_arn = assume_role_arn
        self._resolver = resolver or AwsCredentialResolver()
        self._signer = signer or MSKAuthTokenProvider.generate_auth_token
        self._clock = _clock or time.monotonic
        self._cached: CachedToken | None = None
        self._pending: asyncio.Future[str] | None = None

    @property
    def region(self) -> str:
        return self._region

    @property
    def profile(self) -> str | None:
        return self._profile

    @property
    def assume_role_arn(self) -> str | None:
        return self._assume_role_arn

    async def generate_auth_token(self) -> AuthToken:
        """Return a valid token, signing a new one only when the cache is stale."""
        cached = self._cached
        if cached is not None and cached.is_valid(self._clock()):
            return AuthToken(username=cached.token, password=cached.token)

        # No await between the check and the assignment, so only one task is created.
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._generate())

        token = await asyncio.shield(self._pending)
        return AuthToken(username=token, password=token)

    def invalidate(self) -> None:
        """Drop the cached token; the next call signs a new one."""
        self._cached = None

    async def _generate(self) -> str:
        try:
            credentials = await asyncio.to_thread(
                self._resolver.resolve,
                self._profile,
                self._assume_role_arn,
                self._region,
            )
            token = self._sign(credentials)
            self._cached = CachedToken(
                token=token,
                expires_at=self._clock() + TOKEN_CACHE_SECONDS,
            )
            logger.debug("Generated MSK IAM token for region %s", self._region)
            return token
        finally:
            self._pending = None

    def _sign(self, credentials: AwsCredentials) -> str:
        try:
            with isolated_aws_environment(credentials):
                token, _expiry_ms = self._signer(self._region)
        except KafkaExplorerError:
            raise
        except Exception as exc:
            logger.warning("MSK IAM token generation failed: %s", exc)
            if looks_expired(error_text(exc)):
                raise CredentialsExpired(self._profile, str(exc)) from exc
            raise TokenGenerationFailed(
                str(exc), self._profile, self._assume_role_arn,
            ) from exc
        return token
