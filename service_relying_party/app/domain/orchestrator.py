"""
Relying party orchestration.

Each public coroutine maps one caller-facing operation onto a short,
strictly ordered sequence of platform calls and cache reads/writes. The
orchestrator keeps no state of its own between requests; everything that
outlives a request sits in the transactional cache:

- pending sign-ups, keyed by OTP transaction id, until validated or expired;
- the service-level access token under ``SERVICE_TOKEN_KEY``, evicted
  ``SERVICE_TOKEN_MARGIN_SECONDS`` before the platform would expire it.

Failures are logged and re-raised unchanged. Nothing is retried.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional

import structlog

from shared.errors import ChallengeExpiredError, UnauthorizedError
from shared.logging import get_logger, set_user_context
from shared.metrics import MetricsCollector
from ..adapters.factory import PlatformClients
from ..caching.transactional_cache import TransactionalCache
from .models import ChallengeType, FIDO2Challenge, OTPChallenge, PendingSignup, Token
from .normalizer import SigninResponseNormalizer


SERVICE_TOKEN_KEY = "token"
SERVICE_TOKEN_MARGIN_SECONDS = 60


class RelyingPartyOrchestrator:
    """Sign-up, sign-in and FIDO2 flows against the configured platform."""

    def __init__(
        self,
        clients: PlatformClients,
        cache: TransactionalCache,
        issuer: str,
        logger: Optional[structlog.BoundLogger] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.platform = clients.platform
        self.users = clients.users
        self.webauthn = clients.webauthn
        self.auth_tokens = clients.auth_tokens
        self.api_tokens = clients.api_tokens
        self.cache = cache
        self.issuer = issuer
        self.logger = logger or get_logger("relying_party.orchestrator")
        self.metrics = metrics
        self.normalizer = SigninResponseNormalizer(clients.platform, clients.auth_tokens)
        self._clock = clock

    # User authentication, sign-up and validation

    async def authenticate(self, username: str, password: str) -> Token:
        """Password grant on behalf of an existing user."""
        with self._operation("authenticate"):
            return await self.auth_tokens.password_grant(username, password)

    async def signup(self, name: str, email: str) -> OTPChallenge:
        """Send an OTP to ``email`` and hold the sign-up until it is confirmed."""
        with self._operation("signup"):
            token = await self.service_token()
            challenge = await self.users.generate_otp(token, email)

            seconds = self._seconds_until(challenge.expiry)
            if seconds <= 0:
                self.logger.warning(
                    "OTP expired before it could be cached",
                    transaction_id=challenge.transaction_id,
                    expires_in=seconds
                )
                raise ChallengeExpiredError(
                    "The one-time password expired before the sign-up could be recorded."
                )

            self.logger.info(
                "Caching OTP",
                transaction_id=challenge.transaction_id,
                expires_in=seconds
            )
            pending = PendingSignup(transaction_id=challenge.transaction_id, name=name, email=email)
            await self.cache.set(challenge.transaction_id, pending, seconds)
            self._count("otp_transactions_total", stage="issued")

            return challenge

    async def validate(self, transaction_id: str, otp: str) -> Token:
        """Confirm a pending sign-up and sign the new user in."""
        pending = await self.cache.get(transaction_id, PendingSignup)
        if pending is None:
            self.logger.info("Cached OTP has expired", transaction_id=transaction_id)
            self._count("otp_transactions_total", stage="expired")
            raise ChallengeExpiredError()

        with self._operation("validate", transaction_id=transaction_id):
            token = await self.service_token()
            user_id = await self.users.verify_user(token, transaction_id, otp, pending)
            set_user_context(user_id)

            # Consume the transaction before issuing a token so it cannot be replayed.
            self.logger.info("Removing OTP from cache", transaction_id=transaction_id)
            await self.cache.discard(transaction_id)
            self._count("otp_transactions_total", stage="confirmed")

            assertion = self.auth_tokens.build_signed_assertion(
                self.auth_tokens.client_secret,
                subject=user_id,
                issuer=self.issuer,
            )
            return await self.auth_tokens.jwt_bearer_grant(assertion)

    # FIDO2 registration and verification

    async def challenge(
        self,
        challenge_type: ChallengeType,
        display_name: Optional[str] = None,
        bearer: Optional[str] = None,
    ) -> FIDO2Challenge:
        """Generate attestation (registration) or assertion (sign-in) options.

        Attestation requires the caller's bearer token. Assertion falls back
        to the service token and ignores ``display_name``.
        """
        if challenge_type is ChallengeType.ATTESTATION and not bearer:
            raise UnauthorizedError("A bearer token is required to request an attestation challenge.")

        if challenge_type is ChallengeType.ASSERTION:
            display_name = None

        self.logger.info("Request for challenge", type=challenge_type.value)

        with self._operation("challenge", type=challenge_type.value):
            token = Token(access_token=bearer) if bearer else await self.service_token()
            return await self.webauthn.generate_challenge(token, display_name, challenge_type)

    async def register(
        self,
        bearer: Optional[str],
        nickname: str,
        client_data_json: str,
        attestation_object: str,
        credential_id: str,
    ) -> None:
        """Store a new authenticator for the user owning ``bearer``."""
        if not bearer:
            raise UnauthorizedError()

        with self._operation("register"):
            await self.webauthn.create_credential(
                Token(access_token=bearer),
                nickname,
                client_data_json,
                attestation_object,
                credential_id,
            )

    async def signin(
        self,
        client_data_json: str,
        authenticator_data: str,
        credential_id: str,
        signature: str,
        user_handle: str,
    ) -> Token:
        """Verify a FIDO2 assertion and return the user's token."""
        with self._operation("signin"):
            token = await self.service_token()
            result = await self.webauthn.verify_credential(
                token,
                client_data_json,
                authenticator_data,
                credential_id,
                signature,
                user_handle,
            )
            return await self.normalizer.normalize(result)

    # Service-level token

    async def service_token(self) -> Token:
        """Token authorizing platform API calls made by the service itself."""
        cached = await self.cache.get(SERVICE_TOKEN_KEY, Token)
        if cached is not None:
            self._count("service_token_cache_total", result="hit")
            return cached

        self._count("service_token_cache_total", result="miss")
        token = await self.api_tokens.client_credentials_grant()

        # Evict ahead of the real expiry; too-short lifetimes are not cached at all.
        seconds = max(token.expiry - SERVICE_TOKEN_MARGIN_SECONDS, 0)
        if seconds > 0:
            await self.cache.set(SERVICE_TOKEN_KEY, token, seconds)
            self.logger.info("Caching service token", expires_in=seconds)
        else:
            self.logger.warning("Service token too short-lived to cache", expires_in=token.expiry)

        return token

    @contextmanager
    def _operation(self, name: str, **context: Any) -> Iterator[None]:
        try:
            yield
        except Exception as e:
            self.logger.error("Operation failed", operation=name, error=str(e), **context)
            self._count("backend_calls_total", operation=name, outcome="error")
            raise
        self._count("backend_calls_total", operation=name, outcome="ok")

    def _count(self, metric_name: str, **labels: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter(metric_name, **labels)

    def _seconds_until(self, expiry: datetime) -> int:
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return int((expiry - self._clock()).total_seconds())
