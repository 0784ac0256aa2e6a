"""
Test doubles shared by the Relying Party service tests.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from service_relying_party.app.adapters.factory import PlatformClients
from service_relying_party.app.domain.models import FIDO2Challenge, OTPChallenge, Platform, Token


NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
ISSUER = "https://rp.example.com"
TRANSACTION_ID = "7705d361-f014-44c1-bae4-2877a0c962b6"


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_clients(platform: Platform) -> PlatformClients:
    """Platform clients whose network calls are AsyncMocks."""
    users = MagicMock()
    users.generate_otp = AsyncMock(return_value=OTPChallenge(
        transaction_id=TRANSACTION_ID,
        correlation="1234",
        expiry=NOW + timedelta(seconds=300),
    ))
    users.verify_user = AsyncMock(return_value="user-1")

    webauthn = MagicMock()
    webauthn.generate_challenge = AsyncMock(
        side_effect=lambda token, display_name, challenge_type: FIDO2Challenge(
            challenge="Y2hhbGxlbmdl",
            type=challenge_type,
        )
    )
    webauthn.create_credential = AsyncMock(return_value=None)
    webauthn.verify_credential = AsyncMock(return_value=b'{"assertion": "xyz"}')

    auth_tokens = MagicMock()
    auth_tokens.client_secret = "auth-secret"
    auth_tokens.password_grant = AsyncMock(return_value=Token(access_token="password-token", expires_in=3600))
    auth_tokens.jwt_bearer_grant = AsyncMock(return_value=Token(access_token="user-token", expires_in=3600))
    auth_tokens.build_signed_assertion = MagicMock(return_value="signed.jwt.assertion")

    api_tokens = MagicMock()
    api_tokens.client_credentials_grant = AsyncMock(
        return_value=Token(access_token="service-token", expires_in=3600)
    )

    return PlatformClients(
        platform=platform,
        users=users,
        webauthn=webauthn,
        auth_tokens=auth_tokens,
        api_tokens=api_tokens,
    )
