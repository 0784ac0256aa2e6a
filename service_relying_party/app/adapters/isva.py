"""
IBM Security Verify Access (ISVA) clients.

ISVA runs the email OTP through an API authentication service policy; the
policy's state id doubles as the transaction id handed to callers.
"""

from datetime import datetime, timedelta, timezone

import httpx

from ..domain.models import OTPChallenge, PendingSignup, Token
from .base import TokenClient, UserClient, WebAuthnClient


class ISVATokenClient(TokenClient):
    service_name = "isva.token"
    token_path = "/mga/sps/oauth/oauth20/token"


class ISVAUserClient(UserClient):
    service_name = "isva.users"
    otp_path = "/mga/sps/apiauthsvc/policy/email_otp"
    verify_path = "/mga/sps/apiauthsvc"
    scim_path = "/scim/Users"

    def __init__(self, http: httpx.AsyncClient, base_url: str, otp_lifetime_seconds: int = 300):
        super().__init__(http, base_url)
        self.otp_lifetime_seconds = otp_lifetime_seconds

    async def generate_otp(self, token: Token, email: str) -> OTPChallenge:
        response = await self._send(
            "POST",
            self.otp_path,
            operation="generate_otp",
            token=token,
            json={"emailAddress": email},
        )
        payload = self._json(response, "generate_otp")

        # The policy does not always report an expiry; fall back to its configured lifetime.
        expiry = payload.get("expiry") or (
            datetime.now(timezone.utc) + timedelta(seconds=self.otp_lifetime_seconds)
        )
        return self._otp_challenge(payload.get("stateId"), payload.get("correlation"), expiry)

    async def verify_user(self, token: Token, transaction_id: str, otp: str, pending: PendingSignup) -> str:
        await self._send(
            "PUT",
            self.verify_path,
            operation="verify_otp",
            token=token,
            params={"StateId": transaction_id},
            json={"otp": otp, "operation": "verify"},
        )
        return await self._create_user(token, pending)


class ISVAWebAuthnClient(WebAuthnClient):
    service_name = "isva.webauthn"

    @property
    def path_prefix(self) -> str:
        return f"/mga/sps/fido2/{self.relying_party_id}"
