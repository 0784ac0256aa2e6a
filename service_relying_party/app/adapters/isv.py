"""
IBM Security Verify (ISV) clients.
"""

import secrets

from ..domain.models import OTPChallenge, PendingSignup, Token
from .base import TokenClient, UserClient, WebAuthnClient


class ISVTokenClient(TokenClient):
    service_name = "isv.token"
    token_path = "/v1.0/endpoint/default/token"


class ISVUserClient(UserClient):
    service_name = "isv.users"
    otp_path = "/v2.0/factors/emailotp/transient/verifications"
    scim_path = "/v2.0/Users"

    async def generate_otp(self, token: Token, email: str) -> OTPChallenge:
        correlation = f"{secrets.randbelow(10000):04d}"
        response = await self._send(
            "POST",
            self.otp_path,
            operation="generate_otp",
            token=token,
            json={"emailAddress": email, "correlation": correlation},
        )
        payload = self._json(response, "generate_otp")
        return self._otp_challenge(
            payload.get("id"),
            payload.get("correlation", correlation),
            payload.get("expiry"),
        )

    async def verify_user(self, token: Token, transaction_id: str, otp: str, pending: PendingSignup) -> str:
        await self._send(
            "POST",
            f"{self.otp_path}/{transaction_id}",
            operation="verify_otp",
            token=token,
            json={"otp": otp},
        )
        return await self._create_user(token, pending)


class ISVWebAuthnClient(WebAuthnClient):
    service_name = "isv.webauthn"
    # Ask ISV to return a signed assertion that is then exchanged for a token.
    assertion_result_params = {"returnJwt": "true"}

    @property
    def path_prefix(self) -> str:
        return f"/v2.0/factors/fido2/relyingparties/{self.relying_party_id}"
