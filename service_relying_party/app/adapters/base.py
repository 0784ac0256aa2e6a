"""
Base classes for identity platform clients.

Each platform (ISV, ISVA) provides a Token, User and WebAuthn client. They
share one ``httpx.AsyncClient`` and turn every transport error or non-2xx
response into a ``BackendCallError``; nothing here retries.
"""

import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
import jwt
from pydantic import ValidationError

from shared.errors import BackendCallError
from shared.logging import get_logger
from ..domain.models import ChallengeType, FIDO2Challenge, OTPChallenge, PendingSignup, Token


class PlatformClient:
    """HTTP plumbing shared by all platform clients."""

    service_name = "platform"

    def __init__(self, http: httpx.AsyncClient, base_url: str):
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.logger = get_logger(f"relying_party.adapters.{self.service_name}")

    async def _send(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        token: Optional[Token] = None,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        request_headers = {"Accept": "application/json"}
        if token is not None:
            request_headers["Authorization"] = f"Bearer {token.access_token}"
        if headers:
            request_headers.update(headers)

        try:
            response = await self.http.request(
                method,
                url,
                json=json,
                data=data,
                params=params,
                headers=request_headers,
            )
        except httpx.HTTPError as e:
            self.logger.error("Platform request failed", operation=operation, url=url, error=str(e))
            raise BackendCallError(
                self.service_name,
                f"{operation} request failed",
                details={"error": str(e)}
            ) from e

        if response.is_success:
            self.logger.debug("Platform request succeeded", operation=operation, status_code=response.status_code)
            return response

        details = self._error_details(response)
        self.logger.warning(
            "Platform request rejected",
            operation=operation,
            url=url,
            status_code=response.status_code,
            **details
        )
        raise BackendCallError(
            self.service_name,
            f"{operation} returned {response.status_code}",
            status_code=response.status_code,
            details=details
        )

    def _json(self, response: httpx.Response, operation: str) -> Dict[str, Any]:
        """Decode a JSON object body or fail as a backend error."""
        try:
            payload = response.json()
        except ValueError as e:
            raise BackendCallError(self.service_name, f"{operation} returned a non-JSON body") from e

        if not isinstance(payload, dict):
            raise BackendCallError(self.service_name, f"{operation} returned an unexpected body")
        return payload

    @staticmethod
    def _error_details(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {"body": response.text[:200]}

        if not isinstance(body, dict):
            return {}
        keys = ("error", "error_description", "messageId", "messageDescription", "errorMessage")
        return {key: body[key] for key in keys if key in body}


class TokenClient(PlatformClient):
    """OAuth token endpoint client bound to one client id/secret pair."""

    service_name = "token"
    token_path = ""
    JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
    ASSERTION_LIFETIME_SECONDS = 300

    def __init__(self, http: httpx.AsyncClient, base_url: str, client_id: str, client_secret: str):
        super().__init__(http, base_url)
        self.client_id = client_id
        self.client_secret = client_secret

    @property
    def token_url(self) -> str:
        return f"{self.base_url}{self.token_path}"

    async def password_grant(self, username: str, password: str) -> Token:
        """Resource owner password credentials grant."""
        return await self._grant("password", username=username, password=password, scope="openid")

    async def client_credentials_grant(self) -> Token:
        """Token for the API client itself."""
        return await self._grant("client_credentials")

    async def jwt_bearer_grant(self, assertion: str) -> Token:
        """Exchange a signed JWT assertion for a token."""
        return await self._grant(self.JWT_BEARER_GRANT, assertion=assertion, scope="openid")

    def build_signed_assertion(self, signing_secret: str, subject: str, issuer: str) -> str:
        """Build an HS256 JWT asserting ``subject`` for the JWT-bearer grant."""
        now = int(time.time())
        claims = {
            "sub": subject,
            "iss": issuer,
            "aud": self.token_url,
            "iat": now,
            "exp": now + self.ASSERTION_LIFETIME_SECONDS,
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(claims, signing_secret, algorithm="HS256")

    async def _grant(self, grant_type: str, **params: str) -> Token:
        data = {
            "grant_type": grant_type,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            **params,
        }
        response = await self._send("POST", self.token_path, operation=grant_type, data=data)
        payload = self._json(response, grant_type)

        try:
            return Token.model_validate(payload)
        except ValidationError as e:
            raise BackendCallError(self.service_name, "token response did not contain an access token") from e


class UserClient(PlatformClient, ABC):
    """Email OTP verification and SCIM user provisioning."""

    service_name = "users"
    scim_path = ""

    @abstractmethod
    async def generate_otp(self, token: Token, email: str) -> OTPChallenge:
        """Send a one-time password to ``email``."""

    @abstractmethod
    async def verify_user(self, token: Token, transaction_id: str, otp: str, pending: PendingSignup) -> str:
        """Confirm the OTP, create the user and return its id."""

    def _otp_challenge(self, transaction_id: Any, correlation: Any, expiry: Any) -> OTPChallenge:
        try:
            return OTPChallenge(transaction_id=transaction_id, correlation=correlation, expiry=expiry)
        except ValidationError as e:
            raise BackendCallError(self.service_name, "OTP response was missing the transaction or expiry") from e

    async def _create_user(self, token: Token, pending: PendingSignup) -> str:
        body = {
            "schemas": [
                "urn:ietf:params:scim:schemas:core:2.0:User",
                "urn:ietf:params:scim:schemas:extension:ibm:2.0:User",
            ],
            "userName": pending.email,
            "name": {"formatted": pending.name},
            "emails": [{"value": pending.email, "type": "work"}],
            "active": True,
        }
        response = await self._send(
            "POST",
            self.scim_path,
            operation="create_user",
            token=token,
            json=body,
            headers={"Content-Type": "application/scim+json"},
        )
        user_id = self._json(response, "create_user").get("id")
        if not user_id:
            raise BackendCallError(self.service_name, "create_user response did not contain an id")

        self.logger.info("User created", user_id=user_id)
        return user_id


class WebAuthnClient(PlatformClient):
    """FIDO2 relying party endpoints: options and result for both ceremonies."""

    service_name = "webauthn"
    assertion_result_params: Dict[str, str] = {}

    def __init__(self, http: httpx.AsyncClient, base_url: str, relying_party_id: str):
        super().__init__(http, base_url)
        self.relying_party_id = relying_party_id

    @property
    def path_prefix(self) -> str:
        raise NotImplementedError

    async def generate_challenge(
        self,
        token: Token,
        display_name: Optional[str],
        challenge_type: ChallengeType,
    ) -> FIDO2Challenge:
        if challenge_type is ChallengeType.ATTESTATION:
            path = f"{self.path_prefix}/attestation/options"
            body: Dict[str, Any] = {"attestation": "direct"}
            if display_name:
                body["displayName"] = display_name
        else:
            path = f"{self.path_prefix}/assertion/options"
            body = {"userVerification": "preferred"}

        operation = f"{challenge_type.value}_options"
        response = await self._send("POST", path, operation=operation, token=token, json=body)
        payload = self._json(response, operation)
        payload["type"] = challenge_type.value

        try:
            return FIDO2Challenge.model_validate(payload)
        except ValidationError as e:
            raise BackendCallError(self.service_name, f"{operation} response did not contain a challenge") from e

    async def create_credential(
        self,
        token: Token,
        nickname: str,
        client_data_json: str,
        attestation_object: str,
        credential_id: str,
    ) -> None:
        body = {
            "type": "public-key",
            "id": credential_id,
            "rawId": credential_id,
            "response": {
                "clientDataJSON": client_data_json,
                "attestationObject": attestation_object,
            },
            "nickname": nickname,
            "enabled": True,
        }
        await self._send(
            "POST",
            f"{self.path_prefix}/attestation/result",
            operation="attestation_result",
            token=token,
            json=body,
        )
        self.logger.info("Authenticator registered", nickname=nickname)

    async def verify_credential(
        self,
        token: Token,
        client_data_json: str,
        authenticator_data: str,
        credential_id: str,
        signature: str,
        user_handle: str,
    ) -> bytes:
        """Submit an assertion; the raw body is interpreted by the caller."""
        body = {
            "type": "public-key",
            "id": credential_id,
            "rawId": credential_id,
            "response": {
                "clientDataJSON": client_data_json,
                "authenticatorData": authenticator_data,
                "signature": signature,
                "userHandle": user_handle,
            },
        }
        response = await self._send(
            "POST",
            f"{self.path_prefix}/assertion/result",
            operation="assertion_result",
            token=token,
            json=body,
            params=self.assertion_result_params or None,
        )
        return response.content
