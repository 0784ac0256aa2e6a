"""
Relying Party service for the gateway.
"""

from typing import Optional

import httpx
from fastapi import Depends, Response
from fastapi.responses import PlainTextResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shared.base_service import BaseService
from .adapters.factory import PlatformClients, build_platform_clients, create_http_client
from .caching.transactional_cache import TransactionalCache, create_cache
from .config import RelyingPartyConfig, load_config
from .domain.models import (
    ChallengeRequest,
    FIDO2Challenge,
    FIDO2Registration,
    FIDO2Verification,
    OTPChallenge,
    OTPVerification,
    Token,
    UserAuthentication,
    UserSignUp,
)
from .domain.orchestrator import RelyingPartyOrchestrator


bearer_scheme = HTTPBearer(auto_error=False)


def bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """Caller's bearer token, or None when the header is absent."""
    return credentials.credentials if credentials else None


class RelyingPartyService(BaseService):
    """Relying party service implementation."""

    def __init__(
        self,
        config: Optional[RelyingPartyConfig] = None,
        *,
        http: Optional[httpx.AsyncClient] = None,
        cache: Optional[TransactionalCache] = None,
        clients: Optional[PlatformClients] = None,
    ):
        super().__init__("relying_party", config or load_config())
        self.http = http or create_http_client(self.config)
        self.cache = cache or create_cache(self.config.redis_url)
        self.clients = clients or build_platform_clients(self.config, self.http)
        self.orchestrator = RelyingPartyOrchestrator(
            self.clients,
            self.cache,
            issuer=self.config.issuer,
            logger=self.logger,
            metrics=self.metrics,
        )

        self.logger.info("Configured for platform", platform=self.clients.platform.value)

        self._setup_relying_party_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.relying_party_service = self

    def _setup_relying_party_routes(self):
        """Set up relying-party-specific routes."""

        @self.app.get("/", response_class=PlainTextResponse)
        async def root():
            """Indicates the relying party is running."""
            return "Welcome to the IBM Security Verify Relying Party Server"

        # Existing accounts with a password (resource owner password grant).
        @self.app.post("/v1/authenticate", response_model=Token)
        async def authenticate(request: UserAuthentication):
            return await self.orchestrator.authenticate(request.username, request.password)

        # User sign-up, confirmed by the OTP validation below.
        @self.app.post("/v1/signup", response_model=OTPChallenge)
        async def signup(request: UserSignUp):
            return await self.orchestrator.signup(request.name, request.email)

        @self.app.post("/v1/validate", response_model=Token)
        async def validate(request: OTPVerification):
            return await self.orchestrator.validate(request.transaction_id, request.otp)

        # FIDO challenge for attestation (registration) or assertion (sign-in).
        @self.app.post("/v1/challenge", response_model=FIDO2Challenge)
        async def challenge(request: ChallengeRequest, bearer: Optional[str] = Depends(bearer_token)):
            return await self.orchestrator.challenge(request.type, request.display_name, bearer)

        @self.app.post("/v1/register", status_code=201)
        async def register(request: FIDO2Registration, bearer: Optional[str] = Depends(bearer_token)):
            await self.orchestrator.register(
                bearer,
                request.nickname,
                request.client_data_json,
                request.attestation_object,
                request.credential_id,
            )
            return Response(status_code=201)

        @self.app.post("/v1/signin", response_model=Token)
        async def signin(request: FIDO2Verification):
            return await self.orchestrator.signin(
                request.client_data_json,
                request.authenticator_data,
                request.credential_id,
                request.signature,
                request.user_handle,
            )

    async def startup(self):
        await self.cache.start()

    async def shutdown(self):
        await self.cache.stop()
        await self.http.aclose()

    async def _check_dependencies(self):
        """Check relying party dependencies."""
        return {"cache": "ok" if await self.cache.health_check() else "error"}


def create_app():
    """Create FastAPI application."""
    service = RelyingPartyService()
    return service.app


if __name__ == "__main__":
    service = RelyingPartyService()
    service.run()
