"""
Platform selection: builds the client set for the configured platform.
"""

from dataclasses import dataclass

import httpx

from shared.logging import get_logger
from ..config import RelyingPartyConfig
from ..domain.models import Platform
from .base import TokenClient, UserClient, WebAuthnClient
from .isv import ISVTokenClient, ISVUserClient, ISVWebAuthnClient
from .isva import ISVATokenClient, ISVAUserClient, ISVAWebAuthnClient


logger = get_logger("relying_party.adapters.factory")


@dataclass(frozen=True)
class PlatformClients:
    """Backend clients bound to one platform for the life of the process."""

    platform: Platform
    users: UserClient
    webauthn: WebAuthnClient
    auth_tokens: TokenClient  # end-user flows (AUTH_CLIENT_*)
    api_tokens: TokenClient   # service-level access (API_CLIENT_*)


def create_http_client(config: RelyingPartyConfig) -> httpx.AsyncClient:
    """Shared outbound HTTP client, routed through the proxy when configured."""
    proxy = config.proxy_url
    if proxy:
        logger.info("Server proxy configured", proxy=proxy)
    return httpx.AsyncClient(timeout=config.http_timeout_seconds, proxy=proxy)


def build_platform_clients(config: RelyingPartyConfig, http: httpx.AsyncClient) -> PlatformClients:
    """Instantiate the User, WebAuthn and Token clients for ``config.platform``."""
    base_url = config.base_url
    platform = config.platform

    if platform is Platform.ISV:
        clients = PlatformClients(
            platform=platform,
            users=ISVUserClient(http, base_url),
            webauthn=ISVWebAuthnClient(http, base_url, config.fido2_relying_party_id),
            auth_tokens=ISVTokenClient(http, base_url, config.auth_client_id, config.auth_client_secret),
            api_tokens=ISVTokenClient(http, base_url, config.api_client_id, config.api_client_secret),
        )
    elif platform is Platform.ISVA:
        clients = PlatformClients(
            platform=platform,
            users=ISVAUserClient(http, base_url, otp_lifetime_seconds=config.otp_lifetime_seconds),
            webauthn=ISVAWebAuthnClient(http, base_url, config.fido2_relying_party_id),
            auth_tokens=ISVATokenClient(http, base_url, config.auth_client_id, config.auth_client_secret),
            api_tokens=ISVATokenClient(http, base_url, config.api_client_id, config.api_client_secret),
        )
    else:
        raise ValueError(f"Unsupported platform: {platform}")

    logger.info("Configured platform clients", platform=platform.value, base_url=base_url)
    return clients
