"""
Identity platform adapters.

One Token, User and WebAuthn client per platform (ISV and ISVA), plus the
factory that picks the set matching the configured platform.
"""

from .base import PlatformClient, TokenClient, UserClient, WebAuthnClient
from .factory import PlatformClients, build_platform_clients, create_http_client

__all__ = [
    "PlatformClient",
    "TokenClient",
    "UserClient",
    "WebAuthnClient",
    "PlatformClients",
    "build_platform_clients",
    "create_http_client",
]
