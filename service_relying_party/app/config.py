"""
Relying Party service configuration.

Read once at startup from the environment (or ``.env``). Variable names
follow the deployment convention: PLATFORM, BASE_URL, FIDO2_RELYING_PARTY_ID,
API_CLIENT_ID/API_CLIENT_SECRET, AUTH_CLIENT_ID/AUTH_CLIENT_SECRET and the
optional PROXY_HOST/PROXY_PORT pair.
"""

from typing import Any, Optional

from pydantic import Field, ValidationError, field_validator

from shared.config import BaseConfig
from shared.errors import MisconfiguredError
from .domain.models import Platform


class RelyingPartyConfig(BaseConfig):
    """Settings for the relying party gateway."""

    platform: Platform
    base_url: str = Field(pattern=r"^https?://\S+$")
    fido2_relying_party_id: str = Field(min_length=1)

    # Client credentials used to call platform APIs on the service's behalf.
    api_client_id: str = Field(min_length=1)
    api_client_secret: str = Field(min_length=1)

    # Client credentials used for end-user token flows.
    auth_client_id: str = Field(min_length=1)
    auth_client_secret: str = Field(min_length=1)

    proxy_host: Optional[str] = None
    proxy_port: Optional[int] = Field(default=None, gt=0, lt=65536)

    public_url: Optional[str] = None
    otp_lifetime_seconds: int = Field(default=300, gt=0)

    @field_validator("platform", mode="before")
    @classmethod
    def _parse_platform(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def issuer(self) -> str:
        """Address this service identifies itself with in signed assertions."""
        if self.public_url:
            return self.public_url.rstrip("/")
        host = "127.0.0.1" if self.host == "0.0.0.0" else self.host
        return f"http://{host}:{self.port}"

    @property
    def proxy_url(self) -> Optional[str]:
        """Outbound proxy, only when both host and port are set."""
        if not self.proxy_host or not self.proxy_port:
            return None
        host = self.proxy_host.rstrip("/")
        if "://" not in host:
            host = f"http://{host}"
        return f"{host}:{self.proxy_port}"


def load_config(**overrides: Any) -> RelyingPartyConfig:
    """Load settings, failing fast with ``MisconfiguredError``."""
    try:
        return RelyingPartyConfig(**overrides)
    except ValidationError as e:
        problems = [
            {"field": ".".join(str(part) for part in error["loc"]), "error": error["msg"]}
            for error in e.errors()
        ]
        raise MisconfiguredError(
            "Relying party settings are missing or invalid. Valid PLATFORM values are 'ISV' or 'ISVA'.",
            details={"errors": problems}
        ) from e
