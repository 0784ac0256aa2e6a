"""
Shared configuration management for the Relying Party gateway.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Listener
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)

    # External services
    redis_url: Optional[str] = Field(default=None)
    http_timeout_seconds: float = Field(default=10.0, gt=0)
