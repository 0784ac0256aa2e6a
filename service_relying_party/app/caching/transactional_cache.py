"""
Key/value stores with per-entry TTL for short-lived relying party state.

Two things live here: pending sign-ups keyed by OTP transaction id, and the
service-level access token under a single fixed key. Values are pydantic
models stored as JSON so both backends hand out copies, never shared objects.
"""

import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple, Type, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel

from shared.logging import get_logger


ModelT = TypeVar("ModelT", bound=BaseModel)


class TransactionalCache(ABC):
    """Cache contract used by the orchestrator.

    ``get``/``set``/``delete`` are atomic per key and propagate failures.
    ``discard`` is the best-effort variant of ``delete``: it never raises,
    the entry's own TTL being the backstop.
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = get_logger(f"relying_party.cache.{name}")

    @abstractmethod
    async def get(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        """Return the live value under ``key`` or None when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds`` (must be positive)."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``."""

    async def discard(self, key: str) -> None:
        """Remove ``key``, logging instead of raising on failure."""
        try:
            await self.delete(key)
        except Exception as e:
            self.logger.warning(
                "Cache delete failed, entry left to expire",
                key=key,
                error=str(e)
            )

    async def start(self) -> None:
        """Open connections."""

    async def stop(self) -> None:
        """Close connections."""

    async def health_check(self) -> bool:
        return True

    @staticmethod
    def _check_ttl(ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")


class InMemoryTransactionalCache(TransactionalCache):
    """Process-local cache for single-node deployments and tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        super().__init__("memory")
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}  # key -> (json, expires_at)

    async def get(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        payload, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None

        return model.model_validate_json(payload)

    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        self._check_ttl(ttl_seconds)
        self._purge_expired()
        self._entries[key] = (value.model_dump_json(by_alias=True), self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._entries)

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]


class RedisTransactionalCache(TransactionalCache):
    """Redis-backed cache; expiry is enforced by Redis itself."""

    KEY_PREFIX = "relying_party:"

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None):
        super().__init__("redis")
        self.redis_url = redis_url
        self.redis: Optional[redis.Redis] = client

    async def start(self) -> None:
        if self.redis is not None:
            return
        self.redis = redis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30
        )
        await self.redis.ping()
        self.logger.info("Redis cache started")

    async def stop(self) -> None:
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis cache stopped")

    async def get(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        cached = await self.redis.get(self._key(key))
        if not cached:
            return None
        return model.model_validate_json(cached)

    async def set(self, key: str, value: BaseModel, ttl_seconds: int) -> None:
        self._check_ttl(ttl_seconds)
        await self.redis.set(self._key(key), value.model_dump_json(by_alias=True), ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self.redis.delete(self._key(key))

    async def health_check(self) -> bool:
        try:
            await self.redis.ping()
            return True
        except Exception:
            return False

    def _key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"


def create_cache(redis_url: Optional[str]) -> TransactionalCache:
    """Pick the Redis cache when a URL is configured, else the in-memory one."""
    if redis_url:
        return RedisTransactionalCache(redis_url)
    return InMemoryTransactionalCache()
