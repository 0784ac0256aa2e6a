"""
Transactional caching for the Relying Party service.

Holds pending OTP sign-ups and the service-level access token, each with
its own TTL. Redis is used when configured; otherwise a process-local
store keeps the same contract.
"""

from .transactional_cache import (
    TransactionalCache,
    InMemoryTransactionalCache,
    RedisTransactionalCache,
    create_cache,
)

__all__ = [
    "TransactionalCache",
    "InMemoryTransactionalCache",
    "RedisTransactionalCache",
    "create_cache",
]
