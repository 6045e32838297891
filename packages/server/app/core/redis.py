"""Redis connection management and the token revocation list."""

from __future__ import annotations

import redis.asyncio as redis

from app.core.config import get_settings

settings = get_settings()

REVOKED_TOKEN_PREFIX = "tt:jwt:revoked:"

_redis_pool: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Get or create the Redis connection."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None


async def revoke_token(jti: str, ttl_seconds: int) -> None:
    """Add a token ID to the revocation list until it would have expired anyway."""
    client = await get_redis()
    await client.setex(f"{REVOKED_TOKEN_PREFIX}{jti}", max(ttl_seconds, 1), "1")


async def is_token_revoked(jti: str) -> bool:
    client = await get_redis()
    return await client.exists(f"{REVOKED_TOKEN_PREFIX}{jti}") > 0
