"""Redis store for caching and distributed locks.

Handles:
- Caching with TTL policies
- Distributed locks (serialize competing writers)

TTL policies:
- Country module configuration: 5 minutes (configurable, invalidated on write)
- Request locks: 10 seconds

Redis is optional: callers treat RuntimeError (not initialized) and
redis.RedisError (unreachable) as "skip the accelerator".
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import json
import logging
from typing import Any

import redis.asyncio as redis

from app.settings import get_settings

# TTL constants (in seconds)
TTL_REQUEST_LOCK = 10

# Key prefixes
PREFIX_MODULE_CONFIG = "modules:"
PREFIX_LOCK = "lock:"

# Redis client (initialized on startup)
_redis: redis.Redis | None = None
logger = logging.getLogger("uvicorn.error")


class LockNotAcquired(Exception):
    """Raised when another holder owns the lock."""


async def init_redis() -> None:
    """Initialize Redis connection."""
    global _redis
    settings = get_settings()
    _redis = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    # Validate connectivity early (especially for `rediss://` in production).
    await _redis.ping()
    logger.info("Redis connected")


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def _get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


# ============================================================
# Generic cache operations
# ============================================================


async def cache_get(key: str) -> str | None:
    """Get value from cache.

    Args:
        key: Cache key.

    Returns:
        Cached value or None if not found.
    """
    return await _get_redis().get(key)


async def cache_set(key: str, value: str, ttl: int) -> None:
    """Set value in cache with TTL.

    Args:
        key: Cache key.
        value: Value to cache.
        ttl: Time-to-live in seconds.
    """
    await _get_redis().setex(key, ttl, value)


async def cache_delete(key: str) -> None:
    """Delete value from cache.

    Args:
        key: Cache key.
    """
    await _get_redis().delete(key)


async def cache_get_json(key: str) -> dict[str, Any] | None:
    """Get JSON value from cache.

    Args:
        key: Cache key.

    Returns:
        Parsed JSON dict or None if not found.
    """
    value = await cache_get(key)
    if value:
        return json.loads(value)
    return None


async def cache_set_json(key: str, value: dict[str, Any], ttl: int) -> None:
    """Set JSON value in cache.

    Args:
        key: Cache key.
        value: Dict to cache as JSON.
        ttl: Time-to-live in seconds.
    """
    await cache_set(key, json.dumps(value), ttl)


# ============================================================
# Country module configuration cache
# ============================================================


async def get_module_config_cache(country_code: str) -> dict[str, Any] | None:
    """Get cached module configuration for a country."""
    return await cache_get_json(f"{PREFIX_MODULE_CONFIG}{country_code.upper()}")


async def set_module_config_cache(country_code: str, payload: dict[str, Any], ttl: int) -> None:
    """Cache module configuration for a country."""
    await cache_set_json(f"{PREFIX_MODULE_CONFIG}{country_code.upper()}", payload, ttl)


async def invalidate_module_config_cache(country_code: str) -> None:
    """Drop cached module configuration after a write."""
    await cache_delete(f"{PREFIX_MODULE_CONFIG}{country_code.upper()}")


# ============================================================
# Distributed locks
# ============================================================


async def acquire_lock(key: str, ttl: int = TTL_REQUEST_LOCK) -> bool:
    """Acquire a distributed lock.

    Args:
        key: Lock key (e.g., request id).
        ttl: Lock timeout in seconds.

    Returns:
        True if lock acquired, False if already locked.
    """
    lock_key = f"{PREFIX_LOCK}{key}"
    # SET NX (only if not exists) with TTL
    result = await _get_redis().set(lock_key, "1", nx=True, ex=ttl)
    return result is not None


async def release_lock(key: str) -> None:
    """Release a distributed lock.

    Args:
        key: Lock key.
    """
    await cache_delete(f"{PREFIX_LOCK}{key}")


@asynccontextmanager
async def optional_lock(key: str, ttl: int = TTL_REQUEST_LOCK) -> AsyncGenerator[bool, None]:
    """Hold a lock for the block when Redis is available.

    Yields True when the lock is held, False when Redis is unavailable and the
    block runs unlocked.

    Raises:
        LockNotAcquired: If another holder owns the lock.
    """
    try:
        acquired: bool | None = await acquire_lock(key, ttl)
    except (RuntimeError, redis.RedisError) as e:
        logger.warning(f"Redis lock unavailable for {key}, continuing unlocked: {e}")
        acquired = None

    if acquired is None:
        yield False
        return

    if not acquired:
        raise LockNotAcquired(key)

    try:
        yield True
    finally:
        try:
            await release_lock(key)
        except redis.RedisError as e:
            logger.warning(f"Redis lock release failed for {key}: {e}")
