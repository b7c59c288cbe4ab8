"""
Redis connection management.

Provides the shared async Redis client used for conversation state,
session context and the memory-usage tracker. Uses redis.asyncio.
"""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from journal.core.config import settings
from journal.core.exceptions import CacheUnavailableError

log = structlog.get_logger(__name__)

_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    """
    Return the process-wide Redis client, creating it on first use.

    The client holds a connection pool; it is safe to share across requests.
    """
    global _client
    if _client is None:
        _client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        log.info("redis_client_initialized", url=_redact(settings.redis_url))
    return _client


async def close_redis() -> None:
    """Close the shared client (application shutdown)."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        log.info("redis_client_closed")


@asynccontextmanager
async def cache_errors(operation: str) -> AsyncIterator[None]:
    """Re-raise Redis client failures as CacheUnavailableError."""
    try:
        yield
    except RedisError as e:
        log.error("cache_operation_failed", operation=operation, error=str(e))
        raise CacheUnavailableError(f"Cache {operation} failed: {e}") from e


async def get_json(client: redis.Redis, key: str) -> Optional[Any]:
    """Read a JSON value, returning None when absent or unparsable."""
    async with cache_errors("get"):
        raw = await client.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        log.warning("cache_value_not_json", key=key)
        return None


async def set_json(client: redis.Redis, key: str, value: Any, ttl_seconds: int) -> None:
    """Write a JSON value with a TTL."""
    async with cache_errors("set"):
        await client.set(key, json.dumps(value), ex=ttl_seconds)


async def check_cache_health() -> dict:
    """
    Check cache health for the health endpoint.

    Returns:
        Dict with health status.
    """
    try:
        client = get_redis()
        await client.ping()
        return {"status": "healthy", "url": _redact(settings.redis_url)}
    except Exception as e:
        log.error("cache_health_check_failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}


def _redact(url: str) -> str:
    """Hide credentials in a redis URL before logging it."""
    if "@" not in url:
        return url
    scheme, _, rest = url.partition("://")
    return f"{scheme}://***@{rest.split('@', 1)[1]}"
