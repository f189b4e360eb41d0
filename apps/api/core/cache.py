"""
Redis Caching Layer

Provides cache utilities for derived analytics (daily snapshots).
Includes graceful degradation if Redis is unavailable: every helper returns
a miss/False instead of raising.
"""
import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional
import redis
from redis.exceptions import ConnectionError, TimeoutError, RedisError
from core.config import settings

logger = logging.getLogger(__name__)

# Redis connection pool (singleton)
_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """Get Redis client with connection pooling. Returns None if Redis unavailable."""
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    try:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True,
            health_check_interval=30
        )
        # Test connection
        _redis_client.ping()
        logger.info("Redis connection established")
        return _redis_client
    except (ConnectionError, TimeoutError, RedisError) as e:
        logger.warning(f"Redis unavailable: {e}. Caching disabled.")
        _redis_client = None
        return None


def cache_key(prefix: str, *args, **kwargs) -> str:
    """Generate cache key from prefix and arguments."""
    key_parts = [prefix]

    # Add args (skip None values)
    for arg in args:
        if arg is not None:
            key_parts.append(str(arg))

    # Add kwargs (sorted for consistency, skip None values)
    for k, v in sorted(kwargs.items()):
        if v is not None:
            key_parts.append(f"{k}:{v}")

    return ":".join(key_parts)


def delete_cache(key: str) -> bool:
    """Delete key from cache. Returns True if successful, False otherwise."""
    client = get_redis_client()
    if not client:
        return False

    try:
        client.delete(key)
        return True
    except (ConnectionError, TimeoutError, RedisError) as e:
        logger.warning(f"Cache delete error for key {key}: {e}")
        return False


def get_cache_many(keys: List[str], client: Optional[redis.Redis] = None) -> List[Optional[Any]]:
    """
    Fetch several keys in one MGET. Misses (and every key, on error) are None.

    Pass `client` when the caller has already resolved it, so a request
    makes at most one connection attempt.
    """
    if client is None:
        client = get_redis_client()
    if not client or not keys:
        return [None] * len(keys)

    try:
        values = client.mget(keys)
        return [json.loads(value) if value else None for value in values]
    except (ConnectionError, TimeoutError, RedisError) as e:
        logger.warning(f"Cache mget error for {len(keys)} keys: {e}")
        return [None] * len(keys)


def set_cache_many(values: Dict[str, Any], ttl: int = None, client: Optional[redis.Redis] = None) -> bool:
    """Set several keys with the same TTL in one pipeline round trip."""
    if client is None:
        client = get_redis_client()
    if not client:
        return False
    if not values:
        return True

    if ttl is None:
        ttl = settings.CACHE_TTL_DEFAULT

    try:
        pipe = client.pipeline(transaction=False)
        for key, value in values.items():
            pipe.setex(key, ttl, json.dumps(value, default=str))
        pipe.execute()
        return True
    except (ConnectionError, TimeoutError, RedisError) as e:
        logger.warning(f"Cache pipeline set error for {len(values)} keys: {e}")
        return False


def snapshot_cache_key(user_id: str, day: date) -> str:
    """Key for one user's cached DailySnapshot on one date."""
    return cache_key("snapshot", user_id, day.isoformat())


def invalidate_snapshot_cache(user_id: str, day: date) -> bool:
    """Drop the cached snapshot for a date whose log entries changed."""
    deleted = delete_cache(snapshot_cache_key(user_id, day))
    if deleted:
        logger.info(f"Invalidated snapshot cache for user {user_id} on {day.isoformat()}")
    return deleted
