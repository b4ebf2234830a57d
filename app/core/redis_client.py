"""Redis client for caching market quotes and coordinating refresh runs."""

import json
import logging
from typing import Optional

import redis.asyncio as aioredis

from app.core.config import settings

logger = logging.getLogger(__name__)

# Async Redis client singleton
_redis: Optional[aioredis.Redis] = None

REFRESH_LOCK_KEY = "lock:price_refresh"


async def get_redis() -> aioredis.Redis:
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=2,
            socket_connect_timeout=2,
        )
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


async def get_cached_quote(symbol: str) -> Optional[dict]:
    """Get a cached market quote."""
    try:
        r = await get_redis()
        data = await r.get(f"quote:{symbol.upper()}")
        if data:
            return json.loads(data)
    except Exception as e:
        logger.debug("Redis cache miss for quote %s: %s", symbol, e)
    return None


async def cache_quote(symbol: str, quote: dict, ttl: Optional[int] = None):
    """Cache a market quote (default PRICE_CACHE_TTL_SECONDS)."""
    try:
        r = await get_redis()
        await r.setex(
            f"quote:{symbol.upper()}",
            ttl or settings.PRICE_CACHE_TTL_SECONDS,
            json.dumps(quote, default=str),
        )
    except Exception as e:
        logger.warning("Failed to cache quote for %s: %s", symbol, e)


async def get_cached_coin_id(symbol: str) -> Optional[str]:
    """Get a previously discovered CoinGecko id."""
    try:
        r = await get_redis()
        return await r.get(f"coingecko_id:{symbol.upper()}")
    except Exception as e:
        logger.debug("Redis cache miss for coin id %s: %s", symbol, e)
    return None


async def cache_coin_id(symbol: str, coin_id: str, ttl: int = 604800):
    """Cache a discovered CoinGecko id (default 7 days TTL)."""
    try:
        r = await get_redis()
        await r.setex(f"coingecko_id:{symbol.upper()}", ttl, coin_id)
    except Exception as e:
        logger.warning("Failed to cache coin id for %s: %s", symbol, e)


async def acquire_refresh_lock(ttl: int) -> bool:
    """Take the cross-process refresh lock. Returns True when Redis is unreachable."""
    try:
        r = await get_redis()
        return bool(await r.set(REFRESH_LOCK_KEY, "1", nx=True, ex=ttl))
    except Exception as e:
        logger.warning("Redis unavailable for refresh lock, continuing unguarded: %s", e)
        return True


async def release_refresh_lock() -> None:
    try:
        r = await get_redis()
        await r.delete(REFRESH_LOCK_KEY)
    except Exception as e:
        logger.warning("Failed to release refresh lock: %s", e)


async def ping() -> bool:
    """True when Redis answers."""
    try:
        r = await get_redis()
        return bool(await r.ping())
    except Exception as e:
        logger.debug("Redis ping failed: %s", e)
        return False
