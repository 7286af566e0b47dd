"""
Redis Connection Manager - Rate limit counter infrastructure.

Provides:
- Async client with health checks
- Fixed-window counters (INCR / EXPIRE / TTL)
- In-memory counter table when Redis is disabled or unreachable

Usage:
    from services.redis_client import get_redis

    redis = await get_redis()
    count = await redis.incr("agent:rl:search:203.0.113.7")
    if count == 1:
        await redis.expire("agent:rl:search:203.0.113.7", 60)
"""

import logging
import asyncio
import time
from collections import OrderedDict
from typing import Optional, Any, Dict, Tuple
from dataclasses import dataclass, field

import redis.asyncio as redis_async

logger = logging.getLogger(__name__)

# key -> (count, expires_at or None)
_Counter = Tuple[int, Optional[float]]


@dataclass
class RedisManager:
    """
    Redis connection manager with fallback support.

    In fallback mode counters live in a bounded in-process table; the
    rate limiter decides separately whether fallback counts are trusted.
    """

    url: str = "redis://localhost:6379/0"
    enabled: bool = True

    # Fallback table limit
    _fallback_max_entries: int = 10000

    # Connection state
    _client: Any = field(default=None, repr=False)
    _available: bool = field(default=False, repr=False)
    _fallback_mode: bool = field(default=False, repr=False)
    _counters: "OrderedDict[str, _Counter]" = field(default_factory=OrderedDict, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    _initialized: bool = field(default=False, repr=False)

    @property
    def available(self) -> bool:
        """Check if Redis is available."""
        return self._available and not self._fallback_mode

    @property
    def fallback_mode(self) -> bool:
        """Check if operating in fallback mode."""
        return self._fallback_mode

    async def connect(self) -> bool:
        """
        Establish Redis connection.

        Returns:
            True if connected, False if fallback mode activated
        """
        if not self.enabled:
            logger.info("Redis disabled by config, counting rate limits in memory")
            self._fallback_mode = True
            self._initialized = True
            return False

        async with self._lock:
            if self._initialized and self._available:
                return True

            try:
                self._client = redis_async.from_url(
                    self.url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=5.0,
                    socket_timeout=5.0,
                )
                await self._client.ping()
                self._available = True
                self._fallback_mode = False
                self._initialized = True
                logger.info(f"Redis connected: {self.url}")
                return True
            except Exception as e:
                logger.warning(f"Redis connection failed: {e}, counting rate limits in memory")
                self._fallback_mode = True
                self._available = False
                self._initialized = True
                return False

    async def disconnect(self) -> None:
        """Close Redis connection."""
        async with self._lock:
            if self._client:
                try:
                    await self._client.aclose()
                except Exception as e:
                    logger.warning(f"Error closing Redis: {e}")
                finally:
                    self._client = None
                    self._available = False

    async def health_check(self) -> Dict[str, Any]:
        """
        Check Redis health status.

        Returns:
            Dict with status, mode, and latency or counter info
        """
        if self._fallback_mode:
            return {"status": "fallback", "mode": "in-memory", "counters": len(self._counters)}

        if not self._client:
            return {"status": "disconnected", "mode": "none"}

        try:
            start = time.perf_counter()
            await self._client.ping()
            return {
                "status": "connected",
                "mode": "redis",
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            }
        except Exception as e:
            self._enter_fallback()
            logger.warning(f"Redis health check failed: {e}, switching to fallback")
            return {"status": "error", "mode": "fallback", "error": str(e)}

    # === Counters ===

    async def incr(self, key: str) -> int:
        """Increment a counter, keeping any expiry it already has."""
        if self._fallback_mode:
            return self._local_incr(key)

        try:
            return await self._client.incr(key)
        except Exception as e:
            logger.warning(f"Redis INCR failed for {key}: {e}")
            self._enter_fallback()
            return self._local_incr(key)

    async def expire(self, key: str, ttl: int) -> bool:
        """Set TTL on a key."""
        if self._fallback_mode:
            counter = self._local_get(key)
            if counter is not None:
                self._counters[key] = (counter[0], time.time() + ttl)
            return True

        try:
            await self._client.expire(key, ttl)
            return True
        except Exception as e:
            logger.warning(f"Redis EXPIRE failed for {key}: {e}")
            return False

    async def get(self, key: str) -> Optional[str]:
        """Current counter value as a string, None when absent."""
        if self._fallback_mode:
            counter = self._local_get(key)
            return str(counter[0]) if counter else None

        try:
            return await self._client.get(key)
        except Exception as e:
            logger.warning(f"Redis GET failed for {key}: {e}")
            self._enter_fallback()
            counter = self._local_get(key)
            return str(counter[0]) if counter else None

    async def get_ttl(self, key: str) -> int:
        """Remaining TTL in seconds (-1 when none is set)."""
        if self._fallback_mode:
            counter = self._local_get(key)
            if counter is None or counter[1] is None:
                return -1
            return max(0, int(counter[1] - time.time()))

        try:
            return await self._client.ttl(key)
        except Exception as e:
            logger.warning(f"Redis TTL failed for {key}: {e}")
            return -1

    # === Fallback table ===

    def _local_get(self, key: str) -> Optional[_Counter]:
        counter = self._counters.get(key)
        if counter is None:
            return None
        if counter[1] is not None and time.time() > counter[1]:
            del self._counters[key]
            return None
        return counter

    def _local_incr(self, key: str) -> int:
        counter = self._local_get(key)
        count, expires_at = counter if counter else (0, None)
        if key not in self._counters and len(self._counters) >= self._fallback_max_entries:
            self._evict()
        self._counters[key] = (count + 1, expires_at)
        self._counters.move_to_end(key)
        return count + 1

    def _evict(self) -> None:
        """Drop expired counters, then the least recently touched ones."""
        now = time.time()
        for key in [k for k, (_, exp) in self._counters.items() if exp is not None and now > exp]:
            del self._counters[key]
        while len(self._counters) >= self._fallback_max_entries:
            self._counters.popitem(last=False)

    # === Internal ===

    def _enter_fallback(self) -> None:
        """Switch to fallback mode."""
        if not self._fallback_mode:
            logger.warning("Redis unavailable, switching to fallback mode")
            self._fallback_mode = True
            self._available = False


# Singleton instance
_redis_manager: Optional[RedisManager] = None
_init_lock = asyncio.Lock()


async def get_redis() -> RedisManager:
    """
    Get the Redis manager singleton.

    Lazily initializes connection on first call.
    """
    global _redis_manager

    if _redis_manager is None:
        async with _init_lock:
            if _redis_manager is None:
                from config import runtime_config

                _redis_manager = RedisManager(
                    url=runtime_config.redis_url,
                    enabled=runtime_config.redis_enabled,
                )
                await _redis_manager.connect()

    return _redis_manager


async def close_redis() -> None:
    """Close the Redis connection (call on shutdown)."""
    global _redis_manager
    if _redis_manager:
        await _redis_manager.disconnect()
        _redis_manager = None
