"""
Rate limiting for the public confirmation surface

Stores expose a single `check(key) -> bool` call so the in-process store can be
swapped for the Redis-backed one without touching callers. Both are
abuse mitigation only, not a security boundary.
"""

import logging
import time
from threading import Lock
from typing import Callable, Optional

import redis
from fastapi import Request

from .config import (
    CONFIRMATION_RATE_LIMIT,
    CONFIRMATION_RATE_WINDOW_SECONDS,
    RATE_LIMIT_BACKEND,
    RATE_LIMIT_MAX_KEYS,
    REDIS_URL,
)

logger = logging.getLogger(__name__)


class InMemoryRateLimitStore:
    """
    Fixed-window counter per key, held in a bounded dict.

    Expired windows are swept opportunistically once the dict grows past
    `max_keys`; if every entry is still live the entries closest to expiry
    are evicted so the dict never exceeds its bound.
    """

    def __init__(
        self,
        limit: int = CONFIRMATION_RATE_LIMIT,
        window_seconds: int = CONFIRMATION_RATE_WINDOW_SECONDS,
        max_keys: int = RATE_LIMIT_MAX_KEYS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self._clock = clock
        # Format: {key: {"count": int, "reset_time": float}}
        self._entries: dict[str, dict] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def _cleanup(self, now: float) -> None:
        expired_keys = [k for k, v in self._entries.items() if now >= v["reset_time"]]
        for k in expired_keys:
            del self._entries[k]
        if expired_keys:
            logger.debug(f"🧹 Cleaned up {len(expired_keys)} expired rate limit entries")

        overflow = len(self._entries) - self.max_keys
        if overflow >= 0:
            # Make room for the incoming key
            oldest = sorted(self._entries, key=lambda k: self._entries[k]["reset_time"])
            for k in oldest[: overflow + 1]:
                del self._entries[k]

    def check(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now >= entry["reset_time"]:
                if entry is None and len(self._entries) >= self.max_keys:
                    self._cleanup(now)
                self._entries[key] = {"count": 1, "reset_time": now + self.window_seconds}
                return True

            if entry["count"] >= self.limit:
                return False

            entry["count"] += 1
            return True

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisRateLimitStore:
    """Fixed-window counter shared between workers (INCR + EXPIRE)"""

    def __init__(
        self,
        client: redis.Redis,
        limit: int = CONFIRMATION_RATE_LIMIT,
        window_seconds: int = CONFIRMATION_RATE_WINDOW_SECONDS,
        key_prefix: str = "rate_limit",
    ):
        self.client = client
        self.limit = limit
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix

    def check(self, key: str) -> bool:
        redis_key = f"{self.key_prefix}:{key}"
        try:
            pipe = self.client.pipeline()
            pipe.incr(redis_key)
            pipe.ttl(redis_key)
            count, ttl = pipe.execute()
            if ttl < 0:
                # First hit in this window (or a key that lost its expiry)
                self.client.expire(redis_key, self.window_seconds)
        except redis.RedisError as e:
            logger.error(f"❌ Rate limit check failed: {str(e)}")
            # Fail closed - deny request if rate limiting fails
            logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
            return False
        return int(count) <= self.limit


def get_redis_client(redis_url: Optional[str] = REDIS_URL) -> redis.Redis:
    """Create a Redis client from REDIS_URL and test the connection"""
    if not redis_url:
        raise RuntimeError("REDIS_URL is not configured")

    client = redis.from_url(
        redis_url,
        decode_responses=True,
        socket_connect_timeout=15,
        socket_timeout=30,
        retry_on_timeout=True,
        health_check_interval=30,
    )
    client.ping()
    logger.info("📡 Redis connected for rate limiting")
    return client


_store = None


def get_rate_limit_store():
    """FastAPI dependency returning the process-wide store for the configured backend"""
    global _store
    if _store is None:
        if RATE_LIMIT_BACKEND == "redis":
            _store = RedisRateLimitStore(get_redis_client())
        else:
            _store = InMemoryRateLimitStore()
        logger.info(f"🔄 Rate limiting backend: {type(_store).__name__}")
    return _store


def get_client_ip(request: Request) -> str:
    """Client address: first X-Forwarded-For hop, then X-Real-IP, then the socket peer"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"
