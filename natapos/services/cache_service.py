"""
Redis summary cache.

Holds the live shift summaries between sales. Every figure here can be
rebuilt from the database, so a missing or broken Redis only costs a
recomputation.
"""

import logging
from typing import Any, Callable, Optional

import redis
from redis.exceptions import RedisError
from flask import Flask

from natapos.utils.serialization import dumps, loads

logger = logging.getLogger(__name__)


class SummaryCache:
    """Keys look like {prefix}:{namespace}:{key}, e.g. natapos:shift_summary:12."""

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._prefix = 'natapos'
        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'natapos')
        if not app.config.get('CACHE_ENABLED', True):
            logger.info("[CACHE] Summary cache disabled by config")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        try:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            client.ping()
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unreachable at {redis_url}: {e}. Summaries will be computed live.")
            return
        self.client = client
        logger.info(f"[CACHE] Redis connected: {redis_url}")

    def is_available(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def _key(self, namespace: str, key: str) -> str:
        return f"{self._prefix}:{namespace}:{key}"

    def remember(self, namespace: str, key: str, ttl: int, loader: Callable[[], Any]) -> Any:
        """Cached value for the key, or loader() stored for `ttl` seconds."""
        if not self.is_available():
            return loader()

        full_key = self._key(namespace, key)
        try:
            cached = self.client.get(full_key)
            if cached is not None:
                return loads(cached)
        except (RedisError, ValueError) as e:
            logger.warning(f"[CACHE] Read of {full_key} failed: {e}")

        value = loader()
        try:
            self.client.setex(full_key, ttl, dumps(value))
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Write of {full_key} failed: {e}")
        return value

    def forget(self, namespace: str) -> int:
        """Drop every key of a namespace. Returns how many were removed."""
        if not self.is_available():
            return 0
        pattern = self._key(namespace, '*')
        try:
            keys = list(self.client.scan_iter(match=pattern, count=100))
            if keys:
                self.client.delete(*keys)
                logger.info(f"[CACHE] Dropped {len(keys)} keys under {pattern}")
            return len(keys)
        except RedisError as e:
            logger.warning(f"[CACHE] Could not drop {pattern}: {e}")
            return 0


_cache: Optional[SummaryCache] = None


def init_cache(app: Flask) -> None:
    global _cache
    _cache = SummaryCache(app)
    app.extensions['cache'] = _cache


def get_cache() -> SummaryCache:
    if _cache is None:
        raise RuntimeError("Cache not initialized.")
    return _cache


def invalidate_summaries() -> None:
    """Drop cached shift summaries after a sale or cash movement."""
    if _cache is None:
        logger.debug("[CACHE] Summary invalidation skipped: cache not initialized")
        return
    _cache.forget('shift_summary')
