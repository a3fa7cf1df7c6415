"""
Redis read-through cache for catalog lists and estimation history.

Entries are scoped per owner so one user's cached catalog is never served to
another. Redis is optional: with CACHE_ENABLED off, or when the server cannot
be reached at startup, reads miss and writes are dropped.
"""

import logging
import json
from typing import Any, Optional, Callable, Dict
from datetime import datetime, date
from decimal import Decimal

import redis
from redis.exceptions import RedisError
from flask import Flask, current_app

logger = logging.getLogger(__name__)

# Connection options shared by every client created here
CLIENT_OPTIONS = {
    'decode_responses': True,
    'socket_connect_timeout': 3,
    'socket_timeout': 3,
    'retry_on_timeout': True,
    'health_check_interval': 30,
}

SCAN_BATCH = 100
DECIMAL_TAG = '__decimal__'


def _encode_extra(obj: Any) -> Any:
    # Decimals travel tagged so money values come back exact
    if isinstance(obj, Decimal):
        return {DECIMAL_TAG: str(obj)}
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Cannot cache value of type {type(obj).__name__}")


def _decode_extra(obj: Dict[str, Any]) -> Any:
    if DECIMAL_TAG in obj:
        return Decimal(obj[DECIMAL_TAG])
    return obj


class CacheService:
    """
    Owner-scoped cache on top of a Redis client.

    Keys look like ``{prefix}:user:{owner_id}:{module}:{key}``, so a whole
    module of one owner can be dropped with a single pattern scan.
    """

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self.prefix = 'estimator'
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Connect using REDIS_URL unless caching is switched off."""
        self.prefix = app.config.get('CACHE_KEY_PREFIX', self.prefix)
        if not app.config.get('CACHE_ENABLED', True):
            logger.info("[CACHE] Disabled by configuration")
            return

        url = app.config.get('REDIS_URL', 'redis://localhost:6379/0')
        client = redis.from_url(url, **CLIENT_OPTIONS)
        try:
            client.ping()
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unreachable at {url} ({e}); running without cache")
            return
        self.client = client
        logger.info(f"[CACHE] Using Redis at {url}")

    def is_available(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def _build_key(self, owner_id: str, module: str, key: str) -> str:
        return f"{self.prefix}:user:{owner_id}:{module}:{key}"

    def _serialize(self, value: Any) -> str:
        return json.dumps(value, default=_encode_extra)

    def _deserialize(self, payload: str) -> Any:
        return json.loads(payload, object_hook=_decode_extra)

    def get(self, owner_id: str, module: str, key: str) -> Optional[Any]:
        """Cached value, or None on a miss or any Redis problem."""
        if not self.is_available():
            return None
        try:
            payload = self.client.get(self._build_key(owner_id, module, key))
            return None if payload is None else self._deserialize(payload)
        except (RedisError, ValueError) as e:
            logger.warning(f"[CACHE] Read failed for {module}/{key}: {e}")
            return None

    def set(self, owner_id: str, module: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store value for ttl seconds (CACHE_DEFAULT_TTL when omitted)."""
        if not self.is_available():
            return False
        if ttl is None:
            ttl = current_app.config.get('CACHE_DEFAULT_TTL', 60)
        try:
            self.client.setex(self._build_key(owner_id, module, key), ttl, self._serialize(value))
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Write failed for {module}/{key}: {e}")
            return False
        return True

    def delete_pattern(self, owner_id: str, module: str, pattern: str = "*") -> int:
        """Drop every key of owner/module matching pattern; returns the count."""
        if not self.is_available():
            return 0
        match = self._build_key(owner_id, module, pattern)
        removed = 0
        cursor = 0
        try:
            while True:
                cursor, keys = self.client.scan(cursor, match=match, count=SCAN_BATCH)
                if keys:
                    self.client.delete(*keys)
                    removed += len(keys)
                if not cursor:
                    break
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidation of {match} failed: {e}")
            return removed
        if removed:
            logger.info(f"[CACHE] Invalidated {removed} key(s) under {match}")
        return removed

    def invalidate_module(self, owner_id: str, module: str) -> int:
        return self.delete_pattern(owner_id, module)

    def memoize(self, owner_id: str, module: str, key: str, loader_fn: Callable[[], Any],
                ttl: Optional[int] = None) -> Any:
        """Return the cached value, or call loader_fn and cache its result."""
        cached = self.get(owner_id, module, key)
        if cached is not None:
            return cached
        value = loader_fn()
        self.set(owner_id, module, key, value, ttl)
        return value


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> CacheService:
    """Create the process-wide cache and register it on the app."""
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service
    return _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("init_cache() has not been called")
    return _cache_service
