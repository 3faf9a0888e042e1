import json
import logging
from typing import Any, Optional

import redis

from app.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Create Redis client
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


class CacheService:
    """
    Namespaced Redis cache (keys look like ``<namespace>:<id>``).

    Read-through only: a Redis failure is logged and behaves like a miss, so
    the stock engine keeps working without Redis. Writers invalidate entries
    after their transaction commits, never before.
    """

    def __init__(self, namespace: str, client: redis.Redis = None, ttl: int = None):
        self.namespace = namespace
        self.client = client or redis_client
        self.ttl = ttl or settings.CACHE_TTL

    def key(self, ident) -> str:
        return f"{self.namespace}:{ident}"

    def get(self, ident) -> Optional[Any]:
        """Return the cached value for ``ident``, or None on a miss."""
        cache_key = self.key(ident)
        try:
            raw = self.client.get(cache_key)
        except redis.RedisError as e:
            logger.debug(f"Cache get failed for {cache_key}: {e}")
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding corrupt cache entry {cache_key}")
            return None

    def set(self, ident, value: Any) -> bool:
        cache_key = self.key(ident)
        try:
            self.client.setex(cache_key, self.ttl, json.dumps(value, default=str))
            return True
        except (redis.RedisError, TypeError) as e:
            logger.debug(f"Cache set failed for {cache_key}: {e}")
            return False

    def invalidate(self, *idents) -> int:
        """
        Drop the entries for the given ids, skipping None.

        Returns:
            Number of keys whose deletion was sent to Redis
        """
        keys = sorted({self.key(i) for i in idents if i is not None})
        dropped = 0
        for cache_key in keys:
            try:
                self.client.delete(cache_key)
                dropped += 1
            except redis.RedisError as e:
                logger.warning(f"Cache invalidation failed for {cache_key}: {e}")
        return dropped


# Product details, invalidated after every committed catalog or stock change
product_cache = CacheService("product")
