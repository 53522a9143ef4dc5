"""
Redis cache-aside for the public blog reads.

Two kinds of entries are cached: pages of the public listing (one key per
filter/sort/page combination) and the category counts.  Any blog write
drops both through ``invalidate_blogs``.  With Redis down or not
configured every read is a miss and every write a no-op, so callers never
have to care whether the cache is there.
"""
import json
import logging

import redis.asyncio as redis

from blog_platform.config import Settings

logger = logging.getLogger(__name__)

LIST_PREFIX = "blogs:list:"
CATEGORIES_KEY = "blogs:categories"


def listing_key(**params) -> str:
    """Stable key for one page of the public listing; parameter order does not matter."""
    return LIST_PREFIX + ":".join(f"{name}={params[name]}" for name in sorted(params))


class CacheManager:
    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self.list_ttl: int = 60
        self.categories_ttl: int = 300
        self._hits = 0
        self._misses = 0

    async def connect(self, config: Settings) -> None:
        """Open the pool and ping once; a failed ping leaves the cache disabled."""
        self.list_ttl = config.CACHE_TTL_LIST
        self.categories_ttl = config.CACHE_TTL_CATEGORIES
        client = redis.from_url(
            config.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis unreachable at %s, caching disabled: %s", config.REDIS_URL, exc)
            await client.aclose()
            return
        self._redis = client
        logger.info("Redis connected: %s", config.REDIS_URL)

    async def disconnect(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Raw JSON access
    # ------------------------------------------------------------------

    async def _read(self, key: str):
        if self._redis is None:
            self._misses += 1
            return None
        try:
            raw = await self._redis.get(key)
        except Exception as exc:
            logger.debug("Cache read failed for %r: %s", key, exc)
            raw = None
        if raw is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(raw)

    async def _write(self, key: str, value, ttl: int) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except Exception as exc:
            logger.debug("Cache write failed for %r: %s", key, exc)

    # ------------------------------------------------------------------
    # Blog reads
    # ------------------------------------------------------------------

    async def get_listing(self, key: str) -> dict | None:
        return await self._read(key)

    async def set_listing(self, key: str, page: dict) -> None:
        await self._write(key, page, self.list_ttl)

    async def get_categories(self) -> list | None:
        return await self._read(CATEGORIES_KEY)

    async def set_categories(self, categories: list) -> None:
        await self._write(CATEGORIES_KEY, categories, self.categories_ttl)

    async def invalidate_blogs(self) -> None:
        """
        Drop every cached listing page and the category counts.

        Listing keys are found with SCAN rather than KEYS so a large
        keyspace never blocks Redis.
        """
        if self._redis is None:
            return
        try:
            stale = [key async for key in self._redis.scan_iter(match=LIST_PREFIX + "*")]
            stale.append(CATEGORIES_KEY)
            removed = await self._redis.delete(*stale)
            logger.debug("Invalidated %d blog cache key(s)", removed)
        except Exception as exc:
            logger.debug("Blog cache invalidation failed: %s", exc)

    @property
    def stats(self) -> dict:
        """Hit/miss counters reported by ``/health``."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total else 0.0,
        }


cache = CacheManager()
