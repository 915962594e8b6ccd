"""
Student List Cache

Caches admin student-list pages in Redis. Every cache key embeds a version
number stored under VERSION_KEY; invalidation increments the version, which
orphans all existing list entries at once (they then age out via TTL).

The cache is optional: without a Redis client every call falls through to
the factory and invalidation is a no-op.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

KEY_PREFIX = "student_list"
VERSION_KEY = f"{KEY_PREFIX}:version"
VERSION_TTL_SECONDS = 24 * 60 * 60
ENTRY_TTL_SECONDS = 30 * 60


class StudentListCache:
    """Versioned Redis cache for student list query results."""

    def __init__(self, redis: Redis | None):
        self.redis = redis

    @staticmethod
    def build_key(version: int, query: dict[str, Any]) -> str:
        """Cache key for one list query at one cache version."""
        fingerprint = json.dumps(query, sort_keys=True, default=str, separators=(",", ":"))
        return f"{KEY_PREFIX}:v{version}:{fingerprint}"

    async def get_version(self) -> int:
        """Current cache version, initialising it to 1 when absent."""
        if self.redis is None:
            return 0

        raw = await self.redis.get(VERSION_KEY)
        if raw is not None:
            return int(raw)

        # NX so concurrent initialisers cannot reset a bumped version
        await self.redis.set(VERSION_KEY, 1, ex=VERSION_TTL_SECONDS, nx=True)
        raw = await self.redis.get(VERSION_KEY)
        return int(raw) if raw is not None else 1

    async def get_or_add(
        self,
        query: dict[str, Any],
        factory: Callable[[dict[str, Any]], Awaitable[dict[str, Any]]],
    ) -> dict[str, Any]:
        """
        Return the cached result for `query`, or build, cache and return it.

        Redis failures degrade to calling the factory directly.
        """
        if self.redis is None:
            return await factory(query)

        try:
            key = self.build_key(await self.get_version(), query)
            cached = await self.redis.get(key)
            if cached is not None:
                return json.loads(cached)
        except RedisError as e:
            logger.warning(f"Student list cache read failed, querying directly: {e}")
            return await factory(query)

        result = await factory(query)

        try:
            await self.redis.set(key, json.dumps(result, default=str), ex=ENTRY_TTL_SECONDS)
        except RedisError as e:
            logger.warning(f"Student list cache write failed: {e}")

        return result

    async def invalidate(self) -> None:
        """Invalidate every cached list page by bumping the version."""
        if self.redis is None:
            logger.debug("Redis not available, student list cache invalidation skipped")
            return

        try:
            version = await self.redis.incr(VERSION_KEY)
            await self.redis.expire(VERSION_KEY, VERSION_TTL_SECONDS)
            logger.info(f"Student list cache invalidated (version {version})")
        except RedisError as e:
            logger.warning(f"Student list cache invalidation failed: {e}")
