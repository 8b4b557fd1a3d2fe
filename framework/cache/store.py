"""
Redis-backed query cache.

Values are stored as JSON. A failing cache never turns into a failing read:
errors are logged and the loader runs against the database instead. Writes
that cannot invalidate leave entries to expire by TTL.
"""

import json
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

import redis.asyncio as redis
from pydantic import TypeAdapter
from redis.exceptions import RedisError

from framework.logging.logger import get_logger
from .query_keys import SecureQueryKey, view_prefix, user_pattern

logger = get_logger("query_cache")

# Query-part substrings that mark a cache entry as tenant scoped
TENANT_SWITCH_MARKERS = ("tenant", "report", "form")

_DELETE_BATCH = 500


class QueryCache:
    def __init__(self, client: redis.Redis, prefix: str = "qc", ttl: int = 300):
        self.client = client
        self.prefix = prefix
        self.ttl = ttl

    def render(self, key: SecureQueryKey) -> str:
        return key.render(self.prefix)

    async def get(self, key: SecureQueryKey) -> Optional[Any]:
        raw = await self.client.get(self.render(key))
        return None if raw is None else json.loads(raw)

    async def set(self, key: SecureQueryKey, value: Any, ttl: Optional[int] = None) -> None:
        await self.client.set(self.render(key), json.dumps(value), ex=ttl or self.ttl)

    async def get_or_load(
        self,
        key: SecureQueryKey,
        loader: Callable[[], Awaitable[Any]],
        schema: Any = None,
        ttl: Optional[int] = None,
    ) -> Any:
        """Return the cached value for key, or run loader and cache its result.

        ``schema`` is a type understood by pydantic's TypeAdapter; results are
        dumped to JSON with it and validated back on a hit.
        """
        adapter = TypeAdapter(schema) if schema is not None else None
        try:
            cached = await self.get(key)
        except RedisError as e:
            logger.warning(f"Cache read failed for {key.query_text()}: {e}")
            return await loader()

        if cached is not None:
            return adapter.validate_python(cached) if adapter else cached

        value = await loader()
        payload = adapter.dump_python(value, mode="json") if adapter else value
        try:
            await self.set(key, payload, ttl)
        except RedisError as e:
            logger.warning(f"Cache write failed for {key.query_text()}: {e}")
        return value

    async def _scan(self, pattern: str) -> List[str]:
        return [key async for key in self.client.scan_iter(match=pattern, count=_DELETE_BATCH)]

    async def _delete(self, keys: Sequence[str]) -> int:
        deleted = 0
        for start in range(0, len(keys), _DELETE_BATCH):
            deleted += await self.client.delete(*keys[start:start + _DELETE_BATCH])
        return deleted

    async def invalidate_view(self, base: str, tenant_id: Any) -> int:
        """Drop every entry of view (base, tenant_id), for all identities."""
        root = view_prefix(self.prefix, base, tenant_id)
        keys = await self._scan(f"{root}|*") + await self._scan(f"{root}:*")
        return await self._delete(keys)

    async def invalidate_views(self, views: Iterable[Tuple[str, Any]]) -> int:
        """Invalidate several views; failures are logged, entries then expire by TTL."""
        total = 0
        for base, tenant_id in views:
            try:
                total += await self.invalidate_view(base, tenant_id)
            except RedisError as e:
                logger.error(f"Invalidation of ({base}, {tenant_id}) failed, entries stale until TTL: {e}")
        return total

    async def clear(self) -> int:
        """Drop the whole cache namespace."""
        return await self._delete(await self._scan(f"{self.prefix}:*"))

    async def invalidate_tenant_scoped(self, user_id: Any, markers: Sequence[str] = TENANT_SWITCH_MARKERS) -> int:
        """Drop the user's entries whose query part mentions one of markers."""
        stale = []
        for rendered in await self._scan(user_pattern(self.prefix, user_id)):
            query = SecureQueryKey.parse(rendered, self.prefix).query_text()
            if any(marker in query for marker in markers):
                stale.append(rendered)
        return await self._delete(stale)
