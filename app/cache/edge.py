"""
Edge cache facade with hit/miss metrics and graceful degradation.
"""
import logging
import threading
from typing import Optional

from fastapi import Response

from config.settings import settings
from .backends import CacheStore, CachedEntry, create_cache_store
from .core import CacheMetrics
from .responses import (
    CACHE_STATUS_HEADER,
    CACHE_TTL_HEADER,
    cache_control_value,
    parse_max_age,
)

logger = logging.getLogger("cache.edge")


class EdgeCache:
    """
    Response cache in front of an opaque key-value store.

    Safe to call unconditionally from request handlers:
    - Backend errors are logged and turned into a miss or a no-op
    - get() counts every lookup as a hit or a miss
    - A disabled cache (development) never touches the store

    Counters are guarded by a lock so they stay exact when FastAPI runs sync
    handlers in its threadpool. Metrics are per instance and reset on restart.
    """

    def __init__(self, store: CacheStore, enabled: bool = True):
        """
        Args:
            store: Backing key-value store
            enabled: False turns every operation into a miss/no-op
        """
        self._store = store
        self.enabled = enabled
        self._hits = 0
        self._misses = 0
        self._stats_lock = threading.Lock()

    @property
    def store(self) -> CacheStore:
        return self._store

    def _record(self, hit: bool) -> None:
        with self._stats_lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1

    async def get(self, key: str) -> Optional[Response]:
        """
        Look up a stored response.

        Returns:
            The cached response (X-Cache-Status: HIT), or None on a miss,
            a disabled cache, or a backend error
        """
        if not self.enabled:
            self._record(hit=False)
            return None

        try:
            entry = await self._store.match(key)
        except Exception as e:
            logger.error(f"Cache get error: {key} - {e}")
            self._record(hit=False)
            return None

        if entry is None:
            logger.debug(f"CACHE MISS: {key}")
            self._record(hit=False)
            return None

        logger.debug(f"CACHE HIT: {key}")
        self._record(hit=True)
        return self._to_response(entry)

    async def put(self, key: str, response: Response, ttl: Optional[int] = None) -> None:
        """
        Store a response. Never raises.

        Args:
            key: Cache key
            response: Response with a fully rendered body
            ttl: Overrides the response's Cache-Control max-age and
                X-Cache-TTL when given
        """
        if not self.enabled:
            return

        try:
            entry = self._snapshot(response)
            if ttl:
                entry.headers["cache-control"] = cache_control_value(ttl)
                entry.headers[CACHE_TTL_HEADER.lower()] = str(ttl)
            else:
                ttl = parse_max_age(entry.headers.get("cache-control"))
            await self._store.put(key, entry, ttl)
            logger.debug(f"CACHE PUT: {key} [ttl={ttl}]")
        except Exception as e:
            logger.error(f"Cache put error: {key} - {e}")

    async def delete(self, key: str) -> bool:
        """
        Remove one key.

        Returns:
            True unless the backend failed (an absent key counts as deleted)
        """
        if not self.enabled:
            return True

        try:
            await self._store.delete(key)
            return True
        except Exception as e:
            logger.error(f"Cache delete error: {key} - {e}")
            return False

    async def delete_by_pattern(self, prefix: str) -> int:
        """
        Remove every key starting with prefix, best effort.

        A failed delete is logged and skipped; a failed enumeration stops the
        sweep.

        Returns:
            Number of entries actually removed
        """
        if not self.enabled:
            return 0

        deleted = 0
        try:
            async for key in self._store.keys(prefix):
                try:
                    if await self._store.delete(key):
                        deleted += 1
                except Exception as e:
                    logger.warning(f"Cache delete error during sweep: {key} - {e}")
        except Exception as e:
            logger.error(f"Cache delete by pattern error: '{prefix}' - {e}")

        if deleted:
            logger.info(f"Invalidated {deleted} entries matching '{prefix}'")
        return deleted

    def get_metrics(self) -> CacheMetrics:
        """Snapshot of the live counters."""
        with self._stats_lock:
            return CacheMetrics(hits=self._hits, misses=self._misses)

    def reset_metrics(self) -> None:
        with self._stats_lock:
            self._hits = 0
            self._misses = 0

    @staticmethod
    def _snapshot(response: Response) -> CachedEntry:
        return CachedEntry(
            body=bytes(response.body),
            status_code=response.status_code,
            headers={name.lower(): value for name, value in response.headers.items()},
        )

    @staticmethod
    def _to_response(entry: CachedEntry) -> Response:
        headers = {
            name: value
            for name, value in entry.headers.items()
            if name.lower() != CACHE_STATUS_HEADER.lower()
        }
        headers[CACHE_STATUS_HEADER.lower()] = "HIT"
        return Response(
            content=entry.body,
            status_code=entry.status_code,
            headers=headers,
        )


# Global edge cache instance
_edge_cache: Optional[EdgeCache] = None
_edge_cache_lock = threading.Lock()


def get_edge_cache() -> EdgeCache:
    """Get or create the global edge cache."""
    global _edge_cache
    with _edge_cache_lock:
        if _edge_cache is None:
            _edge_cache = EdgeCache(
                create_cache_store(settings),
                enabled=settings.edge_cache_enabled,
            )
    return _edge_cache
