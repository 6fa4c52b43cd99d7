"""
Backing stores for the edge cache.

A store is an opaque key-value cache: match/put/delete plus key enumeration
for prefix invalidation. It gives no transactions and no compare-and-swap;
the last put for a key wins. Stores may raise; the EdgeCache facade is the
layer that absorbs failures.
"""
import base64
import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from config.settings import Settings

logger = logging.getLogger("cache.backends")


@dataclass
class CachedEntry:
    """Stored snapshot of a response."""
    body: bytes
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "status": self.status_code,
            "headers": self.headers,
            "body": base64.b64encode(self.body).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CachedEntry":
        return cls(
            body=base64.b64decode(data["body"]),
            status_code=int(data.get("status", 200)),
            headers=dict(data.get("headers") or {}),
        )


class CacheStore(ABC):
    """Contract the edge cache expects from its backend."""

    @abstractmethod
    async def match(self, key: str) -> Optional[CachedEntry]:
        """Return the stored entry or None."""

    @abstractmethod
    async def put(self, key: str, entry: CachedEntry, ttl_seconds: Optional[int] = None) -> None:
        """Store an entry, expiring after ttl_seconds when given."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a key. Returns True if something was removed."""

    @abstractmethod
    def keys(self, prefix: str = "") -> AsyncIterator[str]:
        """Iterate over stored keys starting with prefix."""


class InMemoryCacheStore(CacheStore):
    """
    Process-local store with per-entry expiry.

    Expired entries are purged when read or enumerated. Suitable for a
    single worker and for tests; multi-instance deployments should use
    RedisCacheStore.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[CachedEntry, Optional[float]]] = {}
        self._clock = clock

    def _is_expired(self, expires_at: Optional[float]) -> bool:
        return expires_at is not None and self._clock() >= expires_at

    async def match(self, key: str) -> Optional[CachedEntry]:
        item = self._entries.get(key)
        if item is None:
            return None
        entry, expires_at = item
        if self._is_expired(expires_at):
            del self._entries[key]
            return None
        return entry

    async def put(self, key: str, entry: CachedEntry, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._entries[key] = (entry, expires_at)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def keys(self, prefix: str = "") -> AsyncIterator[str]:
        # Snapshot so callers can delete while iterating
        for key, (_, expires_at) in list(self._entries.items()):
            if self._is_expired(expires_at):
                self._entries.pop(key, None)
                continue
            if key.startswith(prefix):
                yield key

    def __len__(self) -> int:
        return len(self._entries)


_GLOB_SPECIAL = re.compile(r"([\\*?\[\]])")


class RedisCacheStore(CacheStore):
    """
    Redis-backed store.

    Entries are JSON documents under "<namespace>:<key>", expiring through
    Redis' own TTL. Prefix enumeration uses SCAN, so it does not block the
    server but may miss keys written while it runs.
    """

    def __init__(self, client: "redis.Redis", namespace: str = "edge"):
        self.client = client
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "edge") -> "RedisCacheStore":
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        return cls(client, namespace=namespace)

    def _key(self, key: str) -> str:
        """Prefix key with namespace."""
        return f"{self.namespace}:{key}"

    async def match(self, key: str) -> Optional[CachedEntry]:
        raw = await self.client.get(self._key(key))
        if raw is None:
            return None
        return CachedEntry.from_dict(json.loads(raw))

    async def put(self, key: str, entry: CachedEntry, ttl_seconds: Optional[int] = None) -> None:
        await self.client.set(
            self._key(key),
            json.dumps(entry.to_dict()),
            ex=ttl_seconds or None,
        )

    async def delete(self, key: str) -> bool:
        return bool(await self.client.delete(self._key(key)))

    async def keys(self, prefix: str = "") -> AsyncIterator[str]:
        pattern = _GLOB_SPECIAL.sub(r"\\\1", self._key(prefix)) + "*"
        offset = len(self.namespace) + 1
        async for key in self.client.scan_iter(match=pattern):
            yield key[offset:]

    async def close(self) -> None:
        await self.client.aclose()


def create_cache_store(config: Settings) -> CacheStore:
    """Build the backend selected by EDGE_CACHE_BACKEND."""
    backend = config.edge_cache_backend.lower()
    if backend == "redis":
        if not config.redis_url:
            raise ValueError("EDGE_CACHE_BACKEND=redis requires REDIS_URL")
        logger.info(f"Edge cache backend: redis ({config.redis_key_prefix})")
        return RedisCacheStore.from_url(config.redis_url, namespace=config.redis_key_prefix)
    if backend == "memory":
        logger.info("Edge cache backend: memory")
        return InMemoryCacheStore()
    raise ValueError(f"Unknown edge cache backend: {config.edge_cache_backend}")
