"""
CacheManager - Response cache with TTL, prefix invalidation and optional tiering.

Features:
- In-process L1 layer (MemoryCache): lazy expiry, bounded size with
  oldest-insertion eviction
- Optional shared L2 layer (SharedCache protocol, RedisCache implementation)
  with L1 backfill on L2 hits
- Shared layer failures degrade to in-process only; they are logged and
  never raised to the caller
"""

import copy
import hashlib
import json
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Generic, Protocol, TypeVar

import redis.asyncio as aioredis
from loguru import logger
from redis.exceptions import RedisError

from shipping_mcp.services.errors import CacheUnavailableError

T = TypeVar("T")

def _normalize_params(params: dict[str, Any] | None) -> list[tuple[str, Any]]:
    if not params:
        return []
    normalized = []
    for name, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = [str(v) for v in value]
        elif isinstance(value, bool):
            value = str(value).lower()
        else:
            value = str(value)
        normalized.append((str(name), value))
    return sorted(normalized)


def resource_family(path: str) -> str:
    """First path segment, e.g. '/shipments/shp_1/buy' -> '/shipments'."""
    segment = path.strip("/").split("?", 1)[0].split("/", 1)[0]
    return f"/{segment}"


def generate_key(
    method: str,
    path: str,
    params: dict[str, Any] | None = None,
    body: Any = None,
    namespace: str = "",
) -> str:
    """
    Derive a cache key from (method, path, sorted query params[, body]).

    The method and path stay readable so a resource family can be dropped
    by prefix; the query string and body are hashed. Query parameter order
    does not affect the key.
    """
    method = method.upper()
    path = "/" + path.lstrip("/")
    key = f"{namespace}:{method}:{path}"

    material: dict[str, Any] = {}
    query = _normalize_params(params)
    if query:
        material["params"] = query
    if body is not None and method != "GET":
        material["body"] = body
    if material:
        encoded = json.dumps(material, sort_keys=True, separators=(",", ":"), default=str)
        key += "#" + hashlib.sha256(encoded.encode()).hexdigest()[:16]
    return key


def family_prefix(path: str, namespace: str = "") -> str:
    """Prefix matching every cached read of the resource family of `path`."""
    return f"{namespace}:GET:{resource_family(path)}"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A single cache entry. Replaced wholesale, never mutated."""

    key: str
    data: T
    timestamp: datetime
    ttl: timedelta

    def is_expired(self, now: datetime) -> bool:
        """Check if entry is past its TTL."""
        return now > self.timestamp + self.ttl

    def remaining(self, now: datetime) -> timedelta:
        return self.timestamp + self.ttl - now


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    shared_hits: int = 0
    misses: int = 0
    evictions: int = 0
    invalidations: int = 0
    shared_errors: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.shared_hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits + self.shared_hits) / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "shared_hits": self.shared_hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "invalidations": self.invalidations,
            "shared_errors": self.shared_errors,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


class MemoryCache:
    """
    In-process layer. Pure lookups, no I/O, no locking.

    All mutation happens on a single event loop thread, so no explicit
    locking is needed.
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = datetime.now,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self.evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get_entry(key) is not None

    @property
    def max_size(self) -> int:
        return self._max_size

    def get_entry(self, key: str) -> CacheEntry[Any] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry

    def get(self, key: str) -> Any | None:
        """Return a copy of the cached value; callers may mutate it freely."""
        entry = self.get_entry(key)
        return copy.deepcopy(entry.data) if entry else None

    def set(self, key: str, data: Any, ttl: timedelta | None = None) -> None:
        entry = CacheEntry(
            key=key,
            data=copy.deepcopy(data),
            timestamp=self._clock(),
            ttl=ttl if ttl is not None else self._default_ttl,
        )
        # Re-insert so dict order tracks insertion time
        self._entries.pop(key, None)
        self._entries[key] = entry
        while len(self._entries) > self._max_size:
            self._evict_oldest()

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def invalidate(self, prefix: str) -> int:
        """Remove every entry whose key equals or starts with `prefix`."""
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        now = self._clock()
        expired = [k for k, v in self._entries.items() if v.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _evict_oldest(self) -> None:
        oldest_key = next(iter(self._entries))
        del self._entries[oldest_key]
        self.evictions += 1


class SharedCache(Protocol):
    """Out-of-process key/value store reachable over the network."""

    async def get(self, key: str) -> Any | None: ...

    async def set_with_ttl(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    async def delete_by_prefix(self, prefix: str) -> int: ...

    async def close(self) -> None: ...


_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


class RedisCache:
    """SharedCache backed by Redis. Values are stored as JSON."""

    def __init__(
        self,
        url: str | None = None,
        key_prefix: str = "shipping_mcp:",
        client: aioredis.Redis | None = None,
        socket_timeout: float = 2.0,
    ):
        if client is None:
            if not url:
                raise ValueError("RedisCache needs either a url or a client")
            client = aioredis.from_url(
                url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
        self._redis = client
        self._key_prefix = key_prefix

    def _full_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._redis.get(self._full_key(key))
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"shared cache get failed: {e}") from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"[RedisCache] Dropping undecodable entry {key[:50]}")
            return None

    async def set_with_ttl(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = json.dumps(value, default=str)
        try:
            await self._redis.setex(self._full_key(key), max(1, int(ttl_seconds)), payload)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"shared cache set failed: {e}") from e

    async def delete_by_prefix(self, prefix: str) -> int:
        pattern = _GLOB_SPECIAL.sub(r"\\\1", self._full_key(prefix)) + "*"
        deleted = 0
        try:
            batch: list[str] = []
            async for key in self._redis.scan_iter(match=pattern, count=500):
                batch.append(key)
                if len(batch) >= 500:
                    deleted += await self._redis.delete(*batch)
                    batch = []
            if batch:
                deleted += await self._redis.delete(*batch)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"shared cache delete failed: {e}") from e
        return deleted

    async def close(self) -> None:
        try:
            await self._redis.aclose()
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"shared cache close failed: {e}") from e


class CacheManager:
    """
    Tiered response cache used by ServiceClient.

    Usage:
        cache = CacheManager(namespace="easypost", max_size=1000)

        key = cache.generate_key("GET", "/shipments/shp_1")
        data = await cache.get(key)
        if data is None:
            data = await fetch()
            await cache.set(key, data)

        # after a write to /shipments/...
        await cache.invalidate_family("/shipments/shp_1/buy")
    """

    def __init__(
        self,
        namespace: str = "",
        max_size: int = 1000,
        default_ttl: timedelta = timedelta(minutes=5),
        shared: SharedCache | None = None,
        clock: Callable[[], datetime] = datetime.now,
        debug: bool = False,
    ):
        self._namespace = namespace
        self._memory = MemoryCache(max_size=max_size, default_ttl=default_ttl, clock=clock)
        self._shared = shared
        self._default_ttl = default_ttl
        self._debug = debug
        self._stats = CacheStats()

    @property
    def memory(self) -> MemoryCache:
        return self._memory

    @property
    def shared(self) -> SharedCache | None:
        return self._shared

    def generate_key(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: Any = None,
    ) -> str:
        return generate_key(method, path, params, body, namespace=self._namespace)

    async def get(self, key: str) -> Any | None:
        """Look the key up in memory, then in the shared layer. Never raises."""
        data = self._memory.get(key)
        if data is not None:
            self._stats.hits += 1
            self._log(f"HIT: {key[:80]}")
            return data

        if self._shared is not None:
            try:
                data = await self._shared.get(key)
            except Exception as e:
                self._shared_failed("get", e)
                data = None
            if data is not None:
                self._stats.shared_hits += 1
                self._memory.set(key, data, self._default_ttl)
                self._log(f"SHARED HIT: {key[:80]} (backfilled)")
                return data

        self._stats.misses += 1
        self._log(f"MISS: {key[:80]}")
        return None

    async def set(self, key: str, data: Any, ttl: timedelta | None = None) -> None:
        """Write both layers. Last writer wins."""
        ttl = ttl if ttl is not None else self._default_ttl
        self._memory.set(key, data, ttl)
        self._log(f"SET: {key[:80]} (TTL: {ttl.total_seconds()}s)")

        if self._shared is not None:
            try:
                await self._shared.set_with_ttl(key, data, int(ttl.total_seconds()))
            except Exception as e:
                self._shared_failed("set", e)

    async def invalidate(self, prefix: str) -> int:
        """
        Invalidate all keys starting with `prefix` (or equal to it).

        Returns:
            Number of in-process entries invalidated
        """
        count = self._memory.invalidate(prefix)
        if self._shared is not None:
            try:
                await self._shared.delete_by_prefix(prefix)
            except Exception as e:
                self._shared_failed("invalidate", e)

        self._stats.invalidations += count
        if count:
            self._log(f"INVALIDATE: {count} entries matching '{prefix}'")
        return count

    async def invalidate_family(self, path: str) -> int:
        """Drop every cached read of the resource family `path` belongs to."""
        return await self.invalidate(family_prefix(path, self._namespace))

    async def clear(self) -> None:
        """Clear this namespace in both layers."""
        count = self._memory.clear()
        if self._shared is not None:
            try:
                await self._shared.delete_by_prefix(f"{self._namespace}:")
            except Exception as e:
                self._shared_failed("clear", e)
        self._log(f"CLEAR: {count} entries removed")

    async def close(self) -> None:
        if self._shared is not None:
            try:
                await self._shared.close()
            except Exception as e:
                self._shared_failed("close", e)

    def get_stats(self) -> CacheStats:
        """Get cache statistics."""
        self._stats.size = len(self._memory)
        self._stats.max_size = self._memory.max_size
        self._stats.evictions = self._memory.evictions
        return self._stats

    def _shared_failed(self, operation: str, error: Exception) -> None:
        self._stats.shared_errors += 1
        logger.bind(kind="cache-unavailable", operation=operation).warning(
            f"[CacheManager] Shared cache unavailable during {operation}, "
            f"continuing in-process only: {error}"
        )

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheManager] {message}")
