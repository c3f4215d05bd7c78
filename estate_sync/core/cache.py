"""
Build-scoped cache for expensive content store operations.

Provides:
- In-memory key/value memo that lives for one build (no TTL, no eviction)
- Single-flight de-duplication: concurrent callers for the same uncached
  key share one computation instead of each hitting the remote store
- Key generation helper

Entries are only ever removed by clear(). Failed computations and None
results are not stored, so a later call retries the remote work.

Usage:
    cache = BuildCache()
    rows = await cache.get_or_compute(
        make_cache_key("amenities", page_id),
        lambda: load_amenities(page_id),
    )
"""
import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class BuildCache:
    """
    Process-lifetime memo scoped to one build context.

    Not thread-safe; designed for a single event loop.
    """

    def __init__(self):
        self._cache: Dict[str, Any] = {}
        self._inflight: Dict[str, "asyncio.Future[Any]"] = {}

        # Statistics
        self._stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "shared": 0,
        }

    def __contains__(self, key: str) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def get(self, key: str) -> Optional[Any]:
        """
        Get a value from the cache.

        Returns:
            Cached value or None if not present
        """
        if key in self._cache:
            self._stats["hits"] += 1
            return self._cache[key]
        self._stats["misses"] += 1
        return None

    def set(self, key: str, value: Any) -> None:
        """Store a value; it stays until clear()."""
        self._cache[key] = value
        self._stats["sets"] += 1

    def clear(self) -> int:
        """
        Clear all entries from the cache.

        Returns:
            Number of entries cleared
        """
        count = len(self._cache)
        self._cache.clear()
        if count:
            logger.info(f"Build cache cleared ({count} entries)")
        return count

    async def get_or_compute(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]]
    ) -> Any:
        """
        Return the cached value for key, computing it once if absent.

        While a computation for key is running, later callers await the same
        result. If the computation raises, every waiting caller sees the
        exception and nothing is stored.

        Args:
            key: Cache key
            factory: Zero-argument coroutine function producing the value
        """
        if key in self._cache:
            self._stats["hits"] += 1
            logger.debug(f"Cache hit for {key}")
            return self._cache[key]

        pending = self._inflight.get(key)
        if pending is not None:
            self._stats["shared"] += 1
            logger.debug(f"Awaiting in-flight computation for {key}")
            return await asyncio.shield(pending)

        self._stats["misses"] += 1
        logger.debug(f"Cache miss for {key}")

        future: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            value = await factory()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unawaited failure does not warn on GC
            future.exception()
            raise
        else:
            if value is not None:
                self.set(key, value)
            future.set_result(value)
            return value
        finally:
            self._inflight.pop(key, None)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self._stats["hits"] + self._stats["misses"]
        hit_rate = (
            self._stats["hits"] / total_requests
            if total_requests > 0 else 0
        )

        return {
            **self._stats,
            "size": len(self._cache),
            "hit_rate": f"{hit_rate:.2%}",
        }


def make_cache_key(operation: str, *params: Any) -> str:
    """
    Build a cache key from an operation name and its parameters.

    String parameters are used verbatim ("amenities_<page id>"); anything
    else is serialized as sorted-key JSON so equal parameters give equal keys.
    """
    parts = [operation]
    for param in params:
        if isinstance(param, str):
            parts.append(param)
        else:
            parts.append(json.dumps(param, sort_keys=True, default=str))
    return "_".join(parts)
