"""Fallback responses for failed or short-circuited calls.

Provides:
- A cache of the last successful value per (dependency, operation)
- A read-only table of hand-authored static fallbacks
"""

import copy
import dataclasses
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

logger = logging.getLogger(__name__)


# Hand-authored responses for known operations, keyed dependency -> operation
DEFAULT_STATIC_FALLBACKS: dict[str, dict[str, Any]] = {
    "inference-backend": {
        "compress": {
            "compressed_content": "Service temporarily unavailable - content preserved as-is",
            "compression_ratio": 1.0,
            "success": True,
            "fallback": True,
        },
        "embed": [],
        "chat": {
            "response": (
                "I apologize, but I'm temporarily unable to process your request. "
                "Please try again later."
            ),
            "fallback": True,
        },
    },
    "primary-store": {
        "search": [],
        "list": [],
    },
}


@dataclass
class FallbackEntry:
    """Last successful value for a (dependency, operation) pair."""

    value: Any
    cached_at: float
    access_count: int = 0
    last_access: Optional[float] = None


def _freeze(table: Mapping[str, Mapping[str, Any]]) -> Mapping[str, Mapping[str, Any]]:
    return MappingProxyType(
        {dependency: MappingProxyType(dict(ops)) for dependency, ops in table.items()}
    )


class FallbackStore:
    """Cached and static fallbacks, guarded by one lock.

    Cached entries never expire by age: a stale success is served in
    preference to no answer. When max_entries is set, the least recently
    used entry is evicted to make room.
    """

    def __init__(
        self,
        static_fallbacks: Optional[Mapping[str, Mapping[str, Any]]] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize fallback store.

        Args:
            static_fallbacks: dependency -> operation -> value table
            max_entries: Optional bound on cached entries
            clock: Time source in seconds
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if static_fallbacks is None:
            static_fallbacks = DEFAULT_STATIC_FALLBACKS
        self._static = _freeze(static_fallbacks)
        self.max_entries = max_entries
        self._clock = clock
        self._cache: "OrderedDict[tuple[str, str], FallbackEntry]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def static_fallbacks(self) -> Mapping[str, Mapping[str, Any]]:
        """Read-only view of the static fallback table."""
        return self._static

    def put(self, dependency: str, operation: str, value: Any) -> None:
        """Cache a copy of a successful value, overwriting any previous one."""
        key = (dependency, operation)
        with self._lock:
            if key in self._cache:
                del self._cache[key]
            elif self.max_entries is not None and len(self._cache) >= self.max_entries:
                evicted, _ = self._cache.popitem(last=False)
                logger.debug(f"Evicted fallback entry {evicted[0]}:{evicted[1]}")
            self._cache[key] = FallbackEntry(value=copy.deepcopy(value), cached_at=self._clock())
            size = len(self._cache)
        logger.debug(f"Cached fallback for {dependency}:{operation} (cache size: {size})")

    def get(self, dependency: str, operation: str) -> Optional[Any]:
        """Get the cached value for a pair, or None."""
        entry = self.get_entry(dependency, operation)
        return entry.value if entry is not None else None

    def get_entry(self, dependency: str, operation: str) -> Optional[FallbackEntry]:
        """Get a deep copy of the cached entry for a pair, updating access stats."""
        key = (dependency, operation)
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            entry.access_count += 1
            entry.last_access = self._clock()
            self._cache.move_to_end(key)
            return dataclasses.replace(entry, value=copy.deepcopy(entry.value))

    def static_fallback(self, dependency: str, operation: str) -> Optional[Any]:
        """Get the static fallback for a pair, or None if none is registered."""
        operations = self._static.get(dependency)
        if operations is None:
            return None
        return copy.deepcopy(operations.get(operation))

    def prewarm(self, dependency: str, operation: str, value: Any) -> None:
        """Seed the cache with a known-good value."""
        logger.info(f"Prewarming fallback cache for {dependency}:{operation}")
        self.put(dependency, operation, value)

    def delete(self, dependency: str, operation: str) -> bool:
        """Remove a cached entry.

        Returns:
            True if an entry was removed
        """
        with self._lock:
            return self._cache.pop((dependency, operation), None) is not None

    def clear(self) -> int:
        """Remove all cached entries.

        Returns:
            Number of entries cleared
        """
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.info(f"Cleared fallback cache ({count} entries)")
        return count

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            entries = list(self._cache.values())
            stats: dict[str, Any] = {
                "total_entries": len(entries),
                "max_entries": self.max_entries,
                "total_accesses": sum(e.access_count for e in entries),
                "static_operations": sum(len(ops) for ops in self._static.values()),
            }
            if entries:
                stats["oldest_entry"] = min(e.cached_at for e in entries)
                stats["newest_entry"] = max(e.cached_at for e in entries)
            return stats
