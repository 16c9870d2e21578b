from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

"""
Short-lived in-process result cache for "users near this path" queries.

- Keys are `(path_id, radius)`.
- TTL is measured from insertion. Expired entries are dropped on read and swept on write
  (no sweeper thread).
- `invalidate_all()` is called on every position update, so an entry is never served
  across a location change that happened after it was stored.
- A `put` carrying a generation older than the last invalidation is discarded, so a
  result computed before a location change cannot be stored after it.
- One lock guards the table; concurrent misses on the same key may both recompute.

The clock is injected so tests can drive expiry without sleeping.
"""

logger = logging.getLogger(__name__)

T = TypeVar("T")

CacheKey = tuple[str, float]


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A stored result and the clock reading at insertion."""

    value: T
    stored_at: float


@dataclass
class CacheStats:
    """Cumulative cache usage counters (best-effort)."""

    hits: int = 0
    misses: int = 0
    expired: int = 0
    sets: int = 0
    invalidations: int = 0
    stale_writes: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "hits": int(self.hits),
            "misses": int(self.misses),
            "expired": int(self.expired),
            "sets": int(self.sets),
            "invalidations": int(self.invalidations),
            "stale_writes": int(self.stale_writes),
        }


def _key(path_id: str, radius: float) -> CacheKey:
    return (str(path_id), float(radius))


class PathResultCache(Generic[T]):
    """A TTL memo table keyed by (path id, radius)."""

    def __init__(
        self,
        ttl_seconds: float = 5.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        enabled: bool = True,
    ):
        if float(ttl_seconds) < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self._ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._enabled = enabled
        self._lock = threading.Lock()
        self._entries: dict[CacheKey, CacheEntry[T]] = {}
        self._generation = 0
        self.stats = CacheStats()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def generation(self) -> int:
        """Bumped by every `invalidate_all()`; pass it back to `put` to reject stale writes."""
        with self._lock:
            return self._generation

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _expired(self, entry: CacheEntry[T], now: float) -> bool:
        return (now - entry.stored_at) >= self._ttl_seconds

    def get(self, path_id: str, radius: float) -> T | None:
        """Return the cached value if present and younger than the TTL; otherwise None."""
        if not self._enabled:
            return None
        key = _key(path_id, radius)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats.misses += 1
                return None
            if self._expired(entry, self._clock()):
                del self._entries[key]
                self.stats.misses += 1
                self.stats.expired += 1
                return None
            self.stats.hits += 1
            return entry.value

    def put(self, path_id: str, radius: float, value: T, *, generation: int | None = None) -> None:
        """Store `value`; a write computed before the last `invalidate_all()` is dropped.

        Pass the `generation` read before computing the value. Omitting it stores
        unconditionally.
        """
        if not self._enabled:
            return None
        with self._lock:
            if generation is not None and generation != self._generation:
                self.stats.stale_writes += 1
                return None
            now = self._clock()
            for key in [k for k, e in self._entries.items() if self._expired(e, now)]:
                del self._entries[key]
                self.stats.expired += 1
            self._entries[_key(path_id, radius)] = CacheEntry(value=value, stored_at=now)
            self.stats.sets += 1

    def invalidate_all(self) -> None:
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
            self._generation += 1
            self.stats.invalidations += 1
        if dropped:
            logger.info("Path result cache cleared (%d entries)", dropped)
