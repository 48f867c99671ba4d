"""In-memory TTL cache store for crosscache.

Entries expire lazily: the read that finds an entry past its TTL deletes it
and reports a miss. There is no timer per entry; ExpirySweeper can reclaim
entries that are never read again.

When ``max_entries`` is set, the entry inserted longest ago is evicted to make
room for a new key. Eviction follows insertion order, not access order, so
every operation stays O(1).

Example:
    store = CacheStore(default_ttl_ms=60_000)
    store.set(["reviews", "42", "page1"], reviews)
    store.get(["reviews", "42", "page1"])  # -> reviews
    store.invalidate_pattern(["reviews", "42"])  # -> 1
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from crosscache.cache.keys import ALL_KEYS, CanonicalKey, KeyInput, canonicalize, is_prefix, render
from crosscache.cache.subscribers import Subscriber, SubscriberRegistry, Unsubscribe
from crosscache.observability.metrics import get_metrics

if TYPE_CHECKING:
    from crosscache.config import Settings

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

# Default TTL (5 minutes)
DEFAULT_TTL_MS = 5 * 60 * 1000


def monotonic_ms() -> float:
    """Milliseconds from a clock that never goes backwards."""
    return time.monotonic() * 1000


@dataclass(slots=True)
class CacheEntry:
    """A stored value with its insertion time and lifetime."""

    value: Any
    inserted_at: float
    ttl_ms: int

    def is_expired(self, now: float) -> bool:
        return now - self.inserted_at > self.ttl_ms


class CacheStore:
    """Key to value map with TTL expiry, pattern invalidation and notifications.

    All operations are synchronous and finish without yielding, so callers on
    one event loop never observe a half-applied mutation.
    """

    def __init__(
        self,
        default_ttl_ms: int = DEFAULT_TTL_MS,
        max_entries: int | None = None,
        clock: Clock = monotonic_ms,
        subscribers: SubscriberRegistry | None = None,
    ) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.default_ttl_ms = default_ttl_ms
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[CanonicalKey, CacheEntry] = OrderedDict()
        self._subscribers = subscribers if subscribers is not None else SubscriberRegistry()
        self._metrics = get_metrics()

    @classmethod
    def from_settings(cls, config: Settings, clock: Clock = monotonic_ms) -> CacheStore:
        """Build a store from application settings."""
        return cls(
            default_ttl_ms=config.default_ttl_ms,
            max_entries=config.max_entries,
            clock=clock,
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, key: KeyInput) -> Any | None:
        """Return the cached value, or None if absent or expired."""
        entry = self._live_entry(canonicalize(key))
        if entry is None:
            self._metrics.cache_misses_total.inc()
            return None
        self._metrics.cache_hits_total.inc()
        return entry.value

    def has(self, key: KeyInput) -> bool:
        """Check whether an unexpired entry exists for ``key``."""
        return self._live_entry(canonicalize(key)) is not None

    def size(self) -> int:
        """Number of stored entries.

        Expired entries still count until an access or a sweep removes them.
        """
        return len(self._entries)

    def keys(self) -> list[CanonicalKey]:
        """Canonical keys in insertion order."""
        return list(self._entries)

    def time_remaining(self, key: KeyInput) -> int | None:
        """Milliseconds until ``key`` expires, 0 if expired, None if absent."""
        entry = self._entries.get(canonicalize(key))
        if entry is None:
            return None
        remaining = entry.ttl_ms - (self._clock() - entry.inserted_at)
        return max(int(remaining), 0)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def set(self, key: KeyInput, value: Any, ttl_ms: int | None = None) -> None:
        """Store ``value`` under ``key``, replacing any previous entry."""
        canonical = canonicalize(key)
        ttl = ttl_ms if ttl_ms is not None and ttl_ms > 0 else self.default_ttl_ms

        if canonical in self._entries:
            # Replacement counts as a fresh insertion for eviction order
            del self._entries[canonical]
        elif self.max_entries is not None and len(self._entries) >= self.max_entries:
            self._evict_oldest()

        self._entries[canonical] = CacheEntry(value=value, inserted_at=self._clock(), ttl_ms=ttl)
        self._metrics.cache_entries.set(len(self._entries))
        self._subscribers.notify(canonical)

    def delete(self, key: KeyInput) -> None:
        """Remove ``key`` if present and notify subscribers."""
        canonical = canonicalize(key)
        self._entries.pop(canonical, None)
        self._metrics.cache_entries.set(len(self._entries))
        self._subscribers.notify(canonical)

    def invalidate_pattern(self, pattern: KeyInput) -> int:
        """Remove every entry whose key starts with ``pattern``.

        Returns the number of entries removed.
        """
        prefix = canonicalize(pattern)
        matched = [key for key in self._entries if is_prefix(prefix, key)]

        for key in matched:
            del self._entries[key]

        if matched:
            self._metrics.cache_invalidations_total.inc(len(matched))
            self._metrics.cache_entries.set(len(self._entries))
            logger.debug("Invalidated %d entries under %s", len(matched), render(prefix))

        for key in matched:
            self._subscribers.notify(key)

        return len(matched)

    def clear(self) -> None:
        """Remove all entries."""
        self._entries.clear()
        self._metrics.cache_entries.set(0)
        self._subscribers.notify(ALL_KEYS)

    def refresh(self, key: KeyInput) -> bool:
        """Restart the TTL window of a live entry.

        Returns False if the entry is absent or already expired.
        """
        entry = self._live_entry(canonicalize(key))
        if entry is None:
            return False
        entry.inserted_at = self._clock()
        return True

    def update_ttl(self, key: KeyInput, ttl_ms: int) -> bool:
        """Replace the TTL of a live entry.

        Returns False if the entry is absent or already expired.
        """
        entry = self._live_entry(canonicalize(key))
        if entry is None:
            return False
        entry.ttl_ms = ttl_ms
        return True

    def extend_ttl(self, key: KeyInput, additional_ms: int) -> bool:
        """Add ``additional_ms`` to the TTL of a live entry."""
        entry = self._live_entry(canonicalize(key))
        if entry is None:
            return False
        entry.ttl_ms += additional_ms
        return True

    # -------------------------------------------------------------------------
    # Housekeeping
    # -------------------------------------------------------------------------

    def sweep_expired(self, limit: int | None = None) -> int:
        """Drop up to ``limit`` expired entries without notifying subscribers.

        Returns the number of entries removed.
        """
        now = self._clock()
        expired: list[CanonicalKey] = []
        for key, entry in self._entries.items():
            if entry.is_expired(now):
                expired.append(key)
                if limit is not None and len(expired) >= limit:
                    break

        for key in expired:
            del self._entries[key]

        if expired:
            self._metrics.cache_evictions_total.labels(reason="expired").inc(len(expired))
            self._metrics.cache_entries.set(len(self._entries))

        return len(expired)

    def subscribe(self, callback: Subscriber) -> Unsubscribe:
        """Register a change callback; see SubscriberRegistry."""
        return self._subscribers.subscribe(callback)

    def _live_entry(self, key: CanonicalKey) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self.delete(key)
            return None
        return entry

    def _evict_oldest(self) -> None:
        oldest, _ = self._entries.popitem(last=False)
        self._metrics.cache_evictions_total.labels(reason="capacity").inc()
        logger.debug("Evicted %s to stay within %s entries", render(oldest), self.max_entries)
