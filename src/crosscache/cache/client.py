"""Consumer-facing cache client.

Wraps a CacheStore and its CrossProcessBroadcaster for a presentation layer:
hit/miss accounting, owner-scoped invalidation and change callbacks.

Example:
    client = CacheClient(store, broadcaster, on_update=rerender)
    reviews = client.get(CacheKeys.listing(owner_id, "page1"))
    if reviews is None:
        reviews = await api.fetch_reviews(owner_id, page=1)
        client.cache(CacheKeys.listing(owner_id, "page1"), reviews)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from crosscache.cache.broadcaster import CrossProcessBroadcaster
from crosscache.cache.events import MutationEvent
from crosscache.cache.keys import CacheKeys, CanonicalKey, KeyInput, render
from crosscache.cache.store import CacheStore

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Hit/miss counters for one client plus the store size."""

    hits: int = 0
    misses: int = 0
    size: int = 0


class CacheClient:
    """Read-through helpers and statistics on top of a shared store."""

    def __init__(
        self,
        store: CacheStore,
        broadcaster: CrossProcessBroadcaster,
        on_update: Callable[[CanonicalKey], None] | None = None,
        stats_interval_ms: int | None = None,
        debug: bool = False,
    ) -> None:
        self.store = store
        self.broadcaster = broadcaster
        self.on_update = on_update
        self.stats_interval_ms = stats_interval_ms
        self.debug = debug
        self.stats = CacheStats(size=store.size())
        self._unsubscribe: Callable[[], None] | None = store.subscribe(self._on_change)
        self._stats_task: asyncio.Task[None] | None = None

    def _on_change(self, key: CanonicalKey) -> None:
        self.stats.size = self.store.size()
        if self.on_update is not None:
            self.on_update(key)
        if self.debug:
            logger.debug("Cache updated: %s", render(key))

    # -------------------------------------------------------------------------
    # Cache operations
    # -------------------------------------------------------------------------

    def cache(self, key: KeyInput, value: Any, ttl_ms: int | None = None) -> None:
        """Store fetched data."""
        self.store.set(key, value, ttl_ms)

    def get(self, key: KeyInput) -> Any | None:
        """Look up cached data, counting the hit or miss."""
        value = self.store.get(key)
        if value is None:
            self.stats.misses += 1
        else:
            self.stats.hits += 1
        if self.debug:
            logger.debug("Cache %s: %s", "miss" if value is None else "hit", key)
        return value

    def has(self, key: KeyInput) -> bool:
        return self.store.has(key)

    def invalidate(self, key: KeyInput) -> None:
        """Drop a single key."""
        self.store.delete(key)

    def invalidate_pattern(self, pattern: KeyInput) -> int:
        """Drop every key under ``pattern``."""
        return self.store.invalidate_pattern(pattern)

    def invalidate_by_owner(self, owner_id: str) -> int:
        """Drop every cached listing for ``owner_id``."""
        return self.store.invalidate_pattern(CacheKeys.listing(owner_id))

    def clear(self) -> None:
        """Drop everything and reset statistics."""
        self.store.clear()
        self.stats = CacheStats()

    def refresh(self, key: KeyInput) -> bool:
        return self.store.refresh(key)

    def update_ttl(self, key: KeyInput, ttl_ms: int) -> bool:
        return self.store.update_ttl(key, ttl_ms)

    async def broadcast_mutation(self, event: MutationEvent) -> bool:
        """Invalidate locally and notify peers of a completed write."""
        return await self.broadcaster.broadcast_mutation(event)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the periodic statistics refresh, if configured."""
        if self.stats_interval_ms and self._stats_task is None:
            self._stats_task = asyncio.create_task(self._stats_loop(self.stats_interval_ms))

    async def close(self) -> None:
        """Detach from the store and cancel the statistics refresh."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        if self._stats_task:
            self._stats_task.cancel()
            try:
                await self._stats_task
            except asyncio.CancelledError:
                pass
            self._stats_task = None

    async def _stats_loop(self, interval_ms: int) -> None:
        while True:
            await asyncio.sleep(interval_ms / 1000)
            self.stats.size = self.store.size()
