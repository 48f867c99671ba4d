"""Periodic removal of expired entries.

Reads already drop expired entries, but keys that are written once and never
read again would otherwise stay in memory until clear(). The sweeper removes
a bounded batch of them on every tick.
"""

from __future__ import annotations

import asyncio
import logging

from crosscache.cache.store import CacheStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Background task that calls ``CacheStore.sweep_expired`` on an interval."""

    def __init__(
        self,
        store: CacheStore,
        interval_ms: int = 60_000,
        batch_size: int | None = 500,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.store = store
        self.interval_ms = interval_ms
        self.batch_size = batch_size
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start sweeping."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.debug("Expiry sweeper started (every %d ms)", self.interval_ms)

    async def stop(self) -> None:
        """Stop sweeping."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def sweep_once(self) -> int:
        """Run a single sweep and return the number of entries removed."""
        removed = self.store.sweep_expired(limit=self.batch_size)
        if removed:
            logger.debug("Swept %d expired entries", removed)
        return removed

    async def _sweep_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval_ms / 1000)
                self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error during expiry sweep")
