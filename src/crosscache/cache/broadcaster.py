"""Cross-process cache invalidation for crosscache peers.

When one process writes to the backing store it calls
``broadcast_mutation``. The broadcaster invalidates the affected keys in the
local store, then writes the event to the shared channel and clears the slot
again shortly after (fire-and-fade), so the channel carries live signals and
never a backlog for late joiners.

Every peer listening on the channel maps the event to invalidations of its
own store:
- create: the owner's listings
- update/delete: the owner's listings and the entity itself

Broadcasting is best effort. A failed broadcast leaves peers to catch up
through TTL expiry; it never affects the local store.

Example:
    broadcaster = CrossProcessBroadcaster(store, channel, origin_id="tab-1")
    await broadcaster.start()

    event = broadcaster.new_event(MutationType.UPDATE, "rev1", owner_id="42")
    await broadcaster.broadcast_mutation(event)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from crosscache.cache.channel import BroadcastChannel
from crosscache.cache.events import MutationEvent, MutationPayload, MutationType
from crosscache.cache.keys import CacheKeys
from crosscache.cache.store import CacheStore
from crosscache.errors import MalformedEventError
from crosscache.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

# Reserved channel slot name
MUTATION_CHANNEL = "crosscache:mutation"

# Delay before a written signal is cleared again
DEFAULT_FADE_DELAY_MS = 100

# Called with each peer mutation after it has been applied
MutationHandler = Callable[[MutationEvent], None]


class CrossProcessBroadcaster:
    """Publishes local mutations and applies peers' mutations to a store."""

    def __init__(
        self,
        store: CacheStore,
        channel: BroadcastChannel,
        origin_id: str,
        channel_name: str = MUTATION_CHANNEL,
        fade_delay_ms: int = DEFAULT_FADE_DELAY_MS,
        sync_enabled: bool = True,
    ) -> None:
        self.store = store
        self.channel = channel
        self.origin_id = origin_id
        self.channel_name = channel_name
        self.fade_delay_ms = fade_delay_ms
        self.sync_enabled = sync_enabled
        self._fade_tasks: set[asyncio.Task[None]] = set()
        self._handlers: list[MutationHandler] = []
        self._listening = False
        self._metrics = get_metrics()

        self.channel.listen(self._handle_signal)

    def add_handler(self, handler: MutationHandler) -> None:
        """Register a handler for peer mutations."""
        self._handlers.append(handler)
        handler_name = getattr(handler, "__name__", handler.__class__.__name__)
        logger.debug(f"Registered mutation handler: {handler_name}")

    async def start(self) -> None:
        """Start applying mutations received from peers."""
        if self._listening or not self.sync_enabled:
            return
        await self.channel.start()
        self._listening = True
        logger.info(
            "Cross-process sync started on %s (origin %s)", self.channel_name, self.origin_id
        )

    async def stop(self) -> None:
        """Stop listening and cancel pending fade timers."""
        for task in list(self._fade_tasks):
            task.cancel()
        if self._fade_tasks:
            await asyncio.gather(*self._fade_tasks, return_exceptions=True)
        self._fade_tasks.clear()

        if self._listening:
            await self.channel.stop()
            self._listening = False
            logger.info("Cross-process sync stopped on %s", self.channel_name)

    def new_event(
        self,
        mutation_type: MutationType | str,
        subject_id: str,
        owner_id: str | None = None,
        **extra: Any,
    ) -> MutationEvent:
        """Build a mutation event stamped with this process's origin."""
        return MutationEvent(
            type=MutationType(mutation_type),
            payload=MutationPayload(subject_id=subject_id, owner_id=owner_id, extra=extra),
            origin_id=self.origin_id,
        )

    def apply(self, event: MutationEvent) -> None:
        """Invalidate the local entries affected by ``event``."""
        owner_id = event.payload.owner_id

        if owner_id is not None:
            self.store.invalidate_pattern(CacheKeys.listing(owner_id))

        if event.type in (MutationType.UPDATE, MutationType.DELETE):
            self.store.delete(CacheKeys.entity(event.payload.subject_id))
        elif owner_id is None:
            logger.debug("Create event for %s has no owner_id", event.payload.subject_id)

    async def broadcast_mutation(self, event: MutationEvent) -> bool:
        """Apply ``event`` locally and announce it to peers.

        Returns True if the event was written to the channel.
        """
        self.apply(event)

        if not self.sync_enabled:
            return False

        try:
            data = event.to_bytes()
        except TypeError:
            logger.exception("Failed to serialize %s mutation event", event.type.value)
            return False

        try:
            await self.channel.write(self.channel_name, data)
        except Exception:
            logger.exception("Failed to broadcast %s mutation event", event.type.value)
            return False

        self._metrics.mutations_broadcast_total.labels(type=event.type.value).inc()
        logger.debug(
            "Broadcast %s mutation for %s", event.type.value, event.payload.subject_id
        )

        task = asyncio.create_task(self._fade(self.channel_name))
        self._fade_tasks.add(task)
        task.add_done_callback(self._fade_tasks.discard)
        return True

    async def _fade(self, name: str) -> None:
        await asyncio.sleep(self.fade_delay_ms / 1000)
        try:
            await self.channel.remove(name)
        except Exception:
            logger.exception("Failed to clear broadcast slot %s", name)

    async def _handle_signal(self, name: str, data: bytes | None) -> None:
        """Handle a signal written by a peer."""
        if name != self.channel_name or data is None:
            return

        try:
            event = MutationEvent.from_bytes(data)
        except MalformedEventError as e:
            self._metrics.mutations_dropped_total.labels(reason="malformed").inc()
            logger.warning(f"Dropping malformed mutation event: {e}")
            return

        if event.origin_id == self.origin_id:
            self._metrics.mutations_dropped_total.labels(reason="own_origin").inc()
            return

        self.apply(event)
        self._metrics.mutations_received_total.labels(type=event.type.value).inc()

        for handler in self._handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Mutation handler failed: {e}")

        logger.debug(
            "Applied %s mutation for %s from %s",
            event.type.value,
            event.payload.subject_id,
            event.origin_id,
        )

    @property
    def pending_fades(self) -> int:
        """Number of written signals not yet cleared."""
        return len(self._fade_tasks)
