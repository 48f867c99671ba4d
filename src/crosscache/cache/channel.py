"""Broadcast channels connecting crosscache peers.

A channel is a named slot that peers write short-lived signals into:
- InMemoryBroadcastHub: peers inside one process (tests, single-process apps)
- RedisBroadcastChannel: peers across processes/hosts via Redis Pub/Sub
- NullBroadcastChannel: sync disabled

Like browser storage events, a write is delivered to every other peer on the
channel but not echoed back to the writer.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import redis.asyncio as redis

from crosscache.errors import ChannelError

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from redis.asyncio.client import PubSub

logger = logging.getLogger(__name__)

# Receives (name, data); data is None when the slot was cleared
ChannelHandler = Callable[[str, bytes | None], Awaitable[None]]


class BroadcastChannel(ABC):
    """Abstract broadcast channel interface."""

    def __init__(self) -> None:
        self._handlers: list[ChannelHandler] = []

    def listen(self, handler: ChannelHandler) -> None:
        """Register a handler for signals written by other peers."""
        self._handlers.append(handler)

    async def _dispatch(self, name: str, data: bytes | None) -> None:
        for handler in self._handlers:
            try:
                await handler(name, data)
            except Exception:
                logger.exception("Error in broadcast channel handler")

    @abstractmethod
    async def write(self, name: str, data: bytes) -> None:
        """Write a signal into the named slot."""
        pass

    @abstractmethod
    async def remove(self, name: str) -> None:
        """Clear the named slot."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Start receiving signals from peers."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop receiving signals and release resources."""
        pass


class NullBroadcastChannel(BroadcastChannel):
    """Channel that goes nowhere, for deployments without sync."""

    async def write(self, name: str, data: bytes) -> None:
        pass

    async def remove(self, name: str) -> None:
        pass

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass


class InMemoryBroadcastHub:
    """Shared medium for in-process peers.

    ``channel()`` creates a peer; it joins the hub while started and leaves it
    on stop. Slot values are kept on the hub so tests can observe
    fire-and-fade behaviour.
    """

    def __init__(self, max_size: int = 10000) -> None:
        self.max_size = max_size
        self._peers: list[InMemoryBroadcastChannel] = []
        self._values: dict[str, bytes] = {}

    def channel(self) -> InMemoryBroadcastChannel:
        """Create a new peer channel."""
        return InMemoryBroadcastChannel(self)

    def attach(self, peer: InMemoryBroadcastChannel) -> None:
        if peer not in self._peers:
            self._peers.append(peer)

    def detach(self, peer: InMemoryBroadcastChannel) -> None:
        if peer in self._peers:
            self._peers.remove(peer)

    @property
    def peer_count(self) -> int:
        return len(self._peers)

    def value(self, name: str) -> bytes | None:
        """Current content of a slot."""
        return self._values.get(name)

    def _deliver(self, sender: InMemoryBroadcastChannel, name: str, data: bytes | None) -> None:
        if data is None:
            self._values.pop(name, None)
        else:
            self._values[name] = data

        for peer in self._peers:
            if peer is not sender and peer.running:
                peer._enqueue(name, data)

    async def drain(self) -> None:
        """Wait until every peer has handled its pending signals."""
        for peer in list(self._peers):
            if peer.running:
                await peer.drain()


class InMemoryBroadcastChannel(BroadcastChannel):
    """One peer on an InMemoryBroadcastHub, fed through an asyncio.Queue."""

    def __init__(self, hub: InMemoryBroadcastHub) -> None:
        super().__init__()
        self._hub = hub
        self._queue: asyncio.Queue[tuple[str, bytes | None]] = asyncio.Queue(
            maxsize=hub.max_size
        )
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def write(self, name: str, data: bytes) -> None:
        self._hub._deliver(self, name, data)

    async def remove(self, name: str) -> None:
        self._hub._deliver(self, name, None)

    def _enqueue(self, name: str, data: bytes | None) -> None:
        try:
            self._queue.put_nowait((name, data))
        except asyncio.QueueFull:
            logger.warning("Broadcast queue full, dropping signal for %s", name)

    async def start(self) -> None:
        if self._running:
            return

        self._hub.attach(self)
        self._running = True
        self._task = asyncio.create_task(self._process_loop())

    async def stop(self) -> None:
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._hub.detach(self)

    async def _process_loop(self) -> None:
        while self._running:
            try:
                name, data = await self._queue.get()
            except asyncio.CancelledError:
                break

            try:
                await self._dispatch(name, data)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait for all pending signals to be handled."""
        await self._queue.join()


class RedisBroadcastChannel(BroadcastChannel):
    """Channel backed by Redis Pub/Sub.

    A write stores the signal under ``name`` with a short expiry and publishes
    it on the Pub/Sub channel of the same name. Removal deletes the key; peers
    only ever see published writes.
    """

    def __init__(
        self,
        name: str,
        redis_url: str = "redis://localhost:6379/0",
        client: Redis | None = None,
        retain_ms: int = 1000,
    ) -> None:
        super().__init__()
        self.name = name
        self.redis_url = redis_url
        self.retain_ms = retain_ms
        self._redis: Redis | None = client
        self._owns_client = client is None
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._pubsub: PubSub | None = None

    def _get_redis(self) -> Redis:
        """Get or create the Redis client."""
        if self._redis is None:
            self._redis = redis.from_url(  # type: ignore[no-untyped-call]
                self.redis_url,
                encoding="utf-8",
                decode_responses=False,
            )
        return self._redis

    async def write(self, name: str, data: bytes) -> None:
        client = self._get_redis()
        try:
            async with client.pipeline() as pipe:
                pipe.set(name, data, px=self.retain_ms)
                pipe.publish(name, data)
                await pipe.execute()
        except redis.RedisError as e:
            raise ChannelError(f"Failed to write {name}: {e}") from e

    async def remove(self, name: str) -> None:
        try:
            await self._get_redis().delete(name)
        except redis.RedisError as e:
            raise ChannelError(f"Failed to remove {name}: {e}") from e

    async def start(self) -> None:
        if self._running:
            return

        self._pubsub = self._get_redis().pubsub()
        await self._pubsub.subscribe(self.name)

        self._running = True
        self._task = asyncio.create_task(self._listen_loop())
        logger.info("Listening for mutations on Redis channel %s", self.name)

    async def stop(self) -> None:
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._pubsub:
            await self._pubsub.unsubscribe(self.name)
            await self._pubsub.aclose()
            self._pubsub = None

        if self._owns_client and self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def _listen_loop(self) -> None:
        while self._running and self._pubsub:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )

                if message is None:
                    continue

                if message["type"] == "message":
                    channel = message["channel"]
                    if isinstance(channel, bytes):
                        channel = channel.decode()
                    await self._dispatch(channel, message["data"])

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in broadcast listener: {e}")
                await asyncio.sleep(1)
