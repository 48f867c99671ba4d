"""Tests for broadcast channels."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
import redis.asyncio as redis

from crosscache.cache.channel import (
    InMemoryBroadcastHub,
    NullBroadcastChannel,
    RedisBroadcastChannel,
)
from crosscache.errors import ChannelError


class TestInMemoryBroadcastHub:
    """Test the in-process channel hub."""

    @pytest.fixture
    def hub(self) -> InMemoryBroadcastHub:
        return InMemoryBroadcastHub()

    async def test_write_reaches_other_peers_only(self, hub: InMemoryBroadcastHub) -> None:
        writer = hub.channel()
        reader = hub.channel()
        writer_seen: list = []
        reader_seen: list = []

        async def on_writer(name: str, data: bytes | None) -> None:
            writer_seen.append((name, data))

        async def on_reader(name: str, data: bytes | None) -> None:
            reader_seen.append((name, data))

        writer.listen(on_writer)
        reader.listen(on_reader)
        await writer.start()
        await reader.start()

        await writer.write("slot", b"hello")
        await hub.drain()

        assert reader_seen == [("slot", b"hello")]
        assert writer_seen == []

        await writer.stop()
        await reader.stop()

    async def test_slot_value_is_kept_until_removed(self, hub: InMemoryBroadcastHub) -> None:
        peer = hub.channel()
        await peer.write("slot", b"hello")
        assert hub.value("slot") == b"hello"

        await peer.remove("slot")
        assert hub.value("slot") is None

    async def test_removal_is_delivered_as_none(self, hub: InMemoryBroadcastHub) -> None:
        writer = hub.channel()
        reader = hub.channel()
        seen: list = []

        async def on_reader(name: str, data: bytes | None) -> None:
            seen.append((name, data))

        reader.listen(on_reader)
        await reader.start()

        await writer.write("slot", b"x")
        await writer.remove("slot")
        await hub.drain()

        assert seen == [("slot", b"x"), ("slot", None)]
        await reader.stop()

    async def test_stopped_peer_receives_nothing(self, hub: InMemoryBroadcastHub) -> None:
        writer = hub.channel()
        reader = hub.channel()
        seen: list = []

        async def on_reader(name: str, data: bytes | None) -> None:
            seen.append(name)

        reader.listen(on_reader)
        await writer.write("slot", b"x")
        await hub.drain()

        assert seen == []

    async def test_peers_join_on_start_and_leave_on_stop(self, hub: InMemoryBroadcastHub) -> None:
        peer = hub.channel()
        assert hub.peer_count == 0

        await peer.start()
        await peer.start()
        assert hub.peer_count == 1

        await peer.stop()
        assert hub.peer_count == 0

    async def test_failing_handler_does_not_stop_loop(self, hub: InMemoryBroadcastHub) -> None:
        writer = hub.channel()
        reader = hub.channel()
        seen: list = []

        async def broken(name: str, data: bytes | None) -> None:
            raise RuntimeError("boom")

        async def on_reader(name: str, data: bytes | None) -> None:
            seen.append(data)

        reader.listen(broken)
        reader.listen(on_reader)
        await reader.start()

        await writer.write("slot", b"1")
        await writer.write("slot", b"2")
        await hub.drain()

        assert seen == [b"1", b"2"]
        await reader.stop()


class TestNullBroadcastChannel:
    """Test the disabled channel."""

    async def test_operations_are_noops(self) -> None:
        channel = NullBroadcastChannel()
        await channel.start()
        await channel.write("slot", b"x")
        await channel.remove("slot")
        await channel.stop()


class TestRedisBroadcastChannel:
    """Test the Redis channel against a mocked client."""

    @pytest.fixture
    def pipeline(self) -> MagicMock:
        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[True, 1])
        pipe.__aenter__ = AsyncMock(return_value=pipe)
        pipe.__aexit__ = AsyncMock(return_value=None)
        return pipe

    @pytest.fixture
    def client(self, pipeline: MagicMock) -> MagicMock:
        client = MagicMock()
        client.pipeline.return_value = pipeline
        client.delete = AsyncMock(return_value=1)
        return client

    async def test_write_sets_and_publishes(self, client: MagicMock, pipeline: MagicMock) -> None:
        channel = RedisBroadcastChannel("crosscache:mutation", client=client, retain_ms=500)

        await channel.write("crosscache:mutation", b"data")

        pipeline.set.assert_called_once_with("crosscache:mutation", b"data", px=500)
        pipeline.publish.assert_called_once_with("crosscache:mutation", b"data")
        pipeline.execute.assert_awaited_once()

    async def test_remove_deletes_key(self, client: MagicMock) -> None:
        channel = RedisBroadcastChannel("crosscache:mutation", client=client)
        await channel.remove("crosscache:mutation")
        client.delete.assert_awaited_once_with("crosscache:mutation")

    async def test_redis_errors_become_channel_errors(
        self, client: MagicMock, pipeline: MagicMock
    ) -> None:
        pipeline.execute = AsyncMock(side_effect=redis.ConnectionError("down"))
        channel = RedisBroadcastChannel("crosscache:mutation", client=client)

        with pytest.raises(ChannelError):
            await channel.write("crosscache:mutation", b"data")

    async def test_listen_loop_dispatches_messages(self, client: MagicMock) -> None:
        pubsub = MagicMock()
        pubsub.subscribe = AsyncMock()
        pubsub.unsubscribe = AsyncMock()
        pubsub.aclose = AsyncMock()
        messages = [
            {"type": "message", "channel": b"crosscache:mutation", "data": b"payload"},
        ]

        async def get_message(**kwargs):
            if messages:
                return messages.pop(0)
            await asyncio.sleep(0.01)
            return None

        pubsub.get_message = get_message
        client.pubsub.return_value = pubsub

        seen: list = []

        async def handler(name: str, data: bytes | None) -> None:
            seen.append((name, data))

        channel = RedisBroadcastChannel("crosscache:mutation", client=client)
        channel.listen(handler)
        await channel.start()
        await asyncio.sleep(0.05)
        await channel.stop()

        pubsub.subscribe.assert_awaited_once_with("crosscache:mutation")
        pubsub.unsubscribe.assert_awaited_once_with("crosscache:mutation")
        assert seen == [("crosscache:mutation", b"payload")]
