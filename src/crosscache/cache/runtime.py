"""Process-level wiring for the crosscache store and broadcaster.

Configuration is first-writer-wins: ``configure()`` calls are merged until
the first ``get_instance()`` builds the store, after which the settings are
frozen and further ``configure()`` calls are accepted but have no effect.

Usage:
    from crosscache.cache import runtime

    runtime.configure(default_ttl_ms=60_000, broadcast_backend="redis")
    await runtime.start_cache()

    store = runtime.get_instance()
    broadcaster = runtime.get_broadcaster()
    client = runtime.create_client(on_update=rerender)
    ...
    await runtime.stop_cache()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import TypeAdapter

from crosscache.cache.broadcaster import CrossProcessBroadcaster
from crosscache.cache.channel import (
    BroadcastChannel,
    InMemoryBroadcastHub,
    NullBroadcastChannel,
    RedisBroadcastChannel,
)
from crosscache.cache.client import CacheClient
from crosscache.cache.keys import CanonicalKey
from crosscache.cache.store import CacheStore
from crosscache.cache.sweeper import ExpirySweeper
from crosscache.config import Settings, settings

logger = logging.getLogger(__name__)

_pending: dict[str, Any] = {}
_frozen: Settings | None = None
_store: CacheStore | None = None
_broadcaster: CrossProcessBroadcaster | None = None
_sweeper: ExpirySweeper | None = None

# Shared by every in-memory channel created in this process
_memory_hub = InMemoryBroadcastHub()


def configure(**partial: Any) -> None:
    """Merge settings overrides for the store that has not been built yet."""
    if not partial:
        return

    unknown = set(partial) - set(Settings.model_fields)
    if unknown:
        raise ValueError(f"Unknown cache settings: {', '.join(sorted(unknown))}")

    if _frozen is not None:
        logger.debug("Cache already initialized, ignoring configure(%s)", ", ".join(partial))
        return

    # Raises pydantic.ValidationError (a ValueError) for values of the wrong type
    _pending.update(
        {
            name: TypeAdapter(Settings.model_fields[name].annotation).validate_python(value)
            for name, value in partial.items()
        }
    )


def current_settings() -> Settings:
    """Settings in effect, frozen once the store exists."""
    if _frozen is not None:
        return _frozen
    return settings.model_copy(update=_pending)


def create_channel(config: Settings) -> BroadcastChannel:
    """Create a broadcast channel based on configuration."""
    if not config.sync_enabled:
        return NullBroadcastChannel()

    backend = config.broadcast_backend.lower()

    if backend in {"memory", "inmemory", "in_memory"}:
        return _memory_hub.channel()

    if backend == "redis":
        return RedisBroadcastChannel(
            name=config.channel_name,
            redis_url=config.redis_url,
            # Key expiry backs up the fade removal
            retain_ms=max(config.fade_delay_ms * 10, 1000),
        )

    raise ValueError("Unsupported broadcast_backend. Supported values: memory, redis.")


def get_instance() -> CacheStore:
    """Get the process-wide cache store, building it on first use."""
    global _frozen, _store
    if _store is None:
        _frozen = current_settings()
        _store = CacheStore.from_settings(_frozen)
        logger.info(
            "Cache store created (default TTL %d ms, max entries %s)",
            _frozen.default_ttl_ms,
            _frozen.max_entries,
        )
    return _store


def get_broadcaster() -> CrossProcessBroadcaster:
    """Get the process-wide broadcaster bound to the store."""
    global _broadcaster
    if _broadcaster is None:
        store = get_instance()
        config = current_settings()
        _broadcaster = CrossProcessBroadcaster(
            store,
            create_channel(config),
            origin_id=config.instance_id,
            channel_name=config.channel_name,
            fade_delay_ms=config.fade_delay_ms,
            sync_enabled=config.sync_enabled,
        )
    return _broadcaster


def create_client(
    on_update: Callable[[CanonicalKey], None] | None = None, debug: bool = False
) -> CacheClient:
    """Create a client on the process-wide store and broadcaster."""
    return CacheClient(
        get_instance(),
        get_broadcaster(),
        on_update=on_update,
        stats_interval_ms=current_settings().stats_interval_ms,
        debug=debug,
    )


async def start_cache() -> CacheStore:
    """Build the store, start cross-process sync and the expiry sweeper."""
    global _sweeper
    store = get_instance()
    await get_broadcaster().start()

    if _sweeper is None:
        config = current_settings()
        _sweeper = ExpirySweeper(
            store,
            interval_ms=config.cleanup_interval_ms,
            batch_size=config.sweep_batch_size,
        )
        await _sweeper.start()

    return store


async def stop_cache() -> None:
    """Stop background tasks and discard the process-wide instances."""
    if _sweeper is not None:
        await _sweeper.stop()
    if _broadcaster is not None:
        await _broadcaster.stop()
    reset_instance()


def reset_instance() -> None:
    """Forget the instances and pending configuration.

    Background tasks are not stopped; use stop_cache() for a running cache.
    """
    global _frozen, _store, _broadcaster, _sweeper
    _broadcaster = None
    _sweeper = None
    _store = None
    _frozen = None
    _pending.clear()
