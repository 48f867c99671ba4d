"""Cache layer for crosscache.

Provides an in-memory read-through cache:
- TTL-based expiry, checked lazily on access and by a periodic sweeper
- Prefix-based pattern invalidation over canonical keys
- In-process change subscriptions
- Cross-process invalidation via fire-and-fade mutation broadcasts
"""

from crosscache.cache.broadcaster import CrossProcessBroadcaster
from crosscache.cache.channel import (
    BroadcastChannel,
    InMemoryBroadcastHub,
    NullBroadcastChannel,
    RedisBroadcastChannel,
)
from crosscache.cache.client import CacheClient, CacheStats
from crosscache.cache.events import MutationEvent, MutationPayload, MutationType
from crosscache.cache.keys import ALL_KEYS, CacheKeys, CanonicalKey, canonicalize
from crosscache.cache.runtime import (
    configure,
    create_client,
    get_broadcaster,
    get_instance,
    start_cache,
    stop_cache,
)
from crosscache.cache.store import CacheStore
from crosscache.cache.subscribers import SubscriberRegistry
from crosscache.cache.sweeper import ExpirySweeper

__all__ = [
    # Core cache
    "ALL_KEYS",
    "CacheKeys",
    "CanonicalKey",
    "canonicalize",
    "CacheStore",
    "SubscriberRegistry",
    "ExpirySweeper",
    "CacheClient",
    "CacheStats",
    # Cross-process invalidation
    "BroadcastChannel",
    "InMemoryBroadcastHub",
    "NullBroadcastChannel",
    "RedisBroadcastChannel",
    "CrossProcessBroadcaster",
    "MutationEvent",
    "MutationPayload",
    "MutationType",
    # Process wiring
    "configure",
    "create_client",
    "get_instance",
    "get_broadcaster",
    "start_cache",
    "stop_cache",
]
