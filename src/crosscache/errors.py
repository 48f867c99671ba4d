"""Exception types for crosscache.

Core cache operations do not raise these to callers; they mark failures that
the broadcaster catches, logs and drops.
"""

from __future__ import annotations


class CacheError(Exception):
    """Base class for crosscache errors."""


class MalformedEventError(CacheError):
    """A received broadcast envelope could not be decoded."""


class ChannelError(CacheError):
    """The broadcast channel rejected a write or removal."""
