"""crosscache: read-through entity cache with cross-process invalidation."""

__version__ = "0.1.0"
