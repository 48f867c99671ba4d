"""Prometheus metrics for crosscache.

Provides cache and broadcast metrics:
- Cache metrics (hits, misses, evictions, invalidations, size)
- Broadcast metrics (mutations sent, received, dropped)

Usage:
    from crosscache.observability.metrics import get_metrics

    metrics = get_metrics()
    metrics.cache_hits_total.inc()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from crosscache.config import settings

logger = logging.getLogger(__name__)


class NoOpMetric:
    """No-op metric for when metrics are disabled."""

    def labels(self, **kwargs: Any) -> "NoOpMetric":
        """Return self for chaining."""
        return self

    def inc(self, amount: float = 1) -> None:
        """No-op."""
        pass

    def dec(self, amount: float = 1) -> None:
        """No-op."""
        pass

    def set(self, value: float) -> None:
        """No-op."""
        pass


_NOOP = NoOpMetric()


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    # Cache metrics
    cache_hits_total: Any = _NOOP
    cache_misses_total: Any = _NOOP
    cache_evictions_total: Any = _NOOP
    cache_invalidations_total: Any = _NOOP
    cache_entries: Any = _NOOP

    # Broadcast metrics
    mutations_broadcast_total: Any = _NOOP
    mutations_received_total: Any = _NOOP
    mutations_dropped_total: Any = _NOOP

    # Internal state
    _initialized: bool = field(default=False, repr=False)
    _registry: Any = field(default=None, repr=False)

    def initialize(self) -> None:
        """Initialize Prometheus metrics."""
        if self._initialized:
            return

        if not settings.enable_metrics:
            logger.info("Metrics are disabled")
            self._initialized = True
            return

        from prometheus_client import REGISTRY, Counter, Gauge

        self._registry = REGISTRY

        self.cache_hits_total = Counter("crosscache_hits_total", "Cache hits")
        self.cache_misses_total = Counter("crosscache_misses_total", "Cache misses")
        self.cache_evictions_total = Counter(
            "crosscache_evictions_total",
            "Entries removed before replacement",
            ["reason"],
        )
        self.cache_invalidations_total = Counter(
            "crosscache_invalidations_total",
            "Entries removed by pattern invalidation",
        )
        self.cache_entries = Gauge(
            "crosscache_entries",
            "Entries currently held by the store",
        )

        self.mutations_broadcast_total = Counter(
            "crosscache_mutations_broadcast_total",
            "Mutation events written to the broadcast channel",
            ["type"],
        )
        self.mutations_received_total = Counter(
            "crosscache_mutations_received_total",
            "Peer mutation events applied locally",
            ["type"],
        )
        self.mutations_dropped_total = Counter(
            "crosscache_mutations_dropped_total",
            "Peer mutation events ignored or rejected",
            ["reason"],
        )

        self._initialized = True
        logger.info("Prometheus metrics initialized")


# Global metrics registry
metrics_registry = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry.

    Initializes metrics on first access.
    """
    if not metrics_registry._initialized:
        metrics_registry.initialize()
    return metrics_registry
