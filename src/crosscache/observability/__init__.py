"""Observability module for crosscache.

Provides metrics and structured logging:
- Prometheus metrics for cache and broadcast activity
- JSON structured logging tagged with the process origin
"""

from crosscache.observability.logging import (
    LogContext,
    configure_logging,
    origin_id_var,
)
from crosscache.observability.metrics import get_metrics, metrics_registry

__all__ = [
    # Logging
    "configure_logging",
    "LogContext",
    "origin_id_var",
    # Metrics
    "metrics_registry",
    "get_metrics",
]
