"""Tests for cache metrics."""

from crosscache.cache.store import CacheStore
from crosscache.observability.metrics import NoOpMetric, get_metrics


class TestMetrics:
    """Test metrics registry behaviour."""

    def test_registry_is_initialized_once(self) -> None:
        first = get_metrics()
        second = get_metrics()
        assert first is second
        assert first._initialized is True

    def test_store_reports_hits(self, store: CacheStore) -> None:
        metrics = get_metrics()
        if metrics._registry is None:
            return

        before = metrics._registry.get_sample_value("crosscache_hits_total") or 0.0
        store.set("a", 1)
        store.get("a")
        after = metrics._registry.get_sample_value("crosscache_hits_total")

        assert after == before + 1

    def test_noop_metric_chains(self) -> None:
        metric = NoOpMetric()
        metric.labels(reason="expired").inc()
        metric.set(3)
