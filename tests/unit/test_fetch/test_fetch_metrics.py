"""Unit tests for fetch and cache metrics."""

from strollerscout.cache.metrics import CacheMetrics
from strollerscout.fetch.metrics import FetchMetrics
from strollerscout.fetch.models import FailureClass


class TestFetchMetrics:
    """Tests for FetchMetrics."""

    def test_singleton_and_reset(self) -> None:
        """Test that get_instance is shared until reset."""
        FetchMetrics.reset()
        first = FetchMetrics.get_instance()

        assert FetchMetrics.get_instance() is first
        FetchMetrics.reset()
        assert FetchMetrics.get_instance() is not first

    def test_to_dict_and_average(self) -> None:
        """Test aggregation over successes and failures."""
        metrics = FetchMetrics()
        metrics.record_attempt(200)
        metrics.record_attempt(0)
        metrics.record_success(100.0)
        metrics.record_failure(FailureClass.NETWORK_TIMEOUT, 300.0)

        result = metrics.to_dict()

        assert result["http_attempts_total"] == {200: 1, 0: 1}
        assert result["http_success_total"] == 1
        assert result["http_failures_total"] == {"NETWORK_TIMEOUT": 1}
        assert metrics.avg_duration_ms == 200.0

    def test_average_without_requests(self) -> None:
        """Test that an idle collector averages to zero."""
        assert FetchMetrics().avg_duration_ms == 0.0


class TestCacheMetrics:
    """Tests for CacheMetrics."""

    def test_hit_ratio(self) -> None:
        """Test hit ratio arithmetic."""
        metrics = CacheMetrics(hits=3, misses=1)

        assert metrics.hit_ratio == 0.75
        assert metrics.to_dict()["hit_ratio"] == 0.75

    def test_hit_ratio_without_reads(self) -> None:
        """Test that no reads means a zero ratio."""
        assert CacheMetrics().hit_ratio == 0.0
