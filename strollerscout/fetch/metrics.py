"""Metrics collection for the HTTP fetch layer."""

from dataclasses import dataclass, field
from typing import ClassVar

from strollerscout.fetch.models import FailureClass


@dataclass
class FetchMetrics:
    """Metrics for upstream HTTP calls.

    Singleton class that tracks attempts by status, retries, final
    failures by class and call duration across all executors.
    """

    http_attempts_total: dict[int, int] = field(default_factory=dict)
    http_retry_total: int = 0
    http_success_total: int = 0
    http_failures_total: dict[str, int] = field(default_factory=dict)
    http_duration_ms_total: float = 0.0
    http_request_count: int = 0

    _instance: ClassVar["FetchMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_attempt(self, status_code: int) -> None:
        """Record one attempt; status 0 means no response was received."""
        self.http_attempts_total[status_code] = (
            self.http_attempts_total.get(status_code, 0) + 1
        )

    def record_retry(self) -> None:
        """Record a scheduled retry."""
        self.http_retry_total += 1

    def record_success(self, duration_ms: float) -> None:
        """Record a logical request that returned a payload.

        Args:
            duration_ms: Wall time across all attempts.
        """
        self.http_success_total += 1
        self._record_duration(duration_ms)

    def record_failure(self, failure_class: FailureClass, duration_ms: float) -> None:
        """Record a logical request that ended in a failure.

        Args:
            failure_class: Classification of the final failure.
            duration_ms: Wall time across all attempts.
        """
        key = failure_class.value
        self.http_failures_total[key] = self.http_failures_total.get(key, 0) + 1
        self._record_duration(duration_ms)

    def _record_duration(self, duration_ms: float) -> None:
        self.http_duration_ms_total += duration_ms
        self.http_request_count += 1

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "http_attempts_total": dict(self.http_attempts_total),
            "http_retry_total": self.http_retry_total,
            "http_success_total": self.http_success_total,
            "http_failures_total": dict(self.http_failures_total),
            "http_duration_ms_total": self.http_duration_ms_total,
            "http_request_count": self.http_request_count,
        }

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average logical request duration.

        Returns:
            Average duration in milliseconds.
        """
        if self.http_request_count == 0:
            return 0.0
        return self.http_duration_ms_total / self.http_request_count
