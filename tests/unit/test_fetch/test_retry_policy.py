"""Unit tests for retry policy decisions."""

import pytest
from pydantic import ValidationError

from strollerscout.fetch.models import FailureClass, FetchFailure, RetryPolicy


def _failure(retryable: bool, status_code: int = 503) -> FetchFailure:
    return FetchFailure(
        failure_class=FailureClass.HTTP_5XX,
        status_code=status_code,
        retryable=retryable,
        message="Service temporarily unavailable. Please try again.",
    )


class TestRetryPolicy:
    """Tests for RetryPolicy model."""

    def test_default_values(self) -> None:
        """Test default retry policy values."""
        policy = RetryPolicy()

        assert policy.max_retries == 2
        assert policy.max_attempts == 3
        assert policy.base_delay_ms == 1000
        assert policy.per_attempt_timeout_ms == 30000
        assert policy.retryable_statuses == frozenset({429, 502, 503, 504})

    def test_custom_values(self) -> None:
        """Test custom retry policy values."""
        policy = RetryPolicy(
            max_retries=0,
            base_delay_ms=250,
            per_attempt_timeout_ms=8000,
            retryable_statuses=frozenset({503}),
        )

        assert policy.max_attempts == 1
        assert policy.is_retryable_status(503) is True
        assert policy.is_retryable_status(502) is False

    def test_rejects_negative_retries(self) -> None:
        """Test that negative max_retries is rejected."""
        with pytest.raises(ValidationError):
            RetryPolicy(max_retries=-1)

    def test_rejects_zero_timeout(self) -> None:
        """Test that a zero per-attempt timeout is rejected."""
        with pytest.raises(ValidationError):
            RetryPolicy(per_attempt_timeout_ms=0)

    def test_frozen(self) -> None:
        """Test that policies are immutable."""
        policy = RetryPolicy()

        with pytest.raises(ValidationError):
            policy.max_retries = 5  # type: ignore[misc]


class TestShouldRetry:
    """Tests for retry decision logic."""

    @pytest.fixture
    def policy(self) -> RetryPolicy:
        """Create the default retry policy."""
        return RetryPolicy(max_retries=2)

    def test_retryable_failure_retried_until_budget(self, policy: RetryPolicy) -> None:
        """Test that retryable failures retry until max_retries is spent."""
        failure = _failure(retryable=True)

        assert policy.should_retry(failure, attempt=0) is True
        assert policy.should_retry(failure, attempt=1) is True
        assert policy.should_retry(failure, attempt=2) is False

    def test_non_retryable_failure_never_retried(self, policy: RetryPolicy) -> None:
        """Test that permanent failures stop at the first attempt."""
        failure = _failure(retryable=False, status_code=400)

        assert policy.should_retry(failure, attempt=0) is False

    def test_zero_retries(self) -> None:
        """Test that max_retries=0 never retries."""
        policy = RetryPolicy(max_retries=0)

        assert policy.should_retry(_failure(retryable=True), attempt=0) is False


class TestDelayCalculation:
    """Tests for backoff delay calculation."""

    def test_exponential_progression(self) -> None:
        """Test that delays double per attempt: 1s, 2s, 4s."""
        policy = RetryPolicy()

        assert policy.get_delay_ms(0) == 1000
        assert policy.get_delay_ms(1) == 2000
        assert policy.get_delay_ms(2) == 4000

    def test_custom_base_delay(self) -> None:
        """Test that the base delay scales the whole progression."""
        policy = RetryPolicy(base_delay_ms=100)

        assert [policy.get_delay_ms(n) for n in range(3)] == [100, 200, 400]
