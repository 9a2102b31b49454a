"""Data models for the HTTP fetch layer."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from strollerscout.fetch.constants import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PER_ATTEMPT_TIMEOUT_MS,
    DEFAULT_RETRYABLE_STATUSES,
    TRANSPORT_STATUS_CODE,
)


class FailureClass(str, Enum):
    """Classification of fetch failures for metrics and logging.

    - NETWORK_TIMEOUT: Attempt exceeded its deadline
    - CONNECTION_ERROR: Could not reach the upstream
    - REQUEST_ERROR: Request could not be issued (bad URL, redirect loop)
    - MALFORMED_RESPONSE: 2xx response whose body is not valid JSON
    - HTTP_3XX: Redirect that was not followed
    - RATE_LIMITED: 429 Too Many Requests
    - HTTP_4XX: Client error other than 429
    - HTTP_5XX: Server error, or a status outside the standard ranges
    """

    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    REQUEST_ERROR = "REQUEST_ERROR"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    HTTP_3XX = "HTTP_3XX"
    RATE_LIMITED = "RATE_LIMITED"
    HTTP_4XX = "HTTP_4XX"
    HTTP_5XX = "HTTP_5XX"


class FetchFailure(BaseModel):
    """Typed failure from a fetch attempt.

    The message is always safe to show an end user: it never contains
    raw upstream markup or exception text.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    failure_class: FailureClass = Field(description="Classification of the failure")
    status_code: Annotated[int, Field(ge=0)] = TRANSPORT_STATUS_CODE
    retryable: bool = Field(description="Whether a new attempt may succeed")
    message: Annotated[str, Field(min_length=1, description="User-safe message")]
    rate_limit_reset_at: float | None = Field(
        default=None, description="Absolute time (epoch seconds) the quota resets"
    )

    @property
    def is_transport(self) -> bool:
        """Check if the failure happened before any HTTP status was received."""
        return self.status_code == TRANSPORT_STATUS_CODE


class Success(BaseModel):
    """Decoded payload from a successful fetch."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status_code: Annotated[int, Field(ge=200, le=299)] = 200
    payload: Any = None


RequestOutcome = Success | FetchFailure


class RateLimitInfo(BaseModel):
    """Rate-limit telemetry read from response headers."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    remaining: float | None = None
    reset_at: float | None = None


class RequestDescriptor(BaseModel):
    """Everything needed to issue one logical HTTP request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: Annotated[str, Field(min_length=1)]
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    params: dict[str, str | int | float] | None = None
    data: dict[str, str] | None = None
    json_body: Any = None


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    Uses exponential backoff: delay = base_delay_ms * 2 ** attempt, so the
    defaults wait 1s, 2s, 4s after attempts 0, 1, 2.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: Annotated[int, Field(ge=0, le=10)] = DEFAULT_MAX_RETRIES
    retryable_statuses: frozenset[int] = DEFAULT_RETRYABLE_STATUSES
    base_delay_ms: Annotated[int, Field(ge=0, le=60000)] = DEFAULT_BASE_DELAY_MS
    per_attempt_timeout_ms: Annotated[int, Field(gt=0, le=300000)] = (
        DEFAULT_PER_ATTEMPT_TIMEOUT_MS
    )

    @property
    def max_attempts(self) -> int:
        """Total number of attempts, including the first."""
        return self.max_retries + 1

    def is_retryable_status(self, status_code: int) -> bool:
        """Check if an HTTP status is transient under this policy."""
        return status_code in self.retryable_statuses

    def should_retry(self, failure: FetchFailure, attempt: int) -> bool:
        """Determine if another attempt should follow a failure.

        Args:
            failure: The classified failure.
            attempt: Current attempt number (0-indexed).

        Returns:
            True if the request should be retried.
        """
        if attempt >= self.max_retries:
            return False
        return failure.retryable

    def get_delay_ms(self, attempt: int) -> int:
        """Calculate delay before the attempt following ``attempt``.

        Args:
            attempt: Attempt number that just failed (0-indexed).

        Returns:
            Delay in milliseconds.
        """
        return self.base_delay_ms * (2**attempt)


@dataclass(frozen=True)
class RetryHooks:
    """Optional observers invoked synchronously by the executor.

    Attributes:
        on_retry: Called before each backoff with the upcoming attempt
            number (1-indexed) and the failure that triggered it.
        on_rate_limit_info: Called whenever a response carries rate-limit
            headers, on both success and failure.
    """

    on_retry: Callable[[int, FetchFailure], None] | None = None
    on_rate_limit_info: Callable[[RateLimitInfo], None] | None = None


class UpstreamError(Exception):
    """Raised when a request ends in a classified failure.

    Attributes:
        failure: The final attempt's failure.
    """

    def __init__(self, failure: FetchFailure) -> None:
        super().__init__(failure.message)
        self.failure = failure

    @property
    def status_code(self) -> int:
        """HTTP status, or 0 for transport failures."""
        return self.failure.status_code

    @property
    def retryable(self) -> bool:
        """Whether the failure was classified as transient."""
        return self.failure.retryable

    @property
    def message(self) -> str:
        """User-safe message."""
        return self.failure.message

    @property
    def rate_limit_reset_at(self) -> float | None:
        """Absolute quota reset time, if the upstream reported one."""
        return self.failure.rate_limit_reset_at

    def to_dict(self) -> dict[str, str | int | float | bool | None]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "failure_class": self.failure.failure_class.value,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "message": self.message,
            "rate_limit_reset_at": self.rate_limit_reset_at,
        }
