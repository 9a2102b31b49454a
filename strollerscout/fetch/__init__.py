"""HTTP request execution with retries and failure classification.

This module provides:
- A retrying async executor over httpx with per-attempt timeouts
- Exponential backoff driven by a declarative retry policy
- Classification of every outcome into Success or FetchFailure
- Rate-limit header/body extraction
- Header redaction for security
- Metrics collection for observability
"""

from strollerscout.fetch.classifier import (
    classify_exception,
    classify_response,
    classify_success,
    format_user_message,
    read_rate_limit_info,
    status_message,
)
from strollerscout.fetch.constants import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PER_ATTEMPT_TIMEOUT_MS,
    DEFAULT_RETRYABLE_STATUSES,
    HTTP_STATUS_MESSAGES,
)
from strollerscout.fetch.executor import RetryingExecutor
from strollerscout.fetch.metrics import FetchMetrics
from strollerscout.fetch.models import (
    FailureClass,
    FetchFailure,
    RateLimitInfo,
    RequestDescriptor,
    RequestOutcome,
    RetryHooks,
    RetryPolicy,
    Success,
    UpstreamError,
)
from strollerscout.fetch.protocols import ResponseLike
from strollerscout.fetch.redact import redact_headers, redact_url_credentials


__all__ = [
    # Executor
    "RetryingExecutor",
    # Classification
    "classify_exception",
    "classify_response",
    "classify_success",
    "format_user_message",
    "read_rate_limit_info",
    "status_message",
    # Constants
    "DEFAULT_BASE_DELAY_MS",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_PER_ATTEMPT_TIMEOUT_MS",
    "DEFAULT_RETRYABLE_STATUSES",
    "HTTP_STATUS_MESSAGES",
    # Metrics
    "FetchMetrics",
    # Models
    "FailureClass",
    "FetchFailure",
    "RateLimitInfo",
    "RequestDescriptor",
    "RequestOutcome",
    "ResponseLike",
    "RetryHooks",
    "RetryPolicy",
    "Success",
    "UpstreamError",
    # Redaction
    "redact_headers",
    "redact_url_credentials",
]
