"""Retrying request executor for upstream HTTP services."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Any

import httpx
import structlog

from strollerscout.fetch.classifier import (
    classify_exception,
    classify_response,
    classify_success,
    is_success_status,
)
from strollerscout.fetch.constants import TRANSPORT_STATUS_CODE
from strollerscout.fetch.metrics import FetchMetrics
from strollerscout.fetch.models import (
    FetchFailure,
    RequestDescriptor,
    RequestOutcome,
    RetryHooks,
    RetryPolicy,
    Success,
    UpstreamError,
)
from strollerscout.fetch.redact import (
    redact_fields,
    redact_headers,
    redact_url_credentials,
)


logger = structlog.get_logger()

Sleeper = Callable[[float], Awaitable[None]]

_NO_HOOKS = RetryHooks()


class RetryingExecutor:
    """HTTP executor with per-attempt deadlines and bounded retries.

    Provides upstream calls with:
    - A fresh deadline for every attempt
    - Classification of every outcome into Success or FetchFailure
    - Exponential backoff on retryable failures only
    - Observer hooks for retries and rate-limit headers
    - Header and secret redaction in logs

    Attempts within one call are strictly sequential. Separate calls may
    interleave freely on the event loop; the executor keeps no per-call
    state on the instance.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        policy: RetryPolicy | None = None,
        *,
        sleep: Sleeper = asyncio.sleep,
        metrics: FetchMetrics | None = None,
        name: str = "upstream",
    ) -> None:
        """Initialize the executor.

        Args:
            client: HTTP client to send requests with. When omitted the
                executor creates and owns one.
            policy: Default retry policy for calls that pass none.
            sleep: Coroutine used for backoff waits.
            metrics: Metrics sink; defaults to the shared instance.
            name: Upstream name used in log events.
        """
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(follow_redirects=True)
        self._client = client
        self._policy = policy or RetryPolicy()
        self._sleep = sleep
        self._metrics = metrics or FetchMetrics.get_instance()
        self._log = logger.bind(component="fetch", upstream=name)

    @property
    def policy(self) -> RetryPolicy:
        """Default retry policy."""
        return self._policy

    async def aclose(self) -> None:
        """Close the HTTP client if this executor created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RetryingExecutor":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def execute(
        self,
        request: RequestDescriptor,
        policy: RetryPolicy | None = None,
        hooks: RetryHooks | None = None,
    ) -> Any:
        """Perform a request and return its decoded JSON payload.

        Args:
            request: Request to issue.
            policy: Retry policy; defaults to the executor's policy.
            hooks: Optional observers.

        Returns:
            Decoded JSON payload.

        Raises:
            UpstreamError: Carrying the last attempt's failure.
        """
        outcome = await self.send(request, policy=policy, hooks=hooks)
        if isinstance(outcome, FetchFailure):
            raise UpstreamError(outcome)
        return outcome.payload

    async def send(
        self,
        request: RequestDescriptor,
        policy: RetryPolicy | None = None,
        hooks: RetryHooks | None = None,
    ) -> RequestOutcome:
        """Perform a request, returning a typed outcome instead of raising.

        Args:
            request: Request to issue.
            policy: Retry policy; defaults to the executor's policy.
            hooks: Optional observers.

        Returns:
            Success, or the last attempt's FetchFailure.
        """
        policy = policy or self._policy
        hooks = hooks or _NO_HOOKS
        start_time_ns = time.perf_counter_ns()
        log = self._log.bind(
            method=request.method,
            url=redact_url_credentials(request.url),
        )

        attempt = 0
        while True:
            outcome = await self._attempt(request, policy, hooks, attempt, log)
            duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000

            if isinstance(outcome, Success):
                self._metrics.record_success(duration_ms)
                log.info(
                    "fetch_complete",
                    status_code=outcome.status_code,
                    attempts=attempt + 1,
                    duration_ms=round(duration_ms, 2),
                )
                return outcome

            if not policy.should_retry(outcome, attempt):
                self._metrics.record_failure(outcome.failure_class, duration_ms)
                log.warning(
                    "fetch_failed",
                    status_code=outcome.status_code,
                    error_class=outcome.failure_class.value,
                    retryable=outcome.retryable,
                    attempts=attempt + 1,
                    duration_ms=round(duration_ms, 2),
                )
                return outcome

            delay_ms = policy.get_delay_ms(attempt)
            self._metrics.record_retry()
            log.info(
                "fetch_retry_scheduled",
                attempt=attempt + 1,
                delay_ms=delay_ms,
                max_retries=policy.max_retries,
                status_code=outcome.status_code,
                error_class=outcome.failure_class.value,
            )
            self._notify_retry(hooks, attempt + 1, outcome, log)
            await self._sleep(delay_ms / 1000.0)
            attempt += 1

    async def _attempt(
        self,
        request: RequestDescriptor,
        policy: RetryPolicy,
        hooks: RetryHooks,
        attempt: int,
        log: structlog.stdlib.BoundLogger,
    ) -> RequestOutcome:
        """Execute a single attempt under its own deadline.

        Args:
            request: Request to issue.
            policy: Active retry policy.
            hooks: Observers.
            attempt: Current attempt number (0-indexed).
            log: Bound logger.

        Returns:
            Classified outcome of this attempt.
        """
        timeout_seconds = policy.per_attempt_timeout_ms / 1000.0
        log.debug(
            "fetch_attempt",
            attempt=attempt,
            headers=redact_headers(request.headers),
            params=redact_fields(request.params),
            data=redact_fields(request.data),
        )

        try:
            async with asyncio.timeout(timeout_seconds):
                response = await self._client.request(
                    request.method,
                    request.url,
                    headers=request.headers,
                    params=request.params,
                    data=request.data,
                    json=request.json_body,
                    timeout=timeout_seconds,
                )
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            failure = classify_exception(exc)
            self._metrics.record_attempt(TRANSPORT_STATUS_CODE)
            log.debug(
                "fetch_attempt_failed",
                attempt=attempt,
                error_class=failure.failure_class.value,
                error_type=type(exc).__name__,
            )
            return failure

        self._metrics.record_attempt(response.status_code)

        if is_success_status(response.status_code):
            return classify_success(response, hooks.on_rate_limit_info)

        return classify_response(
            response,
            retryable_statuses=policy.retryable_statuses,
            on_rate_limit_info=hooks.on_rate_limit_info,
        )

    @staticmethod
    def _notify_retry(
        hooks: RetryHooks,
        attempt_number: int,
        failure: FetchFailure,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Invoke the retry observer; observer errors are logged and ignored."""
        if hooks.on_retry is None:
            return
        try:
            hooks.on_retry(attempt_number, failure)
        except Exception as exc:  # noqa: BLE001
            log.warning("retry_observer_failed", error=str(exc))
