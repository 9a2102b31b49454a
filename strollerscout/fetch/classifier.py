"""Classification of HTTP responses and transport errors into typed failures.

Every upstream outcome maps to exactly one ``Success`` or ``FetchFailure``.
Messages are chosen so they can be shown to an end user verbatim: upstream
HTML error pages and exception text never leak through.
"""

import math
from collections.abc import Callable, Collection
from typing import Any

import httpx
import structlog

from strollerscout.fetch.constants import (
    DEFAULT_RETRYABLE_STATUSES,
    GENERIC_STATUS_MESSAGE_TEMPLATE,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_MESSAGES,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    MALFORMED_RESPONSE_MESSAGE,
    MAX_BODY_TEXT_LENGTH,
    MIN_BODY_MESSAGE_LENGTH,
    NETWORK_ERROR_MESSAGE,
    RATE_LIMIT_REMAINING_HEADER,
    RATE_LIMIT_RESET_BODY_FIELD,
    RATE_LIMIT_RESET_HEADER,
    REQUEST_ERROR_MESSAGE,
    TIMEOUT_MESSAGE,
    TRANSPORT_STATUS_CODE,
)
from strollerscout.fetch.models import (
    FailureClass,
    FetchFailure,
    RateLimitInfo,
    RequestOutcome,
    Success,
)
from strollerscout.fetch.protocols import ResponseLike


logger = structlog.get_logger()

RateLimitObserver = Callable[[RateLimitInfo], None]


def is_success_status(status_code: int) -> bool:
    """Check if a status code is in the 2xx range."""
    return HTTP_STATUS_OK_MIN <= status_code < HTTP_STATUS_OK_MAX


def status_message(status_code: int) -> str:
    """Get the user-facing fallback message for an HTTP status.

    Args:
        status_code: HTTP status code.

    Returns:
        Message from the status table, or the generic template.
    """
    message = HTTP_STATUS_MESSAGES.get(status_code)
    if message is not None:
        return message
    return GENERIC_STATUS_MESSAGE_TEMPLATE.format(status=status_code)


def format_user_message(error: BaseException | FetchFailure) -> str:
    """Render any failure as a message fit for an end user.

    Typed failures keep their classified message. Anything else (an
    unexpected exception reaching an HTTP surface) collapses to the
    generic server-error message so no internals are exposed.

    Args:
        error: A ``FetchFailure``, an exception carrying one, or any exception.

    Returns:
        User-safe message.
    """
    if isinstance(error, FetchFailure):
        return error.message
    failure = getattr(error, "failure", None)
    if isinstance(failure, FetchFailure):
        return failure.message
    return status_message(500)


def _parse_number(value: Any) -> float | None:
    """Parse a header or body value as a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def read_rate_limit_info(response: ResponseLike) -> RateLimitInfo | None:
    """Read rate-limit telemetry from response headers.

    Args:
        response: Completed response.

    Returns:
        RateLimitInfo if either header is present, None otherwise.
    """
    remaining_raw = response.headers.get(RATE_LIMIT_REMAINING_HEADER)
    reset_raw = response.headers.get(RATE_LIMIT_RESET_HEADER)
    if remaining_raw is None and reset_raw is None:
        return None
    return RateLimitInfo(
        remaining=_parse_number(remaining_raw),
        reset_at=_parse_number(reset_raw),
    )


def _notify_rate_limit(
    response: ResponseLike, observer: RateLimitObserver | None
) -> None:
    """Invoke the rate-limit observer; observer errors never alter control flow."""
    if observer is None:
        return
    info = read_rate_limit_info(response)
    if info is None:
        return
    try:
        observer(info)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "rate_limit_observer_failed",
            component="fetch",
            subcomponent="classifier",
            error=str(exc),
        )


def _user_safe_text(candidate: Any) -> str | None:
    """Return the trimmed candidate if it is plain, plausible prose."""
    if not isinstance(candidate, str):
        return None
    text = candidate.strip()
    if len(text) <= MIN_BODY_MESSAGE_LENGTH:
        return None
    if text.startswith("<") or "<html" in text.lower():
        return None
    return text


def _failure_class_for_status(status_code: int) -> FailureClass:
    if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
        return FailureClass.RATE_LIMITED
    if HTTP_STATUS_OK_MAX <= status_code < HTTP_STATUS_BAD_REQUEST:
        return FailureClass.HTTP_3XX
    if HTTP_STATUS_BAD_REQUEST <= status_code < HTTP_STATUS_SERVER_ERROR_MIN:
        return FailureClass.HTTP_4XX
    # 5xx and anything outside the registered ranges (e.g. 999 from a WAF)
    return FailureClass.HTTP_5XX


def classify_success(
    response: ResponseLike,
    on_rate_limit_info: RateLimitObserver | None = None,
) -> RequestOutcome:
    """Decode a 2xx response.

    A body that is not valid JSON yields a non-retryable failure: a
    malformed success is not a transient condition.

    Args:
        response: Completed 2xx response.
        on_rate_limit_info: Optional rate-limit observer.

    Returns:
        Success with the decoded payload, or a MALFORMED_RESPONSE failure.
    """
    _notify_rate_limit(response, on_rate_limit_info)

    try:
        payload = response.json()
    except ValueError:
        return FetchFailure(
            failure_class=FailureClass.MALFORMED_RESPONSE,
            status_code=response.status_code,
            retryable=False,
            message=MALFORMED_RESPONSE_MESSAGE,
        )

    return Success(status_code=response.status_code, payload=payload)


def classify_response(
    response: ResponseLike,
    retryable_statuses: Collection[int] = DEFAULT_RETRYABLE_STATUSES,
    on_rate_limit_info: RateLimitObserver | None = None,
) -> FetchFailure:
    """Classify a non-2xx response.

    The message is taken from the body's ``message`` or ``error`` field, or
    from a plain-text body, when it reads like prose; otherwise the status
    table supplies it. The rate-limit reset prefers the header over the
    body field.

    Args:
        response: Completed non-2xx response.
        retryable_statuses: Statuses treated as transient.
        on_rate_limit_info: Optional rate-limit observer.

    Returns:
        Classified failure.
    """
    _notify_rate_limit(response, on_rate_limit_info)

    status_code = response.status_code
    reset_at = _parse_number(response.headers.get(RATE_LIMIT_RESET_HEADER))
    body_message: str | None = None

    try:
        body = response.json()
    except ValueError:
        try:
            text = response.text
        except ValueError:
            text = ""
        safe_text = _user_safe_text(text)
        if safe_text is not None:
            body_message = safe_text[:MAX_BODY_TEXT_LENGTH]
    else:
        if isinstance(body, dict):
            body_message = _user_safe_text(body.get("message")) or _user_safe_text(
                body.get("error")
            )
            if reset_at is None:
                reset_at = _parse_number(body.get(RATE_LIMIT_RESET_BODY_FIELD))

    return FetchFailure(
        failure_class=_failure_class_for_status(status_code),
        status_code=status_code,
        retryable=status_code in retryable_statuses,
        message=body_message or status_message(status_code),
        rate_limit_reset_at=reset_at,
    )


def classify_exception(exc: BaseException) -> FetchFailure:
    """Classify an exception raised while issuing a request.

    Timeouts and network failures are transient. Errors that stem from
    the request itself (invalid URL, unsupported scheme, redirect loops)
    would fail the same way again and are not retried.

    Args:
        exc: Exception raised by the transport or the attempt deadline.

    Returns:
        Transport-level failure with status code 0.
    """
    if isinstance(exc, TimeoutError | httpx.TimeoutException):
        return FetchFailure(
            failure_class=FailureClass.NETWORK_TIMEOUT,
            status_code=TRANSPORT_STATUS_CODE,
            retryable=True,
            message=TIMEOUT_MESSAGE,
        )

    if isinstance(exc, httpx.NetworkError | httpx.RemoteProtocolError | OSError):
        return FetchFailure(
            failure_class=FailureClass.CONNECTION_ERROR,
            status_code=TRANSPORT_STATUS_CODE,
            retryable=True,
            message=NETWORK_ERROR_MESSAGE,
        )

    return FetchFailure(
        failure_class=FailureClass.REQUEST_ERROR,
        status_code=TRANSPORT_STATUS_CODE,
        retryable=False,
        message=REQUEST_ERROR_MESSAGE,
    )
