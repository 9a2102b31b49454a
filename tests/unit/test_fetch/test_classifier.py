"""Unit tests for response and exception classification."""

import httpx
import pytest

from strollerscout.fetch.classifier import (
    classify_exception,
    classify_response,
    classify_success,
    format_user_message,
    read_rate_limit_info,
    status_message,
)
from strollerscout.fetch.constants import (
    HTTP_STATUS_MESSAGES,
    MALFORMED_RESPONSE_MESSAGE,
    NETWORK_ERROR_MESSAGE,
    TIMEOUT_MESSAGE,
)
from strollerscout.fetch.models import (
    FailureClass,
    FetchFailure,
    RateLimitInfo,
    Success,
    UpstreamError,
)


class TestClassifySuccess:
    """Tests for 2xx classification."""

    def test_valid_json_decoded(self) -> None:
        """Test that a JSON body becomes the payload."""
        response = httpx.Response(200, json={"data": [1, 2, 3]})

        outcome = classify_success(response)

        assert isinstance(outcome, Success)
        assert outcome.payload == {"data": [1, 2, 3]}
        assert outcome.status_code == 200

    def test_undecodable_body_is_permanent_failure(self) -> None:
        """Test that a non-JSON 2xx body is a non-retryable failure."""
        response = httpx.Response(200, text="<html>maintenance</html>")

        outcome = classify_success(response)

        assert isinstance(outcome, FetchFailure)
        assert outcome.failure_class == FailureClass.MALFORMED_RESPONSE
        assert outcome.retryable is False
        assert outcome.status_code == 200
        assert outcome.message == MALFORMED_RESPONSE_MESSAGE

    def test_rate_limit_observer_called_on_success(self) -> None:
        """Test that rate-limit headers are reported on success too."""
        seen: list[RateLimitInfo] = []
        response = httpx.Response(
            200,
            json=[],
            headers={"RateLimit-Remaining": "7", "RateLimit-Reset": "1700000000"},
        )

        classify_success(response, seen.append)

        assert seen == [RateLimitInfo(remaining=7.0, reset_at=1700000000.0)]


class TestClassifyResponse:
    """Tests for non-2xx classification."""

    def test_502_with_markup_uses_table_message(self) -> None:
        """Test that an HTML error page never leaks into the message."""
        response = httpx.Response(
            502, text="<html><body><h1>502 Bad Gateway</h1></body></html>"
        )

        failure = classify_response(response)

        assert failure.status_code == 502
        assert failure.retryable is True
        assert failure.failure_class == FailureClass.HTTP_5XX
        assert "<" not in failure.message
        assert failure.message == HTTP_STATUS_MESSAGES[502]

    def test_json_message_field_preferred(self) -> None:
        """Test that a JSON ``message`` field becomes the user message."""
        response = httpx.Response(
            422, json={"message": "Destination is not supported yet"}
        )

        failure = classify_response(response)

        assert failure.message == "Destination is not supported yet"
        assert failure.retryable is False
        assert failure.failure_class == FailureClass.HTTP_4XX

    def test_json_error_field_used_when_no_message(self) -> None:
        """Test fallback to the ``error`` field."""
        response = httpx.Response(400, json={"error": "Missing start date"})

        failure = classify_response(response)

        assert failure.message == "Missing start date"

    def test_short_body_message_ignored(self) -> None:
        """Test that very short body messages fall back to the table."""
        response = httpx.Response(500, json={"message": "oops"})

        failure = classify_response(response)

        assert failure.message == HTTP_STATUS_MESSAGES[500]
        assert failure.retryable is False

    def test_plain_text_body_truncated(self) -> None:
        """Test that plain-text bodies are used up to 200 characters."""
        response = httpx.Response(503, text="x" * 500)

        failure = classify_response(response)

        assert failure.message == "x" * 200

    def test_429_header_reset_wins_over_body(self) -> None:
        """Test that the reset header takes precedence over the body field."""
        response = httpx.Response(
            429,
            json={"rateLimitReset": 111},
            headers={"RateLimit-Reset": "1700000000"},
        )

        failure = classify_response(response)

        assert failure.failure_class == FailureClass.RATE_LIMITED
        assert failure.rate_limit_reset_at == 1700000000.0
        assert failure.retryable is True

    def test_429_reset_from_body(self) -> None:
        """Test that the body field supplies the reset when no header exists."""
        response = httpx.Response(429, json={"rateLimitReset": 1700000123})

        failure = classify_response(response)

        assert failure.rate_limit_reset_at == 1700000123.0

    def test_unknown_status_uses_generic_message(self) -> None:
        """Test the generic message for statuses outside the table."""
        response = httpx.Response(418, text="")

        failure = classify_response(response)

        assert failure.message == "Request failed (418). Please try again."

    def test_custom_retryable_statuses(self) -> None:
        """Test that retryability follows the supplied status set."""
        response = httpx.Response(500, text="")

        failure = classify_response(response, retryable_statuses={500})

        assert failure.retryable is True

    def test_unfollowed_redirect_classified_as_3xx(self) -> None:
        """Test that a redirect reaching the classifier is not counted as 4xx."""
        response = httpx.Response(302, headers={"Location": "https://elsewhere.example"})

        failure = classify_response(response)

        assert failure.failure_class == FailureClass.HTTP_3XX
        assert failure.status_code == 302
        assert failure.retryable is False
        assert failure.message == "Request failed (302). Please try again."

    @pytest.mark.parametrize("status_code", [999, 600, 1000])
    def test_non_standard_status_classified(self, status_code: int) -> None:
        """Test that statuses outside the registered ranges still classify."""
        response = httpx.Response(status_code, text="<html>blocked</html>")

        failure = classify_response(response)

        assert failure.failure_class == FailureClass.HTTP_5XX
        assert failure.status_code == status_code
        assert failure.retryable is False
        assert failure.message == f"Request failed ({status_code}). Please try again."

    def test_observer_error_ignored(self) -> None:
        """Test that a raising rate-limit observer does not break classification."""

        def broken(_info: RateLimitInfo) -> None:
            raise RuntimeError("observer bug")

        response = httpx.Response(503, headers={"RateLimit-Remaining": "0"})

        failure = classify_response(response, on_rate_limit_info=broken)

        assert failure.status_code == 503


class TestClassifyException:
    """Tests for transport exception classification."""

    @pytest.mark.parametrize(
        "exc",
        [TimeoutError(), httpx.ReadTimeout("slow"), httpx.ConnectTimeout("slow")],
    )
    def test_timeouts_are_retryable(self, exc: Exception) -> None:
        """Test that every timeout maps to a retryable NETWORK_TIMEOUT."""
        failure = classify_exception(exc)

        assert failure.failure_class == FailureClass.NETWORK_TIMEOUT
        assert failure.retryable is True
        assert failure.status_code == 0
        assert failure.message == TIMEOUT_MESSAGE

    @pytest.mark.parametrize(
        "exc",
        [httpx.ConnectError("refused"), httpx.RemoteProtocolError("eof"), OSError()],
    )
    def test_connection_errors_are_retryable(self, exc: Exception) -> None:
        """Test that connectivity failures are retryable."""
        failure = classify_exception(exc)

        assert failure.failure_class == FailureClass.CONNECTION_ERROR
        assert failure.retryable is True
        assert failure.message == NETWORK_ERROR_MESSAGE

    @pytest.mark.parametrize(
        "exc",
        [httpx.UnsupportedProtocol("ftp"), httpx.InvalidURL("bad")],
    )
    def test_request_errors_are_permanent(self, exc: Exception) -> None:
        """Test that errors caused by the request itself are not retried."""
        failure = classify_exception(exc)

        assert failure.failure_class == FailureClass.REQUEST_ERROR
        assert failure.retryable is False
        assert failure.status_code == 0
        assert failure.is_transport is True


class TestMessages:
    """Tests for user-facing message helpers."""

    def test_status_message_table(self) -> None:
        """Test table lookup for known statuses."""
        assert status_message(404) == "The requested resource was not found."

    def test_format_user_message_from_failure(self) -> None:
        """Test that typed failures keep their message."""
        failure = classify_exception(TimeoutError())

        assert format_user_message(failure) == TIMEOUT_MESSAGE
        assert format_user_message(UpstreamError(failure)) == TIMEOUT_MESSAGE

    def test_format_user_message_hides_internals(self) -> None:
        """Test that arbitrary exceptions collapse to the generic message."""
        message = format_user_message(KeyError("secret internal detail"))

        assert message == HTTP_STATUS_MESSAGES[500]

    def test_read_rate_limit_info_absent(self) -> None:
        """Test that responses without headers report nothing."""
        assert read_rate_limit_info(httpx.Response(200)) is None

    def test_read_rate_limit_info_non_numeric(self) -> None:
        """Test that unparsable header values become None."""
        response = httpx.Response(200, headers={"RateLimit-Remaining": "many"})

        info = read_rate_limit_info(response)

        assert info == RateLimitInfo(remaining=None, reset_at=None)
