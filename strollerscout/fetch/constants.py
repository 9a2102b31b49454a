"""HTTP constants for the fetch layer.

Centralizes status codes, retry defaults and user-facing messages so the
classifier, executor and adapters agree on one contract.
"""

# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_SERVER_ERROR_MIN = 500
HTTP_STATUS_BAD_GATEWAY = 502
HTTP_STATUS_SERVICE_UNAVAILABLE = 503
HTTP_STATUS_GATEWAY_TIMEOUT = 504

# Transport-level failures carry no HTTP status
TRANSPORT_STATUS_CODE = 0

# Retry defaults
DEFAULT_MAX_RETRIES = 2
DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_PER_ATTEMPT_TIMEOUT_MS = 30000
DEFAULT_RETRYABLE_STATUSES = frozenset(
    {
        HTTP_STATUS_TOO_MANY_REQUESTS,
        HTTP_STATUS_BAD_GATEWAY,
        HTTP_STATUS_SERVICE_UNAVAILABLE,
        HTTP_STATUS_GATEWAY_TIMEOUT,
    }
)

# Rate-limit headers (IETF draft names)
RATE_LIMIT_REMAINING_HEADER = "RateLimit-Remaining"
RATE_LIMIT_RESET_HEADER = "RateLimit-Reset"
RATE_LIMIT_RESET_BODY_FIELD = "rateLimitReset"

# Body messages at or below this length are not shown to users
MIN_BODY_MESSAGE_LENGTH = 5
MAX_BODY_TEXT_LENGTH = 200

HTTP_STATUS_MESSAGES: dict[int, str] = {
    400: "The request was invalid. Please check your inputs.",
    401: "Authentication required. Please refresh the page.",
    403: "Access denied. Please contact support if this is unexpected.",
    404: "The requested resource was not found.",
    422: "Your destination could not be processed. Please try a different location.",
    429: "Too many requests — please wait a moment before trying again.",
    500: "Server error. Our team has been notified. Please try again shortly.",
    502: "Server temporarily unavailable. Please try again in a few seconds.",
    503: "Service temporarily unavailable. Please try again in a few seconds.",
    504: "Server timed out. Please try again.",
}

GENERIC_STATUS_MESSAGE_TEMPLATE = "Request failed ({status}). Please try again."

TIMEOUT_MESSAGE = (
    "Request timed out — the server is taking too long. Please try again."
)
NETWORK_ERROR_MESSAGE = "Network error — please check your connection and try again."
REQUEST_ERROR_MESSAGE = "The request could not be completed. Please try again later."
MALFORMED_RESPONSE_MESSAGE = "Server returned unexpected non-JSON response."
