"""Redaction of credentials before request details reach the logs."""

import re
from collections.abc import Mapping


SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "cookie",
        "proxy-authorization",
        "set-cookie",
        "x-api-key",
        "x-auth-token",
    }
)

# OAuth form and API key query fields that carry secrets
SENSITIVE_FIELDS = frozenset(
    {
        "access_token",
        "appid",
        "client_secret",
        "refresh_token",
    }
)

REDACTED_VALUE = "[REDACTED]"

_URL_CREDENTIALS_PATTERN = re.compile(r"(https?://)([^:/@]+):([^@/]+)@")


def is_sensitive_header(name: str) -> bool:
    """Check if a header carries credentials (case-insensitive)."""
    return name.lower() in SENSITIVE_HEADERS


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Redact sensitive headers for logging.

    Args:
        headers: Original headers.

    Returns:
        New dictionary with sensitive values replaced by [REDACTED].
    """
    return {
        key: REDACTED_VALUE if is_sensitive_header(key) else value
        for key, value in headers.items()
    }


def redact_fields(fields: Mapping[str, object] | None) -> dict[str, object]:
    """Redact secret-bearing form or query fields for logging.

    Args:
        fields: Form data or query parameters, if any.

    Returns:
        New dictionary with secret values replaced by [REDACTED].
    """
    if not fields:
        return {}
    return {
        key: REDACTED_VALUE if key.lower() in SENSITIVE_FIELDS else value
        for key, value in fields.items()
    }


def redact_url_credentials(url: str) -> str:
    """Redact ``user:password@`` credentials embedded in a URL."""
    return _URL_CREDENTIALS_PATTERN.sub(r"\1[REDACTED]:[REDACTED]@", url)
