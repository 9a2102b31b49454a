"""Observability module for logging."""

from strollerscout.observability.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    configure_logging_from_settings,
    get_logger,
)


__all__ = [
    "bind_request_context",
    "clear_request_context",
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
]
