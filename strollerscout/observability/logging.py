"""Structured logging configuration."""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any, TextIO

import structlog

from strollerscout.fetch.redact import REDACTED_VALUE, SENSITIVE_FIELDS, is_sensitive_header
from strollerscout.settings import AppSettings, get_settings


# httpx logs every request URL at INFO, query string (and any API key) included
QUIET_LIBRARY_LOGGERS = ("httpx", "httpcore")


def redact_sensitive_keys(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Replace top-level values whose key names a credential."""
    for key in event_dict:
        if key.lower() in SENSITIVE_FIELDS or is_sensitive_header(key):
            event_dict[key] = REDACTED_VALUE
    return event_dict


def configure_logging(
    level: int | str = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Configure structlog for service adapters and the embedding app.

    Args:
        level: Logging level as a number or a name such as ``"DEBUG"``;
            unknown names fall back to INFO.
        output: Output stream (default: stderr).
        json_format: JSON lines when True, colored console output otherwise.
    """
    if isinstance(level, str):
        level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        redact_sensitive_keys,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=output, level=level)
    for name in QUIET_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def configure_logging_from_settings(settings: AppSettings | None = None) -> None:
    """Configure logging from ``LOG_LEVEL`` and ``LOG_JSON``.

    Called once by the embedding application at startup.

    Args:
        settings: Settings to use; read from the environment when omitted.
    """
    if settings is None:
        settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a bound logger instance."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


def bind_request_context(request_id: str) -> None:
    """Bind an inbound request id to all log events on this task."""
    structlog.contextvars.bind_contextvars(request_id=request_id)


def clear_request_context() -> None:
    """Remove the request id bound by ``bind_request_context``."""
    structlog.contextvars.unbind_contextvars("request_id")
