"""Logging setup and secret redaction.

All SDK modules log through structlog. The :func:`redact_secrets` processor
runs before rendering in both the application pipeline configured by
:func:`configure_logging` and the verbose diagnostic logger, so bearer
tokens and credentials never reach a log line.
"""

import logging
import os
import sys
from typing import Any, TextIO

import structlog
from structlog.typing import EventDict, FilteringBoundLogger

REDACTED = "[REDACTED]"

SENSITIVE_MARKERS = ("password", "secret", "token", "key", "authorization")

# Event fields that carry log metadata or request routing, never credentials.
# API paths such as /v1/auth/access_token would otherwise match a marker.
_SAFE_KEYS = frozenset(
    {"event", "msg", "level", "timestamp", "logger", "method", "path"},
)


def _is_sensitive_text(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in SENSITIVE_MARKERS)


def redact_value(value: Any) -> Any:
    """Return ``value`` or a redacted stand-in when it looks secret."""
    if isinstance(value, str):
        if value.startswith("Bearer "):
            return f"Bearer {REDACTED}"
        if _is_sensitive_text(value):
            return REDACTED
        return value
    if isinstance(value, BaseException):
        text = str(value)
        if "Bearer " in text or _is_sensitive_text(text):
            return f"{REDACTED}: error may contain sensitive data"
        return value
    return value


def redact_secrets(
    _logger: Any,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """structlog processor masking sensitive keys and values."""
    for key, value in event_dict.items():
        if key in _SAFE_KEYS:
            continue
        if _is_sensitive_text(key):
            event_dict[key] = REDACTED
        else:
            event_dict[key] = redact_value(value)
    return event_dict


def configure_logging(log_level_name: str) -> None:
    """Configure structlog for logfmt output with secret redaction."""
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_secrets,
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def open_log_file(path: str) -> TextIO:
    """Open ``path`` for appending, creating it readable by the owner only."""
    fd = os.open(path, os.O_CREAT | os.O_WRONLY | os.O_APPEND, 0o600)
    return os.fdopen(fd, "a", encoding="utf-8")


def verbose_logger(
    path: str | None = None,
) -> tuple[FilteringBoundLogger, TextIO | None]:
    """Build the diagnostic request logger.

    Args:
        path: File to append to; stdout when None or when the file cannot be
            opened.

    Returns:
        Tuple of (logger, opened_file) where opened_file is None when
        writing to stdout; the caller owns and must close it.
    """
    opened: TextIO | None = None
    stream: TextIO = sys.stdout
    if path:
        try:
            opened = open_log_file(path)
        except OSError:
            structlog.get_logger(__name__).warning(
                "Cannot open verbose log file, using stdout",
                log_file=path,
            )
        else:
            stream = opened

    logger = structlog.wrap_logger(
        structlog.PrintLogger(stream),
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_secrets,
            structlog.processors.EventRenamer("msg"),
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
    ).bind(logger="port-sdk")
    return logger, opened
