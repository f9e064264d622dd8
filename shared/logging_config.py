"""
Centralized logging configuration.

This module sets up structured logging with:
- Environment-based configuration (dev vs production)
- JSON formatting for production, pretty console for development
- Target hashing in production so email addresses never reach log storage
- Redaction of codes, secrets and tokens
"""

import hashlib
import logging
import os
import sys
from typing import Optional

import structlog
from structlog.types import EventDict, Processor


# Environment configuration
ENV = os.getenv("ENV", "development")
IS_PRODUCTION = ENV == "production"

# Log level configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if IS_PRODUCTION else "DEBUG")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json" if IS_PRODUCTION else "console")

# Sensitive fields to redact from logs
REDACTED_FIELDS = {
    "code",
    "supplied_code",
    "secret",
    "secret_hash",
    "base_secret",
    "token",
    "verify_url",
}

_PRESERVED_FIELDS = {"level", "event", "timestamp", "logger", "error_code"}


def hash_target(target: Optional[str]) -> Optional[str]:
    """
    Hash a verification target (email, user id) for privacy in production.

    In production, returns SHA-256 hash (first 16 chars).
    In development, returns the original value for easier debugging.
    """
    if IS_PRODUCTION and target:
        return hashlib.sha256(target.encode("utf-8")).hexdigest()[:16]
    return target


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields from logs."""
    for key in list(event_dict.keys()):
        if key in _PRESERVED_FIELDS:
            continue
        lowered = key.lower()
        if lowered in REDACTED_FIELDS or any(
            sensitive in lowered for sensitive in ("secret", "token")
        ):
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_structlog(log_format: Optional[str] = None) -> None:
    """
    Configure structlog with appropriate processors for the environment.

    Production: JSON formatting for easy parsing
    Development: Pretty console formatting with colors
    """
    log_format = log_format or LOG_FORMAT

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True, pad_event=15)

    structlog.configure(
        processors=shared_processors
        + [structlog.processors.format_exc_info, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging(log_level: Optional[str] = None) -> None:
    """Route stdlib logging to stdout and quiet the database drivers."""
    log_level = log_level or LOG_LEVEL
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)


def setup_logging(
    log_level: Optional[str] = None, log_format: Optional[str] = None
) -> None:
    """
    Initialize logging system for the application.

    Should be called early in process startup (the sweeper entrypoint and
    the host application's startup hook).
    """
    configure_stdlib_logging(log_level)
    configure_structlog(log_format)

    logger = structlog.get_logger(__name__)
    logger.info(
        "logging_initialized",
        env=ENV,
        log_level=log_level or LOG_LEVEL,
        log_format=log_format or LOG_FORMAT,
    )
