"""
Logger factory.

Example:
    >>> from shared.logging import get_logger
    >>> log = get_logger(__name__)
    >>> log.info("verification_issued", purpose="email-verify")
"""

import structlog
from structlog.stdlib import BoundLogger

from shared.logging_config import configure_structlog, hash_target, setup_logging


def get_logger(name: str) -> BoundLogger:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)


__all__ = [
    "get_logger",
    "hash_target",
    "configure_structlog",
    "setup_logging",
]
