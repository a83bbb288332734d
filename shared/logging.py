"""
Logger factory and helpers.

Provides:
- get_logger(): Get a configured logger instance
- hash_ip(): Hash IP addresses for privacy
"""

from __future__ import annotations

from typing import Optional

import structlog
from structlog.stdlib import BoundLogger

from shared.logging_config import hash_ip as _hash_ip
from shared.logging_config import setup_logging


def get_logger(name: str) -> BoundLogger:
    """
    Get a configured logger instance.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("verification_code_issued", email="a@b.com")
    """
    return structlog.get_logger(name)


def hash_ip(ip_address: Optional[str]) -> Optional[str]:
    """
    Hash IP address for privacy in production.

    Wrapper around logging_config.hash_ip() that passes None through.
    """
    if ip_address is None:
        return None
    return _hash_ip(ip_address)


__all__ = ["get_logger", "hash_ip", "setup_logging"]
