"""
Date/time helpers, framework-agnostic.

Workflow components take a ``Clock`` callable instead of calling
``datetime.now`` directly so expiry and throttle windows are testable.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime.

    MongoDB stores naive UTC; a client without ``tz_aware=True`` hands those
    back unchanged, so naive values are assumed to be UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
