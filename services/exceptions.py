"""Low-level faults raised by workflow collaborators and mapped to error kinds."""

from __future__ import annotations


class StorageError(Exception):
    """A MongoDB or Redis operation failed or timed out.

    The message is for logs only; callers report a generic failure.
    """


class CapabilityDecodeError(Exception):
    """A capability token was tampered with, malformed, or sealed under another key."""
