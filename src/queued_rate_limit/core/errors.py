"""Error types raised by rate-limited functions."""

from __future__ import annotations


class RateLimitError(Exception):
    """Base exception for this package."""


class RateLimitConfigError(RateLimitError):
    """Invalid rate-limit configuration."""


class RateLimitClosedError(RateLimitError):
    """Raised when a rate-limited function is called after close."""


class RateLimitPendingCallsError(RateLimitError):
    """Raised when closing a rate-limited function that still has queued calls."""

    def __init__(self, message: str, *, pending: int) -> None:
        super().__init__(message)
        self.pending = pending


__all__ = [
    "RateLimitError",
    "RateLimitConfigError",
    "RateLimitClosedError",
    "RateLimitPendingCallsError",
]
