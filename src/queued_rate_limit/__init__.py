"""Public package exports for queued rate limiting."""

from .config import HttpClientConfig, RateLimitConfig
from .core.errors import (
    RateLimitClosedError,
    RateLimitConfigError,
    RateLimitError,
    RateLimitPendingCallsError,
)
from .core.shutdown import ShutdownHooks
from .core.throttle import RateLimitedFunction, current_rate_limited, rate_limit
from .http_client import ThrottledHttpClient

__all__ = [
    "rate_limit",
    "current_rate_limited",
    "RateLimitedFunction",
    "RateLimitConfig",
    "HttpClientConfig",
    "ShutdownHooks",
    "ThrottledHttpClient",
    "RateLimitError",
    "RateLimitConfigError",
    "RateLimitClosedError",
    "RateLimitPendingCallsError",
]
