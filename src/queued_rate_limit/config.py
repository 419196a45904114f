"""Rate-limit configuration."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from numbers import Real

from .core.errors import RateLimitConfigError


@dataclass(slots=True, frozen=True)
class RateLimitConfig:
    """Throttling settings.

    ``timeframe`` is the minimum spacing between successive executions, in
    milliseconds.
    """

    timeframe: float = 1000.0

    @property
    def timeframe_seconds(self) -> float:
        return float(self.timeframe) / 1000.0

    def validate(self) -> None:
        if isinstance(self.timeframe, bool) or not isinstance(self.timeframe, Real):
            raise ValueError("timeframe must be a number of milliseconds")
        if not math.isfinite(self.timeframe):
            raise ValueError("timeframe must be finite")
        if self.timeframe < 0:
            raise ValueError("timeframe must be >= 0")


@dataclass(slots=True, frozen=True)
class HttpClientConfig:
    """Settings for the throttled HTTP client."""

    base_url: str = ""
    user_agent: str = "queued-rate-limit/0.1.0"
    timeout_seconds: float = 30.0

    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)

    def validate(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if not self.user_agent:
            raise ValueError("user_agent must not be empty")
        self.rate_limit.validate()


def resolve_rate_limit_config(timeframe: float | RateLimitConfig) -> RateLimitConfig:
    """Normalize a timeframe or config into a validated ``RateLimitConfig``."""

    config = timeframe if isinstance(timeframe, RateLimitConfig) else RateLimitConfig(timeframe)
    validate_config(config)
    return config


def validate_config(config: RateLimitConfig | HttpClientConfig) -> None:
    try:
        config.validate()
    except ValueError as exc:
        raise RateLimitConfigError(str(exc)) from exc


__all__ = [
    "RateLimitConfig",
    "HttpClientConfig",
    "resolve_rate_limit_config",
    "validate_config",
]
