"""Async HTTP client whose requests are rate limited and queued."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any

import httpx

from .config import HttpClientConfig, validate_config
from .core.errors import RateLimitClosedError
from .core.shutdown import ShutdownHooks
from .core.throttle import RateLimitedFunction

logger = logging.getLogger("queued_rate_limit")


class ThrottledHttpClient:
    """Sends requests through ``httpx.AsyncClient`` at most once per timeframe.

    Requests issued while the limiter is busy wait in FIFO order. The next
    request goes out one timeframe after the previous response arrives.
    """

    def __init__(
        self,
        *,
        config: HttpClientConfig | None = None,
        client: httpx.AsyncClient | None = None,
        shutdown_hooks: ShutdownHooks | None = None,
    ) -> None:
        self._config = config or HttpClientConfig()
        validate_config(self._config)

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._config.base_url,
            headers={"User-Agent": self._config.user_agent},
            timeout=httpx.Timeout(self._config.timeout_seconds),
        )
        self._limiter: RateLimitedFunction[..., httpx.Response] = RateLimitedFunction(
            self._client.request,
            self._config.rate_limit,
            shutdown_hooks=shutdown_hooks,
        )
        self._closed = False

    @property
    def pending(self) -> int:
        return self._limiter.pending

    @property
    def closed(self) -> bool:
        return self._closed

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._closed:
            raise RateLimitClosedError("ThrottledHttpClient is already closed")
        logger.debug("request submitted method=%s url=%s", method, url)
        return await self._limiter(method, url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    def clear(self) -> None:
        self._limiter.clear()

    async def flush(self) -> None:
        await self._limiter.flush()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._limiter.clear()
        self._limiter.close()
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ThrottledHttpClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


__all__ = [
    "ThrottledHttpClient",
]
