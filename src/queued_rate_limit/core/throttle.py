"""Queued rate limiting of a single callable."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Generic, ParamSpec, TypeVar

from ..config import RateLimitConfig, resolve_rate_limit_config
from .errors import RateLimitClosedError, RateLimitPendingCallsError
from .shutdown import ShutdownHooks

logger = logging.getLogger("queued_rate_limit")

P = ParamSpec("P")
R = TypeVar("R")

_current: ContextVar[RateLimitedFunction[Any, Any] | None] = ContextVar(
    "queued_rate_limit_current",
    default=None,
)


def current_rate_limited() -> RateLimitedFunction[Any, Any]:
    """Return the rate-limited function whose callable is running."""

    value = _current.get()
    if value is None:
        raise RuntimeError("no rate-limited function is executing in this context")
    return value


@dataclass(slots=True)
class _ThrottledCall:
    future: asyncio.Future[Any]
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)
    flush: bool = False


def _set_result(future: asyncio.Future[Any], value: object) -> None:
    if not future.done():
        future.set_result(value)


def _set_exception(future: asyncio.Future[Any], exc: BaseException) -> None:
    if not future.done():
        future.set_exception(exc)


class RateLimitedFunction(Generic[P, R]):
    """Runs ``fn`` at most once per timeframe, queuing excess calls in order.

    Calling the instance returns a future for that call's result. Once a call
    settles, the next queued call waits out the timeframe before it starts.
    There is no timeout on ``fn``: a call that never settles stalls the queue.
    """

    def __init__(
        self,
        fn: Callable[P, R | Awaitable[R]],
        config: RateLimitConfig,
        *,
        shutdown_hooks: ShutdownHooks | None = None,
    ) -> None:
        self._fn = fn
        self._config = config
        self._ready = True
        self._queue: deque[_ThrottledCall] = deque()
        self._timer: asyncio.TimerHandle | None = None
        self._closed = False
        self._tasks: set[asyncio.Future[Any]] = set()
        self._shutdown_hooks = shutdown_hooks
        if shutdown_hooks is not None:
            shutdown_hooks.register(self.close)

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def closed(self) -> bool:
        return self._closed

    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> asyncio.Future[R]:
        if self._closed:
            raise RateLimitClosedError("rate-limited function is closed")

        loop = asyncio.get_running_loop()
        call = _ThrottledCall(loop.create_future(), args, dict(kwargs))
        if self._ready:
            self._ready = False
            self._execute(call)
        else:
            self._queue.append(call)
            logger.debug("call queued pending=%s", len(self._queue))
        return call.future

    def clear(self) -> None:
        if not self._queue:
            return
        dropped = 0
        while self._queue:
            call = self._queue.popleft()
            if call.flush:
                _set_result(call.future, None)
            else:
                call.future.cancel()
                dropped += 1
        if dropped:
            logger.warning("queued calls cleared dropped=%s", dropped)

    async def flush(self) -> None:
        if self._ready or self._closed:
            return
        marker = _ThrottledCall(asyncio.get_running_loop().create_future(), flush=True)
        self._queue.append(marker)
        await marker.future

    def close(self) -> None:
        if self._queue:
            raise RateLimitPendingCallsError(
                "rate-limited function has pending calls",
                pending=len(self._queue),
            )
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._closed:
            logger.info("rate-limited function closed")
        self._closed = True
        if self._shutdown_hooks is not None:
            self._shutdown_hooks.unregister(self.close)

    def _execute(self, call: _ThrottledCall) -> None:
        if call.flush:
            logger.debug("flush released pending=%s", len(self._queue))
            _set_result(call.future, None)
            self._arm_timer()
            return

        logger.debug("call start pending=%s", len(self._queue))
        token = _current.set(self)
        try:
            result = self._fn(*call.args, **call.kwargs)
            task = asyncio.ensure_future(result) if inspect.isawaitable(result) else None
        except Exception as exc:
            _set_exception(call.future, exc)
            task = None
        except BaseException as exc:
            if isinstance(exc, asyncio.CancelledError):
                call.future.cancel()
            else:
                _set_exception(call.future, exc)
            self._arm_timer()
            raise
        else:
            if task is None:
                _set_result(call.future, result)
        finally:
            _current.reset(token)

        if task is not None:
            self._tasks.add(task)
            task.add_done_callback(partial(self._on_settled, call))
            return
        self._arm_timer()

    def _on_settled(self, call: _ThrottledCall, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            call.future.cancel()
        elif task.exception() is not None:
            _set_exception(call.future, task.exception())
        else:
            _set_result(call.future, task.result())
        self._arm_timer()

    def _arm_timer(self) -> None:
        if self._closed:
            return
        assert self._timer is None, "release timer already armed"
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._config.timeframe_seconds, self._release)

    def _release(self) -> None:
        self._timer = None
        if self._queue:
            self._execute(self._queue.popleft())
        else:
            self._ready = True
            logger.debug("gate reopened")


def rate_limit(
    fn: Callable[P, R | Awaitable[R]],
    timeframe: float | RateLimitConfig,
    *,
    shutdown_hooks: ShutdownHooks | None = None,
) -> RateLimitedFunction[P, R]:
    """Create a rate-limited wrapper that runs ``fn`` at most once per ``timeframe`` ms."""

    config = resolve_rate_limit_config(timeframe)
    return RateLimitedFunction(fn, config, shutdown_hooks=shutdown_hooks)


__all__ = [
    "RateLimitedFunction",
    "current_rate_limited",
    "rate_limit",
]
