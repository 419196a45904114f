from __future__ import annotations

import asyncio

import pytest

from queued_rate_limit import current_rate_limited, rate_limit
from tests.shared.recorders import CallRecorder, gaps

EPSILON = 0.005


@pytest.mark.asyncio
async def test_rate_limit_runs_first_call_immediately_and_queues_the_rest():
    recorder = CallRecorder()
    t = rate_limit(recorder, 100)
    assert t.pending == 0

    t()
    t()
    t()
    assert recorder.count == 1
    assert t.pending == 2

    await asyncio.sleep(0.25)
    assert recorder.count == 3
    assert t.pending == 0
    t.close()


@pytest.mark.asyncio
async def test_rate_limit_spaces_executions_by_timeframe_in_fifo_order():
    recorder = CallRecorder()
    t = rate_limit(recorder, 50)

    futures = [t(index) for index in range(4)]
    await asyncio.gather(*futures)

    assert recorder.calls == [(0,), (1,), (2,), (3,)]
    assert all(gap >= 0.05 - EPSILON for gap in gaps(recorder.times))
    t.close()


@pytest.mark.asyncio
async def test_rate_limit_never_runs_two_calls_within_one_timeframe():
    recorder = CallRecorder()
    t = rate_limit(recorder, 100)
    for _ in range(5):
        t()

    await asyncio.sleep(0.05)
    assert recorder.count == 1
    t.clear()
    t.close()


@pytest.mark.asyncio
async def test_rate_limit_resolves_each_call_with_its_own_result():
    t = rate_limit(lambda x: x * 2, 10)
    results = await asyncio.gather(t(1), t(2), t(3))
    assert results == [2, 4, 6]
    t.close()


@pytest.mark.asyncio
async def test_rate_limit_awaits_coroutine_results():
    async def double(x: int) -> int:
        await asyncio.sleep(0)
        return x * 2

    t = rate_limit(double, 10)
    results = await asyncio.gather(t(1), t(2), t(3))
    assert results == [2, 4, 6]
    t.close()


@pytest.mark.asyncio
async def test_rate_limit_passes_keyword_arguments():
    t = rate_limit(lambda a, *, b: f"{a}-{b}", 10)
    assert await t("x", b="y") == "x-y"
    t.close()


@pytest.mark.asyncio
async def test_raising_callable_fails_only_its_own_call():
    def maybe_fail(x: int) -> int:
        if x == 1:
            raise ValueError("bad input")
        return x

    t = rate_limit(maybe_fail, 10)
    first = t(1)
    second = t(2)

    with pytest.raises(ValueError, match="bad input"):
        await first
    assert await second == 2
    t.close()


@pytest.mark.asyncio
async def test_rejecting_coroutine_fails_only_its_own_call():
    async def maybe_fail(x: int) -> int:
        await asyncio.sleep(0)
        if x == 1:
            raise RuntimeError("remote error")
        return x

    t = rate_limit(maybe_fail, 10)
    first = t(1)
    second = t(2)

    with pytest.raises(RuntimeError, match="remote error"):
        await first
    assert await second == 2
    t.close()


@pytest.mark.asyncio
async def test_cooldown_starts_after_coroutine_settles():
    loop = asyncio.get_running_loop()
    finished: list[float] = []
    started: list[float] = []

    async def slow(_: int) -> None:
        started.append(loop.time())
        await asyncio.sleep(0.1)
        finished.append(loop.time())

    t = rate_limit(slow, 50)
    await asyncio.gather(t(1), t(2))

    assert started[1] - finished[0] >= 0.05 - EPSILON
    t.close()


@pytest.mark.asyncio
async def test_callable_sees_rate_limited_function_as_context():
    seen: list[object] = []

    def capture(_: str) -> None:
        seen.append(current_rate_limited())

    t = rate_limit(capture, 10)
    await asyncio.gather(t("foo"), t("bar"))

    assert len(seen) == 2
    assert all(value is t for value in seen)
    t.close()


@pytest.mark.asyncio
async def test_coroutine_sees_rate_limited_function_as_context():
    async def capture() -> object:
        await asyncio.sleep(0)
        return current_rate_limited()

    t = rate_limit(capture, 10)
    assert await t() is t
    t.close()


@pytest.mark.asyncio
async def test_callable_can_use_its_own_lifecycle_operations():
    def inspect_pending() -> int:
        return current_rate_limited().pending

    t = rate_limit(inspect_pending, 10)
    first = t()
    second = t()
    assert await first == 0
    assert await second == 0
    t.close()


def test_current_rate_limited_outside_a_call_raises():
    with pytest.raises(RuntimeError):
        current_rate_limited()


@pytest.mark.asyncio
async def test_params_are_delivered_in_submission_order():
    params: list[object] = []

    def collect(name: str, number: int) -> None:
        params.extend([name, number])

    t = rate_limit(collect, 100)
    t("foo", 1)
    t("bar", 1)
    t("baz", 1)
    t("qux", 1)
    assert len(params) <= 2
    assert t.pending >= 2

    await asyncio.sleep(0.25)
    assert params == ["foo", 1, "bar", 1, "baz", 1]
    assert t.pending == 1
    t.clear()
    t.close()


@pytest.mark.asyncio
async def test_zero_timeframe_still_queues_and_releases_in_order():
    recorder = CallRecorder()
    t = rate_limit(recorder, 0)

    futures = [t(index) for index in range(3)]
    assert recorder.count == 1
    assert t.pending == 2

    await asyncio.gather(*futures)
    assert recorder.calls == [(0,), (1,), (2,)]
    t.close()


@pytest.mark.asyncio
async def test_callable_raising_base_exception_does_not_stall_queue():
    recorder = CallRecorder()

    def interrupt(x: int) -> int:
        recorder(x)
        if x == 1:
            raise asyncio.CancelledError()
        return x

    t = rate_limit(interrupt, 10)
    with pytest.raises(asyncio.CancelledError):
        t(1)

    later = t(2)
    assert t.pending == 1
    assert await asyncio.wait_for(later, timeout=0.2) == 2
    assert recorder.calls == [(1,), (2,)]
    assert t.pending == 0
    t.close()
