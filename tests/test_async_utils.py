# tests/test_async_utils.py
import asyncio

import pytest

from codescope.services.async_utils import gather_ordered, limited, make_limiter, run_sync


async def _value_after(value, delay):
    await asyncio.sleep(delay)
    return value


@pytest.mark.asyncio
async def test_gather_ordered_keeps_input_positions():
    results = await gather_ordered(_value_after(i, 0.01 * (3 - i)) for i in range(4))
    assert results == [0, 1, 2, 3]

@pytest.mark.asyncio
async def test_gather_ordered_empty():
    assert await gather_ordered([]) == []

def test_make_limiter_unbounded():
    assert make_limiter(None) is None
    assert make_limiter(0) is None

@pytest.mark.asyncio
async def test_limited_caps_concurrency():
    limiter = make_limiter(1)
    active = 0
    peak = 0

    async def work():
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.001)
        active -= 1

    await asyncio.gather(*(limited(work(), limiter) for _ in range(5)))
    assert peak == 1

def test_run_sync_outside_loop():
    assert run_sync(_value_after("done", 0)) == "done"

@pytest.mark.asyncio
async def test_run_sync_inside_loop_refuses():
    with pytest.raises(RuntimeError):
        run_sync(_value_after("x", 0))
