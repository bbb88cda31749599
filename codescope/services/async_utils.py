# codescope/services/async_utils.py
import asyncio
from typing import Awaitable, Iterable, List, Optional, TypeVar

from loguru import logger

T = TypeVar("T")

def make_limiter(limit: Optional[int]) -> Optional[asyncio.Semaphore]:
    """Returns a semaphore for `limit` concurrent holders, or None when unbounded (None/0)."""
    if not limit:
        return None
    logger.debug(f"Creating concurrency limiter with {limit} slots.")
    return asyncio.Semaphore(limit)

async def limited(aw: Awaitable[T], limiter: Optional[asyncio.Semaphore]) -> T:
    """Awaits `aw` while holding a slot of `limiter` (if any)."""
    if limiter is None:
        return await aw
    async with limiter:
        return await aw

async def gather_ordered(aws: Iterable[Awaitable[T]]) -> List[T]:
    """
    Runs awaitables concurrently and returns their results by input position,
    whatever order they complete in.
    """
    pending = list(aws)
    results: List[Optional[T]] = [None] * len(pending)

    async def _slot(index: int, aw: Awaitable[T]) -> None:
        results[index] = await aw

    await asyncio.gather(*(_slot(i, aw) for i, aw in enumerate(pending)))
    return results # type: ignore[return-value]

def run_sync(coro: Awaitable[T]) -> T:
    """Runs a coroutine from synchronous code (CLI). Must not be called from a running loop."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro) # type: ignore[arg-type]
    if asyncio.iscoroutine(coro):
        coro.close()
    raise RuntimeError("run_sync() called from inside a running event loop; await the coroutine instead.")
