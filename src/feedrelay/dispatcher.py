"""Bounded concurrent fan-out over destinations."""

import asyncio
from typing import Awaitable, Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_MAX_CONCURRENCY = 3


async def run_bounded(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int = DEFAULT_MAX_CONCURRENCY,
) -> list[R | BaseException]:
    """Run ``worker`` over ``items`` with at most ``limit`` in flight.

    Every item gets its own task. Results come back in input order; a worker
    that raised contributes its exception instead of a result, and never
    cancels its siblings.
    """
    semaphore = asyncio.Semaphore(limit)

    async def guarded(item: T) -> R:
        async with semaphore:
            return await worker(item)

    tasks = [asyncio.create_task(guarded(item)) for item in items]
    if not tasks:
        return []
    return await asyncio.gather(*tasks, return_exceptions=True)
