"""Polling and racing helpers shared by discovery, lifecycle and campaign code."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

T = TypeVar("T")

# Attempts still running after first_success() returned. Held so they are not
# garbage collected mid-flight; their results are dropped when they settle.
_stragglers: set[asyncio.Future] = set()


async def poll_until(
    check: Callable[[], Awaitable[Optional[T]]],
    *,
    interval: float,
    timeout: float,
) -> Optional[T]:
    """Call ``check`` until it returns a non-None value or ``timeout`` elapses.

    ``check`` is always called at least once. Returns None on timeout.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    while True:
        result = await check()
        if result is not None:
            return result
        remaining = deadline - loop.time()
        if remaining <= 0:
            return None
        await asyncio.sleep(min(interval, remaining))


async def first_success(awaitables: Iterable[Awaitable[Optional[T]]]) -> Optional[T]:
    """Run all awaitables concurrently and return the first non-None result.

    Exceptions count as "no result". If every awaitable fails or returns
    None, returns None instead of raising. Awaitables still pending when a
    winner is found are left to finish and their results are discarded.
    """
    tasks = [asyncio.ensure_future(a) for a in awaitables]
    if not tasks:
        return None

    try:
        for next_done in asyncio.as_completed(tasks):
            try:
                result = await next_done
            except Exception:
                continue
            if result is not None:
                return result
        return None
    finally:
        for task in tasks:
            if task.done():
                _consume(task)
            else:
                _stragglers.add(task)
                task.add_done_callback(_settle_straggler)


def _settle_straggler(task: asyncio.Future) -> None:
    _stragglers.discard(task)
    _consume(task)


def _consume(task: asyncio.Future) -> None:
    # Marks the exception as retrieved so asyncio does not log it.
    if not task.cancelled():
        task.exception()
