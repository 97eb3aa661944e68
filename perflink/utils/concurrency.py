"""Bounded-concurrency helpers for the resolution batch loop.

Products are resolved independently of one another, so a batch may fan out
across a small worker pool.  Two patterns are exposed:

1. **throttled_gather** -- a drop-in replacement for ``asyncio.gather`` that
   wraps each awaitable in a semaphore acquire/release.

2. **run_bounded** -- the fan-out-then-collect pattern used by the batch
   orchestrator: apply an async function to every item with at most
   ``max_workers`` in flight, log failures, and return per-item results in
   input order.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterable, TypeVar

import structlog

from perflink.utils.logging import get_logger

_T = TypeVar("_T")
_R = TypeVar("_R")

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``semaphore`` slots at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore bounding how many awaitables run simultaneously.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def run_bounded(
    fn: Callable[[_T], Awaitable[_R]],
    items: Iterable[_T],
    max_workers: int = 1,
    logger: structlog.BoundLogger | None = None,
    error_msg: str = "bounded_task_failed",
) -> list[_R | BaseException]:
    """Apply *fn* to every item with at most *max_workers* running at once.

    With ``max_workers == 1`` the items are processed strictly sequentially,
    which is the default scheduling model of the batch loop.

    Failures are logged and returned in place of the result so that one
    failing item never cancels its siblings.
    """
    if logger is None:
        logger = _logger

    items = list(items)
    if max_workers <= 1:
        results: list[Any] = []
        for item in items:
            try:
                results.append(await fn(item))
            except Exception as exc:  # noqa: BLE001
                logger.warning(error_msg, item=repr(item), error=str(exc))
                results.append(exc)
        return results

    semaphore = asyncio.Semaphore(max_workers)
    raw_results = await throttled_gather([fn(item) for item in items], semaphore)
    for item, result in zip(items, raw_results):
        if isinstance(result, BaseException):
            logger.warning(error_msg, item=repr(item), error=str(result))
    return raw_results
