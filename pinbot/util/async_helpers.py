"""Async helpers for running blocking code from an async context."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T")


async def run_sync(fn: Callable[..., T], *args: object, **kwargs: object) -> T:
    """Run a blocking *fn* in the default executor without stalling the loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))


async def run_sync_until(
    deadline: float | None, fn: Callable[..., T], *args: object, **kwargs: object,
) -> T:
    """Like :func:`run_sync`, but give up once the loop clock passes *deadline*.

    The worker thread is not interrupted; the awaiting task is released
    with :class:`TimeoutError` and the thread's result is discarded.
    """
    if deadline is None:
        return await run_sync(fn, *args, **kwargs)
    async with asyncio.timeout_at(deadline):
        return await run_sync(fn, *args, **kwargs)
