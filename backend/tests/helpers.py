"""Test helpers for waiting on asynchronously delivered snapshots."""

from __future__ import annotations

import asyncio
from collections.abc import Callable


async def settle(rounds: int = 10) -> None:
    """Let scheduled callbacks and woken tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def wait_for(predicate: Callable[[], bool], *, rounds: int = 200) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


async def next_snapshot(live, *, timeout: float = 1.0):
    """Next item from a LiveSnapshots iterator, failing instead of hanging."""
    return await asyncio.wait_for(live.__anext__(), timeout)


async def eventually(predicate: Callable[[], bool], *, timeout: float = 2.0) -> None:
    """Poll ``predicate`` with real sleeps, for work that runs in worker threads."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)
