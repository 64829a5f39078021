"""
Asyncio debounce for search-as-you-type.

Calls that arrive within ``delay`` seconds of each other collapse into a
single call carrying the latest arguments.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any


class Debouncer:
    def __init__(self, func: Callable[..., Awaitable[Any]], delay: float) -> None:
        self.func = func
        self.delay = delay
        self._pending: asyncio.Task | None = None

    def __call__(self, *args: Any, **kwargs: Any) -> asyncio.Task:
        """Schedule ``func``; a call still waiting out its delay is cancelled."""
        self.cancel()
        self._pending = asyncio.create_task(self._run(args, kwargs))
        return self._pending

    async def _run(self, args: tuple, kwargs: dict) -> Any:
        await asyncio.sleep(self.delay)
        return await self.func(*args, **kwargs)

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

    async def flush(self) -> Any:
        """Wait for the latest scheduled call and return its result."""
        while self._pending is not None:
            task = self._pending
            await asyncio.wait({task})
            # a newer call may have replaced the task while we waited
            if task is self._pending:
                return None if task.cancelled() else task.result()
        return None
