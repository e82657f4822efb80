from __future__ import annotations

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, TypeVar

from areastamp.constants import DEFAULT_RENDER_PERMITS

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class RenderGate:
    """Caps how many renders run at once.

    Work admitted through ``run`` executes on a dedicated thread pool sized to
    the gate. The permit is returned when the worker finishes, even if the
    awaiting request was cancelled first.
    """

    def __init__(self, capacity: int = DEFAULT_RENDER_PERMITS) -> None:
        if capacity < 1:
            raise ValueError(f"render gate capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self._executor = ThreadPoolExecutor(max_workers=capacity, thread_name_prefix="render")
        self.in_flight = 0
        self.peak = 0

    def _acquired(self) -> None:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)

    def _release(self) -> None:
        self.in_flight -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self._semaphore.acquire()
        self._acquired()
        try:
            yield
        finally:
            self._release()

    async def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        await self._semaphore.acquire()
        self._acquired()
        loop = asyncio.get_running_loop()
        try:
            future = loop.run_in_executor(self._executor, functools.partial(func, *args, **kwargs))
        except BaseException:
            self._release()
            raise
        future.add_done_callback(lambda _: self._release())
        return await asyncio.shield(future)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
