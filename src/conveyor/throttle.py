import asyncio
import contextlib
import logging
from collections import deque
from typing import Awaitable, Callable, Union

from .cache import ResponseCache
from .types import PendingRequest, RequestSpec, Response, ThrottleConfig


class RequestQueue:
    """FIFO queue drained by a single pump: one request in flight at a time.

    After each dispatched request the pump pauses ``dispatch_delay`` seconds,
    whatever the outcome; after a request answered from the cache it pauses only
    ``cache_hit_delay``. A failure while processing one item is logged and the
    pump moves on.
    """

    def __init__(
        self,
        dispatch: Callable[[RequestSpec], Awaitable[Response]],
        cache: Union[ResponseCache, None] = None,
        config: Union[ThrottleConfig, None] = None,
    ):
        self._dispatch = dispatch
        self._cache = cache
        self.config = config or ThrottleConfig()
        self._queue: deque[PendingRequest] = deque()
        self.processing = False
        self._task: Union[asyncio.Task, None] = None
        self._current: Union[PendingRequest, None] = None
        self._logger = logging.getLogger("conveyor")
        self._sleep = asyncio.sleep

    def __len__(self) -> int:
        return len(self._queue)

    def pending(self) -> int:
        return len(self._queue)

    def enqueue(self, spec: RequestSpec) -> asyncio.Future:
        """Queue a request; the returned future settles with its response or error."""
        future = asyncio.get_running_loop().create_future()
        self._queue.append(PendingRequest(spec=spec, future=future))
        self.process_next()
        return future

    def process_next(self) -> None:
        """Start the pump unless it is already running or there is nothing to do."""
        if self.processing or not self._queue:
            return
        self.processing = True
        self._task = asyncio.get_running_loop().create_task(self._pump())

    async def _pump(self):
        try:
            while self._queue:
                item = self._queue.popleft()
                self._current = item
                delay = self.config.dispatch_delay
                try:
                    delay = await self._process_one(item)
                except Exception as e:
                    self._logger.exception(
                        f"request queue failed to process method={item.spec.method} "
                        f"url={item.spec.path}"
                    )
                    if not item.future.done():
                        item.future.set_exception(e)
                self._current = None
                await self._sleep(delay)
        finally:
            self.processing = False
        # items enqueued during the final pause
        self.process_next()

    async def _process_one(self, item: PendingRequest) -> float:
        spec, future = item.spec, item.future
        if future.done():
            # caller stopped waiting
            return 0.0
        if spec.is_get and self._cache is not None:
            cached = self._cache.get(spec.cache_key())
            if cached is not None:
                with contextlib.suppress(Exception):
                    self._logger.debug(f"cache hit url={spec.path} (queued)")
                future.set_result(cached)
                return self.config.cache_hit_delay
        try:
            response = await self._dispatch(spec)
        except Exception as e:
            if not future.done():
                future.set_exception(e)
        else:
            if not future.done():
                future.set_result(response)
        return self.config.dispatch_delay

    async def drain(self) -> None:
        """Wait until the queue is empty and the pump has stopped."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self.processing = False
        if self._current is not None:
            self._queue.appendleft(self._current)
            self._current = None
        while self._queue:
            item = self._queue.popleft()
            if not item.future.done():
                item.future.set_exception(RuntimeError("conveyor: pipeline closed"))
