from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)

# Passed to ``tick`` when the caller has no monotonic clock to offer.
NO_TIMESTAMP = None


class CooperativeScheduler:
    """A private asyncio loop that only makes progress when ticked.

    Nothing runs in the background: every pending task advances inside
    :meth:`tick`, on the calling thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop or asyncio.new_event_loop()
        self._tasks: set[asyncio.Task[Any]] = set()
        self.last_tick: float | None = NO_TIMESTAMP
        self.ticks = 0

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Schedule ``coro``; it starts on the next tick."""

        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def tick(self, now: float | None = NO_TIMESTAMP, max_wait: float = 0.0) -> None:
        """Run one bounded slice of the loop.

        With ``max_wait == 0`` only callbacks that are already due run. A
        positive ``max_wait`` lets the loop block on I/O for at most that
        long; :meth:`wake` cuts the wait short.
        """

        if self._loop.is_running():
            raise RuntimeError("CooperativeScheduler.tick() is not reentrant")

        self.last_tick = now
        self.ticks += 1
        if max_wait > 0:
            handle = self._loop.call_later(max_wait, self._loop.stop)
        else:
            handle = self._loop.call_soon(self._loop.stop)
        try:
            self._loop.run_forever()
        finally:
            handle.cancel()

    def wake(self) -> None:
        """Stop the running tick after the current loop iteration."""

        if self._loop.is_running():
            self._loop.stop()

    def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            self._loop.run_until_complete(
                asyncio.gather(*self._tasks, return_exceptions=True)
            )
        self._loop.run_until_complete(self._loop.shutdown_asyncgens())
        self._loop.close()
        logger.debug("Scheduler closed after %d ticks", self.ticks)

    def __enter__(self) -> CooperativeScheduler:
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
