"""Blocking ``get`` on top of the callback client and cooperative scheduler.

Only one request is in flight per bridge. The active :class:`FetchContext`
doubles as the request handle handed to the client, so a callback that
arrives after its request timed out no longer matches and is dropped.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from .errors import UpstreamError, UpstreamTimeout
from .http_client import CallbackHttpClient, FetchEvent
from .scheduler import NO_TIMESTAMP, CooperativeScheduler

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
POLL_INTERVAL = 0.05


@dataclass(eq=False)
class FetchContext:
    url: str
    completed: bool = False
    error: bool = False
    timed_out: bool = False
    reason: str | None = None
    payload: bytes | None = field(default=None, repr=False)

    def complete(self, payload: bytes) -> None:
        if self.completed:
            return
        self.payload = payload
        self.completed = True

    def fail(self, reason: str, *, timed_out: bool = False) -> None:
        if self.completed:
            return
        self.error = True
        self.timed_out = timed_out
        self.reason = reason
        self.completed = True

    def release(self) -> bytes | None:
        payload, self.payload = self.payload, None
        return payload


class SyncFetchBridge:
    def __init__(
        self,
        client: CallbackHttpClient,
        scheduler: CooperativeScheduler,
        *,
        clock: Callable[[], float] | None = None,
        timer: Callable[[], float] = time.monotonic,
        poll_interval: float = POLL_INTERVAL,
    ):
        self._client = client
        self._scheduler = scheduler
        self._clock = clock
        self._timer = timer
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._active: FetchContext | None = None
        self.dropped_callbacks = 0

    @property
    def active(self) -> FetchContext | None:
        return self._active

    def _on_event(self, event: FetchEvent, value: Any, handle: Any) -> None:
        ctx = self._active
        if ctx is None or handle is not ctx:
            self.dropped_callbacks += 1
            logger.debug("Dropping late %s callback", event.value)
            return

        if event is FetchEvent.RESPONSE:
            if value is None:
                ctx.fail("empty response")
            else:
                if not isinstance(value, bytes):
                    value = str(value).encode("utf-8")
                ctx.complete(value)
        elif event is FetchEvent.TIMEOUT:
            ctx.fail("upstream timed out", timed_out=True)
        else:
            ctx.fail(str(value) if value else "upstream error")
        self._scheduler.wake()

    def get(self, url: str, timeout: float = DEFAULT_TIMEOUT) -> bytes:
        """Fetch ``url`` and block until it completes or ``timeout`` elapses.

        Raises :class:`UpstreamTimeout` when the wait runs out and
        :class:`UpstreamError` when the client reports a failure. No
        retries are attempted.
        """

        with self._lock:
            ctx = FetchContext(url=url)
            self._active = ctx
            try:
                self._client.get(
                    url, max(1, int(timeout * 1000)), self._on_event, ctx
                )
                deadline = self._timer() + timeout
                while not ctx.completed:
                    remaining = deadline - self._timer()
                    if remaining <= 0:
                        break
                    now = self._clock() if self._clock else NO_TIMESTAMP
                    self._scheduler.tick(now, min(self._poll_interval, remaining))
            finally:
                self._active = None

        if not ctx.completed:
            ctx.fail(f"no response within {timeout:.1f}s", timed_out=True)
            ctx.release()
            logger.warning("Timed out after %.1fs waiting for %s", timeout, url)
            raise UpstreamTimeout(f"no response from {url} within {timeout:.1f}s")
        if ctx.error:
            ctx.release()
            if ctx.timed_out:
                raise UpstreamTimeout(f"{url}: {ctx.reason}")
            raise UpstreamError(f"{url}: {ctx.reason}")

        payload = ctx.release()
        assert payload is not None
        return payload
