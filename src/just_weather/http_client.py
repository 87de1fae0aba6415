from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Protocol

import httpx

from .scheduler import CooperativeScheduler

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30000
USER_AGENT = "just-weather/0.1"


class FetchEvent(str, Enum):
    RESPONSE = "RESPONSE"
    ERROR = "ERROR"
    TIMEOUT = "TIMEOUT"


# callback(event, body-or-reason, context); called exactly once per request.
FetchCallback = Callable[[FetchEvent, Any, Any], None]


class CallbackHttpClient(Protocol):
    def get(
        self,
        url: str,
        timeout_ms: int,
        callback: FetchCallback,
        context: Any = None,
    ) -> None: ...


class AsyncHttpClient:
    """Non-blocking GET whose outcome is delivered to a callback.

    Requests run as tasks on a :class:`CooperativeScheduler` and only make
    progress while that scheduler is ticked.
    """

    def __init__(
        self,
        scheduler: CooperativeScheduler,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ):
        self._scheduler = scheduler
        self._transport = transport
        self._headers = {"User-Agent": USER_AGENT, **(headers or {})}

    @property
    def scheduler(self) -> CooperativeScheduler:
        return self._scheduler

    def get(
        self,
        url: str,
        timeout_ms: int,
        callback: FetchCallback,
        context: Any = None,
    ) -> None:
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self._scheduler.spawn(self.perform(url, timeout_ms, callback, context))

    async def perform(
        self,
        url: str,
        timeout_ms: int,
        callback: FetchCallback,
        context: Any = None,
    ) -> None:
        event, value = await self._request(url, timeout_ms / 1000.0)
        try:
            callback(event, value, context)
        except Exception:
            logger.exception("Fetch callback failed for %s", url)

    async def _request(self, url: str, timeout: float) -> tuple[FetchEvent, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                transport=self._transport,
                headers=self._headers,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.TimeoutException:
            logger.debug("Request timed out after %.1fs: %s", timeout, url)
            return FetchEvent.TIMEOUT, None
        except httpx.HTTPStatusError as exc:
            return (
                FetchEvent.ERROR,
                f"HTTP {exc.response.status_code} from {exc.request.url}",
            )
        except httpx.HTTPError as exc:
            return FetchEvent.ERROR, f"{type(exc).__name__}: {exc}"
        except Exception as exc:
            logger.exception("Unexpected failure fetching %s", url)
            return FetchEvent.ERROR, f"{type(exc).__name__}: {exc}"
        return FetchEvent.RESPONSE, response.content
