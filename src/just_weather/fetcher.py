from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from .bridge import DEFAULT_TIMEOUT, SyncFetchBridge
from .cache import CacheContext, RawCacheStore
from .errors import CacheIOError, CacheMiss, ErrorKind, JustWeatherError, ParseError

logger = logging.getLogger(__name__)

Params = TypeVar("Params", bound=CacheContext)
Result = TypeVar("Result")


class CacheMode(str, Enum):
    READ_WRITE = "read_write"
    READ_ONLY = "read_only"
    BYPASS = "bypass"

    @property
    def reads(self) -> bool:
        return self is not CacheMode.BYPASS

    @property
    def writes(self) -> bool:
        return self is CacheMode.READ_WRITE


def _reject_constant(name: str) -> Any:
    raise ParseError(f"non-finite number {name} in payload")


def decode_json(payload: bytes) -> Any:
    """Strict JSON decode; ``NaN`` and ``Infinity`` are rejected."""

    try:
        return json.loads(payload, parse_constant=_reject_constant)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ParseError(f"payload is not valid JSON: {exc}") from exc


class CachedClient(ABC, Generic[Params, Result]):
    """Cache-first fetch of one upstream, shared by every API client.

    Cached bytes that fail to parse fall through to a live fetch; a live
    response that fails to parse is an error. Raw bytes are only kept on
    disk, never on the returned result.
    """

    name = "upstream"

    def __init__(
        self,
        *,
        cache: RawCacheStore,
        bridge: SyncFetchBridge,
        timeout: float = DEFAULT_TIMEOUT,
        mode: CacheMode = CacheMode.READ_WRITE,
    ):
        self._cache = cache
        self._bridge = bridge
        self._timeout = timeout
        self._mode = mode
        self._last_response_source: str = "uninitialized"

    @property
    def cache(self) -> RawCacheStore:
        return self._cache

    @property
    def last_response_source(self) -> str:
        return self._last_response_source

    def cache_key(self, params: Params) -> str:
        return self._cache.key_for(params.cache_input())

    def fetch(self, params: Params, *, mode: CacheMode | None = None) -> Result:
        params.validate()
        mode = mode or self._mode
        key = self.cache_key(params)

        if mode.reads:
            cached = self._from_cache(key, params)
            if cached is not None:
                self._last_response_source = "cache"
                return cached
        else:
            logger.debug("[%s] Cache bypassed", self.name)

        url = self.build_url(params)
        logger.info("[%s] Fetching %s", self.name, url)
        raw = self._bridge.get(url, timeout=self._timeout)
        result = self._parse(raw, params)

        if mode.writes:
            try:
                self._cache.save(key, raw)
            except CacheIOError as exc:
                logger.warning(
                    "[%s] Failed to save cache entry %s: %s", self.name, key, exc
                )
        self._last_response_source = "network"
        return result

    def fetch_outcome(
        self, params: Params, *, mode: CacheMode | None = None
    ) -> tuple[Result | None, ErrorKind | None]:
        """Like :meth:`fetch`, but report failures as an :class:`ErrorKind`."""

        try:
            return self.fetch(params, mode=mode), None
        except JustWeatherError as exc:
            logger.warning("[%s] Fetch failed (%s): %s", self.name, exc.kind.value, exc)
            return None, exc.kind

    def _from_cache(self, key: str, params: Params) -> Result | None:
        if not self._cache.is_valid(key):
            logger.debug("[%s] Cache MISS %s", self.name, key)
            return None
        try:
            result = self._parse(self._cache.load(key), params)
        except (CacheMiss, CacheIOError, ParseError) as exc:
            logger.warning(
                "[%s] Cached entry %s unusable, fetching live: %s", self.name, key, exc
            )
            return None
        logger.debug("[%s] Cache HIT %s", self.name, key)
        return result

    def _parse(self, payload: bytes, params: Params) -> Result:
        try:
            return self._hydrate(decode_json(payload), params)
        except JustWeatherError:
            raise
        except (ValidationError, ValueError, OverflowError) as exc:
            raise ParseError(f"unexpected {self.name} payload shape: {exc}") from exc

    @abstractmethod
    def build_url(self, params: Params) -> str:
        """Return the upstream URL for ``params``."""
        raise NotImplementedError

    @abstractmethod
    def _hydrate(self, document: Any, params: Params) -> Result:
        """Convert a decoded JSON document into the typed result."""
        raise NotImplementedError
