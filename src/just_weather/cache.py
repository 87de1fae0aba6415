from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class CacheContext(Protocol):
    """Request parameters that can name their own cache slot."""

    def cache_input(self) -> str: ...

    def validate(self) -> None: ...


@runtime_checkable
class RawCacheStore(Protocol):
    """Key/bytes store consulted by the cached clients."""

    def key_for(self, text: str) -> str: ...

    def is_valid(self, key: str) -> bool: ...

    def load(self, key: str, *, check_ttl: bool = False) -> bytes: ...

    def save(self, key: str, payload: bytes) -> None: ...

    def invalidate(self, key: str) -> None: ...

    def clear(self) -> int: ...
