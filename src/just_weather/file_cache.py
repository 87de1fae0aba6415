"""TTL-bounded key/bytes store backed by one flat directory of files.

Entry age comes from the file's modification time; nothing else is
persisted next to the payload.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import time
from pathlib import Path
from typing import Callable

from .errors import CacheExpired, CacheIOError, CacheMiss, InvalidParameters

logger = logging.getLogger(__name__)

CACHE_SUFFIX = ".json"
KEY_LENGTH = 32

_SEPARATORS = re.compile(r"[ \t+_]+")
_KEY_PATTERN = re.compile(r"^[0-9a-f]{%d}$" % KEY_LENGTH)
_ASCII_LOWER = str.maketrans(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz"
)


def normalize(text: str) -> str:
    """Lower-case ASCII letters and collapse separator runs into one ``_``.

    Space, tab, ``+`` and ``_`` count as separators; leading and trailing
    separators are dropped. Non-ASCII characters pass through untouched.
    """

    collapsed = _SEPARATORS.sub("_", text.translate(_ASCII_LOWER))
    return collapsed.strip("_")


def derive_key(normalized: str) -> str:
    if not normalized:
        raise InvalidParameters("cache key input must be a non-empty string")
    digest = hashlib.md5(normalized.encode("utf-8"), usedforsecurity=False)
    return digest.hexdigest()


class KeyedFileCache:
    """Maps cache keys to ``<dir>/<key>.json`` files with TTL-based validity."""

    def __init__(
        self,
        cache_dir: str | os.PathLike[str],
        ttl_seconds: int,
        *,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.cache_dir = Path(cache_dir)
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled
        self._clock = clock

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning(
                "Failed to create cache directory %s: %s", self.cache_dir, exc
            )

    def __repr__(self) -> str:
        state = "enabled" if self.enabled else "disabled"
        return (
            f"KeyedFileCache({str(self.cache_dir)!r}, "
            f"ttl={self.ttl_seconds}s, {state})"
        )

    @staticmethod
    def normalize(text: str) -> str:
        return normalize(text)

    @staticmethod
    def derive_key(normalized: str) -> str:
        return derive_key(normalized)

    def key_for(self, text: str) -> str:
        return derive_key(normalize(text))

    def filepath(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise InvalidParameters(f"not a cache key: {key!r}")
        return self.cache_dir / f"{key}{CACHE_SUFFIX}"

    def age(self, key: str) -> float | None:
        """Seconds since the entry was written, or None when it is absent."""

        try:
            mtime = self.filepath(key).stat().st_mtime
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Failed to stat cache entry %s: %s", key, exc)
            return None
        return self._clock() - mtime

    def is_valid(self, key: str) -> bool:
        if not self.enabled:
            return False
        age = self.age(key)
        return age is not None and age <= self.ttl_seconds

    def load(self, key: str, *, check_ttl: bool = False) -> bytes:
        """Return the raw bytes stored under ``key``.

        The TTL is only enforced when ``check_ttl`` is set, so callers can
        warm or inspect stale entries; the regular read path asks
        :meth:`is_valid` first.
        """

        if not self.enabled:
            raise CacheMiss(f"cache disabled, no entry for {key}")

        path = self.filepath(key)
        if check_ttl and not self.is_valid(key):
            if path.exists():
                raise CacheExpired(
                    f"cache entry {key} is older than {self.ttl_seconds}s"
                )
            raise CacheMiss(f"no cache entry for {key}")

        try:
            payload = path.read_bytes()
        except FileNotFoundError as exc:
            raise CacheMiss(f"no cache entry for {key}") from exc
        except OSError as exc:
            raise CacheIOError(f"failed to read {path}: {exc}") from exc

        if not payload:
            raise CacheIOError(f"cache entry {path} is empty")
        return payload

    def save(self, key: str, payload: bytes) -> None:
        """Overwrite the entry in place. A disabled cache silently succeeds."""

        if not self.enabled:
            return

        path = self.filepath(key)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(payload)
        except OSError as exc:
            raise CacheIOError(f"failed to write {path}: {exc}") from exc
        logger.debug("Cached %d bytes under %s", len(payload), path)

    def invalidate(self, key: str) -> None:
        path = self.filepath(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise CacheIOError(f"failed to delete {path}: {exc}") from exc

    def clear(self) -> int:
        """Delete every ``*.json`` entry and return how many were removed.

        Files without the cache suffix are left alone and a missing
        directory counts as already clear.
        """

        if not self.cache_dir.exists():
            return 0

        removed = 0
        failures: list[str] = []
        for entry in self.cache_dir.iterdir():
            if entry.suffix != CACHE_SUFFIX or not entry.is_file():
                continue
            try:
                entry.unlink()
            except OSError as exc:
                failures.append(f"{entry.name}: {exc}")
                continue
            removed += 1

        if failures:
            raise CacheIOError(
                f"failed to delete {len(failures)} cache entries: "
                + "; ".join(failures)
            )
        logger.info("Cleared %d entries from %s", removed, self.cache_dir)
        return removed
