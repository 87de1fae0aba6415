from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GlobalOptions:
    cache_dir: str | None
    use_cache: bool
    timeout: float | None
    verbose: bool

    def log_level(self) -> str:
        return "DEBUG" if self.verbose else "WARNING"


@dataclass(frozen=True)
class CityOptions:
    city: str
    country: str | None
    region: str | None
