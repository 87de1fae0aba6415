from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Config:
    cache_root: str = "./cache"
    cache_root_env: str = "JUST_WEATHER_CACHE_DIR"
    cache_enabled_env: str = "JUST_WEATHER_CACHE"
    timeout_seconds: float = 30.0
    weather_ttl: int = 900
    geocoding_ttl: int = 604800
    pricing_ttl: int = 604800
    geocoding_max_results: int = 10
    geocoding_language: str = "eng"


WEATHER_CACHE_DIR = "weather_cache"
GEOCODING_CACHE_DIR = "geo_cache"
PRICING_CACHE_DIR = "elpris_cache"

_FALSY = {"0", "false", "no", "off"}


def resolve_cache_root(
    cache_root: str | os.PathLike[str] | None = None,
    config: Config | None = None,
) -> Path:
    cfg = config or Config()
    candidate = cache_root or os.environ.get(cfg.cache_root_env, cfg.cache_root)
    return Path(candidate).expanduser()


def cache_enabled(config: Config | None = None) -> bool:
    """Caching is on unless the env var holds a falsy value."""

    cfg = config or Config()
    value = os.environ.get(cfg.cache_enabled_env)
    if value is None:
        return True
    return value.strip().lower() not in _FALSY
