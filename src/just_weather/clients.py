from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

import httpx

from .bridge import SyncFetchBridge
from .config import (
    GEOCODING_CACHE_DIR,
    PRICING_CACHE_DIR,
    WEATHER_CACHE_DIR,
    Config,
    cache_enabled,
    resolve_cache_root,
)
from .errors import InvalidParameters
from .file_cache import KeyedFileCache
from .geocoding_api import GeocodingApi, GeocodingResponse, PopularCitiesLookup
from .http_client import AsyncHttpClient
from .pricing_api import ElprisApi
from .requests import GeocodingQuery, Location
from .scheduler import CooperativeScheduler
from .weather_api import OpenMeteoApi

logger = logging.getLogger(__name__)


@dataclass
class Clients:
    """Every upstream client, sharing one scheduler and one bridge."""

    scheduler: CooperativeScheduler
    bridge: SyncFetchBridge
    weather: OpenMeteoApi
    geocoding: GeocodingApi
    pricing: ElprisApi
    popular_cities: PopularCitiesLookup | None = None

    def caches(self) -> dict[str, Any]:
        return {
            "weather": self.weather.cache,
            "geo": self.geocoding.cache,
            "prices": self.pricing.cache,
        }

    def clear_caches(self, *names: str) -> dict[str, int]:
        caches = self.caches()
        selected = names or tuple(caches)
        unknown = [n for n in selected if n not in caches]
        if unknown:
            raise InvalidParameters(f"unknown cache(s): {', '.join(unknown)}")
        return {name: caches[name].clear() for name in selected}

    def search_cities(self, text: str) -> GeocodingResponse:
        return self.geocoding.search_smart(text, self.popular_cities)

    def weather_by_city(self, query: GeocodingQuery) -> dict[str, Any]:
        """Geocode ``query`` and fetch current weather for the best match."""

        places = self.geocoding.search_detailed(query)
        best = places.best_result(query.country)
        if best is None:
            raise InvalidParameters(f"no city found for {query.name!r}")
        weather = self.weather.current(
            Location(latitude=best.latitude, longitude=best.longitude, name=best.name)
        )
        data = weather.to_dict()
        data["location"] = {
            "name": best.name,
            "country": best.country,
            "country_code": best.country_code,
            "region": best.admin1,
            "latitude": best.latitude,
            "longitude": best.longitude,
        }
        return data

    def close(self) -> None:
        self.scheduler.close()

    def __enter__(self) -> Clients:
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


def build_clients(
    config: Config | None = None,
    *,
    cache_root: str | os.PathLike[str] | None = None,
    use_cache: bool | None = None,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    popular_cities: PopularCitiesLookup | None = None,
) -> Clients:
    cfg = config or Config()
    root = resolve_cache_root(cache_root, cfg)
    enabled = cache_enabled(cfg) if use_cache is None else use_cache
    wait = cfg.timeout_seconds if timeout is None else timeout

    scheduler = CooperativeScheduler()
    bridge = SyncFetchBridge(AsyncHttpClient(scheduler, transport=transport), scheduler)

    weather_cache = KeyedFileCache(
        root / WEATHER_CACHE_DIR, cfg.weather_ttl, enabled=enabled
    )
    geo_cache = KeyedFileCache(
        root / GEOCODING_CACHE_DIR, cfg.geocoding_ttl, enabled=enabled
    )
    price_cache = KeyedFileCache(
        root / PRICING_CACHE_DIR, cfg.pricing_ttl, enabled=enabled
    )

    logger.info(
        "Clients ready: cache root=%s enabled=%s timeout=%.1fs", root, enabled, wait
    )
    return Clients(
        scheduler=scheduler,
        bridge=bridge,
        weather=OpenMeteoApi(cache=weather_cache, bridge=bridge, timeout=wait),
        geocoding=GeocodingApi(
            cache=geo_cache,
            bridge=bridge,
            timeout=wait,
            max_results=cfg.geocoding_max_results,
            language=cfg.geocoding_language,
        ),
        pricing=ElprisApi(cache=price_cache, bridge=bridge, timeout=wait),
        popular_cities=popular_cities,
    )
