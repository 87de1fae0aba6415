from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional, Sequence
from urllib.parse import urlencode

from pydantic import BaseModel, Field, ValidationError

from .bridge import DEFAULT_TIMEOUT, SyncFetchBridge
from .cache import RawCacheStore
from .errors import InvalidParameters, ParseError
from .fetcher import CachedClient, CacheMode, decode_json
from .requests import GeocodingQuery

logger = logging.getLogger(__name__)


class GeocodingResult(BaseModel):
    id: int = 0
    name: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    country: str = ""
    country_code: str = ""
    admin1: Optional[str] = None
    admin2: Optional[str] = None
    population: Optional[int] = None
    timezone: Optional[str] = None

    def matches_region(self, region: str) -> bool:
        needle = region.casefold()
        return any(
            admin and needle in admin.casefold() for admin in (self.admin1, self.admin2)
        )

    def format(self) -> str:
        """``Name, Region, Country (lat, lon)``; the region is optional."""

        parts = [self.name]
        if self.admin1:
            parts.append(self.admin1)
        parts.append(self.country)
        return f"{', '.join(parts)} ({self.latitude:.4f}, {self.longitude:.4f})"


class GeocodingResponse(BaseModel):
    results: list[GeocodingResult] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.results)

    def filter_by_region(self, region: str | None) -> GeocodingResponse:
        """Keep results whose admin areas mention ``region``.

        When nothing matches, the unfiltered response is returned.
        """

        if not region:
            return self
        matching = [r for r in self.results if r.matches_region(region)]
        if not matching:
            logger.info("No results match region %r, returning all results", region)
            return self
        return GeocodingResponse(results=matching)

    def best_result(self, country: str | None = None) -> GeocodingResult | None:
        """Pick the most likely match, preferring ``country`` when given.

        A country-code match beats a country-name match; within either group,
        and in the fallback over all results, the largest population wins.
        """

        if not self.results:
            return None

        def largest(candidates: Sequence[GeocodingResult]) -> GeocodingResult | None:
            if not candidates:
                return None
            return max(candidates, key=lambda r: r.population or 0)

        if country:
            wanted = country.casefold()
            by_code = [
                r
                for r in self.results
                if r.country_code and r.country_code.casefold() == wanted
            ]
            best = largest(by_code)
            if best is None:
                by_name = [
                    r
                    for r in self.results
                    if r.country and wanted in r.country.casefold()
                ]
                best = largest(by_name)
            if best is not None:
                return best

        return largest(self.results)


# query, max_results -> matching entries from a local table of well-known cities.
PopularCitiesLookup = Callable[[str, int], Sequence[GeocodingResult]]


def load_popular_cities(path: str | os.PathLike[str]) -> PopularCitiesLookup:
    """Build a prefix lookup over a JSON list of geocoding results."""

    try:
        raw = Path(path).read_bytes()
    except OSError as exc:
        raise InvalidParameters(
            f"cannot read popular cities file {path}: {exc}"
        ) from exc
    document = decode_json(raw)
    if not isinstance(document, list):
        raise ParseError(f"popular cities file {path} is not a JSON list")
    try:
        cities = [GeocodingResult.model_validate(entry) for entry in document]
    except ValidationError as exc:
        raise ParseError(f"invalid popular cities entry in {path}: {exc}") from exc
    logger.debug("Loaded %d popular cities from %s", len(cities), path)

    def lookup(query: str, limit: int) -> list[GeocodingResult]:
        needle = query.strip().casefold()
        hits = [c for c in cities if c.name.casefold().startswith(needle)]
        return sorted(hits, key=lambda c: -(c.population or 0))[:limit]

    return lookup


class GeocodingApi(CachedClient[GeocodingQuery, GeocodingResponse]):
    """City search against the Open-Meteo geocoding endpoint."""

    BASE_URL = "http://geocoding-api.open-meteo.com/v1/search"
    name = "geocoding"

    def __init__(
        self,
        *,
        cache: RawCacheStore,
        bridge: SyncFetchBridge,
        timeout: float = DEFAULT_TIMEOUT,
        mode: CacheMode = CacheMode.READ_WRITE,
        max_results: int = 10,
        language: str = "eng",
    ):
        super().__init__(cache=cache, bridge=bridge, timeout=timeout, mode=mode)
        self.max_results = max_results
        self.language = language

    def build_url(self, params: GeocodingQuery) -> str:
        query = params.params(self.max_results, self.language)
        return f"{self.BASE_URL}?{urlencode(query)}"

    def search(self, query: GeocodingQuery) -> GeocodingResponse:
        return self.fetch(query)

    def search_readonly(self, query: GeocodingQuery) -> GeocodingResponse:
        """Use an existing cache entry if any, but never create one."""

        return self.fetch(query, mode=CacheMode.READ_ONLY)

    def search_no_cache(self, query: GeocodingQuery) -> GeocodingResponse:
        return self.fetch(query, mode=CacheMode.BYPASS)

    def search_detailed(self, query: GeocodingQuery) -> GeocodingResponse:
        return self.search(query).filter_by_region(query.region_text())

    def search_smart(
        self,
        text: str,
        popular_cities: PopularCitiesLookup | None = None,
    ) -> GeocodingResponse:
        """Autocomplete lookup: popular cities, then cache, then the API.

        Nothing is written to the cache on this path.
        """

        query = GeocodingQuery(name=text)
        query.validate()

        if popular_cities is not None:
            hits = list(popular_cities(text, self.max_results))
            if hits:
                logger.info("Found %d results in popular cities table", len(hits))
                self._last_response_source = "popular"
                return GeocodingResponse(results=hits)

        response = self.search_readonly(query)
        if response.count == 0 and self.last_response_source == "cache":
            # Empty cached answers fall through to the API.
            logger.info("Cached lookup for %r is empty, asking upstream", text)
            return self.search_no_cache(query)
        return response

    def _hydrate(self, document: Any, params: GeocodingQuery) -> GeocodingResponse:
        if not isinstance(document, dict):
            raise ParseError("geocoding payload is not a JSON object")
        results = document.get("results")
        if results is None:
            return GeocodingResponse()
        if not isinstance(results, list):
            raise ParseError("geocoding 'results' is not a list")
        return GeocodingResponse.model_validate({"results": results})
