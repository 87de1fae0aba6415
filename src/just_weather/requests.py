from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date
from urllib.parse import parse_qs

from .errors import InvalidParameters

PRICE_AREAS = ("SE1", "SE2", "SE3", "SE4")
MIN_QUERY_LENGTH = 2

_REGION_SEPARATORS = re.compile(r"[_+]")


def _first(query: dict[str, list[str]], *names: str) -> str | None:
    for name in names:
        values = query.get(name)
        if values and values[0].strip():
            return values[0].strip()
    return None


def _parse_query(query: str) -> dict[str, list[str]]:
    return parse_qs(query.lstrip("?"), keep_blank_values=False)


@dataclass(frozen=True)
class Location:
    latitude: float | None
    longitude: float | None
    name: str | None = None

    def validate(self) -> None:
        if self.latitude is None or self.longitude is None:
            raise InvalidParameters("both latitude and longitude are required")
        if not all(math.isfinite(v) for v in (self.latitude, self.longitude)):
            raise InvalidParameters("coordinates must be finite numbers")
        if not -90.0 <= self.latitude <= 90.0:
            raise InvalidParameters(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise InvalidParameters(f"longitude out of range: {self.longitude}")

    def cache_input(self) -> str:
        return f"weather_{self.latitude:.6f}_{self.longitude:.6f}"

    def params(self) -> dict[str, str]:
        return {
            "latitude": f"{self.latitude:.6f}",
            "longitude": f"{self.longitude:.6f}",
        }

    @classmethod
    def from_query(cls, query: str) -> Location:
        """Parse ``lat=..&lon=..`` (``long`` is accepted for ``lon``)."""

        parsed = _parse_query(query)
        lat = _first(parsed, "lat", "latitude")
        lon = _first(parsed, "lon", "long", "longitude")
        if lat is None or lon is None:
            raise InvalidParameters("query needs both 'lat' and 'lon'")
        try:
            return cls(latitude=float(lat), longitude=float(lon))
        except ValueError as exc:
            raise InvalidParameters(f"invalid coordinates: {exc}") from exc


@dataclass(frozen=True)
class GeocodingQuery:
    name: str
    country: str | None = None
    region: str | None = None

    def validate(self) -> None:
        if not self.name or len(self.name.strip()) < MIN_QUERY_LENGTH:
            raise InvalidParameters(
                f"city name must be at least {MIN_QUERY_LENGTH} characters"
            )

    def cache_input(self) -> str:
        # The region only filters results locally, so it stays out of the key.
        if self.country:
            return f"{self.name}|{self.country}"
        return self.name

    def region_text(self) -> str | None:
        if not self.region:
            return None
        return _REGION_SEPARATORS.sub(" ", self.region).strip() or None

    def params(self, max_results: int, language: str) -> dict[str, str]:
        params = {
            "name": self.name.strip(),
            "count": str(max_results),
            "language": language,
            "format": "json",
        }
        if self.country:
            params["country"] = self.country
        return params

    @classmethod
    def from_query(cls, query: str) -> GeocodingQuery:
        parsed = _parse_query(query)
        name = _first(parsed, "city", "name", "query")
        if name is None:
            raise InvalidParameters("query needs a 'city' parameter")
        return cls(
            name=name,
            country=_first(parsed, "country"),
            region=_first(parsed, "region"),
        )


@dataclass(frozen=True)
class PriceQuery:
    day: date
    area: str = "SE3"

    def validate(self) -> None:
        if self.area.upper() not in PRICE_AREAS:
            raise InvalidParameters(
                f"unknown price area {self.area!r}, "
                f"expected one of {', '.join(PRICE_AREAS)}"
            )

    @property
    def area_code(self) -> str:
        return self.area.upper()

    def cache_input(self) -> str:
        return f"elpris_{self.day.isoformat()}_{self.area_code}"

    def path(self) -> str:
        return f"{self.day:%Y}/{self.day:%m-%d}_{self.area_code}.json"

    @classmethod
    def from_query(cls, query: str) -> PriceQuery:
        """Parse ``date=YYYY-MM-DD&price=SE3``."""

        parsed = _parse_query(query)
        raw_date = _first(parsed, "date")
        area = _first(parsed, "price", "area")
        if raw_date is None or area is None:
            raise InvalidParameters("query needs both 'date' and 'price'")
        try:
            day = date.fromisoformat(raw_date)
        except ValueError as exc:
            raise InvalidParameters(f"invalid date {raw_date!r}") from exc
        return cls(day=day, area=area)
