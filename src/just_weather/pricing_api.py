from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field

from .errors import ParseError
from .fetcher import CachedClient
from .requests import PriceQuery


class PricePoint(BaseModel):
    SEK_per_kWh: float = Field(..., description="Price in SEK per kWh")
    EUR_per_kWh: Optional[float] = Field(None, description="Price in EUR per kWh")
    EXR: Optional[float] = Field(None, description="SEK/EUR exchange rate used")
    time_start: str = Field(..., description="ISO-8601 interval start")
    time_end: str = Field(..., description="ISO-8601 interval end")


class PriceResponse(BaseModel):
    day: date
    area: str
    points: list[PricePoint] = Field(default_factory=list)

    def cheapest(self) -> PricePoint | None:
        if not self.points:
            return None
        return min(self.points, key=lambda p: p.SEK_per_kWh)

    def most_expensive(self) -> PricePoint | None:
        if not self.points:
            return None
        return max(self.points, key=lambda p: p.SEK_per_kWh)

    def average_sek(self) -> float | None:
        if not self.points:
            return None
        return sum(p.SEK_per_kWh for p in self.points) / len(self.points)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class ElprisApi(CachedClient[PriceQuery, PriceResponse]):
    """Day-ahead electricity prices per Swedish price area."""

    BASE_URL = "https://www.elprisetjustnu.se/api/v1/prices/"
    name = "pricing"

    def build_url(self, params: PriceQuery) -> str:
        return f"{self.BASE_URL}{params.path()}"

    def prices(self, query: PriceQuery) -> PriceResponse:
        return self.fetch(query)

    def _hydrate(self, document: Any, params: PriceQuery) -> PriceResponse:
        if not isinstance(document, list):
            raise ParseError("price payload is not a JSON list")
        return PriceResponse.model_validate(
            {"day": params.day, "area": params.area_code, "points": document}
        )
