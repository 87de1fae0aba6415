from __future__ import annotations

from typing import Any, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, Field
from typing_extensions import Annotated

from .errors import ParseError
from .fetcher import CachedClient
from .requests import Location

CURRENT_FIELDS = (
    "temperature_2m",
    "relative_humidity_2m",
    "apparent_temperature",
    "is_day",
    "precipitation",
    "weather_code",
    "surface_pressure",
    "wind_speed_10m",
    "wind_direction_10m",
)

WEATHER_DESCRIPTIONS = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}

COMPASS_POINTS = (
    "North",
    "North-Northeast",
    "Northeast",
    "East-Northeast",
    "East",
    "East-Southeast",
    "Southeast",
    "South-Southeast",
    "South",
    "South-Southwest",
    "Southwest",
    "West-Southwest",
    "West",
    "West-Northwest",
    "Northwest",
    "North-Northwest",
)


def describe_weather_code(code: int) -> str:
    return WEATHER_DESCRIPTIONS.get(code, "Unknown")


def wind_direction_name(degrees: float) -> str:
    """Name the 16-point compass sector that ``degrees`` falls into."""

    sector = int(((degrees % 360) + 11.25) // 22.5) % len(COMPASS_POINTS)
    return COMPASS_POINTS[sector]


class CurrentConditions(BaseModel):
    time: Optional[str] = None
    temperature_2m: float = 0.0
    relative_humidity_2m: float = 0.0
    apparent_temperature: Optional[float] = None
    is_day: int = 0
    precipitation: float = 0.0
    weather_code: int = 0
    surface_pressure: float = 0.0
    wind_speed_10m: float = 0.0
    wind_direction_10m: float = 0.0


class OpenMeteoResponse(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    current: CurrentConditions
    current_units: dict[str, str] = Field(default_factory=dict)


class WeatherData(BaseModel):
    temperature: Annotated[float, Field(description="Air temperature at 2 m")]
    temperature_unit: str = "°C"
    windspeed: float = 0.0
    windspeed_unit: str = "km/h"
    winddirection: int = 0
    precipitation: float = 0.0
    precipitation_unit: str = "mm"
    humidity: float = 0.0
    pressure: float = 0.0
    weather_code: int = 0
    is_day: int = 0
    time: Optional[str] = None
    latitude: float
    longitude: float

    @property
    def description(self) -> str:
        return describe_weather_code(self.weather_code)

    @property
    def wind_direction_name(self) -> str:
        return wind_direction_name(self.winddirection)

    def to_dict(self) -> dict[str, Any]:
        payload = self.model_dump(exclude={"latitude", "longitude"})
        payload["weather_description"] = self.description
        payload["wind_direction_name"] = self.wind_direction_name
        return {
            "current_weather": payload,
            "location": {"latitude": self.latitude, "longitude": self.longitude},
        }


class OpenMeteoApi(CachedClient[Location, WeatherData]):
    """Current conditions from Open-Meteo, cached per coordinate pair."""

    BASE_URL = "http://api.open-meteo.com/v1/forecast"
    name = "weather"

    def build_url(self, params: Location) -> str:
        query = {
            **params.params(),
            "current": ",".join(CURRENT_FIELDS),
            "timezone": "GMT",
        }
        return f"{self.BASE_URL}?{urlencode(query, safe=',')}"

    def current(self, location: Location) -> WeatherData:
        return self.fetch(location)

    def _hydrate(self, document: Any, params: Location) -> WeatherData:
        if not isinstance(document, dict) or "current" not in document:
            raise ParseError("weather payload has no 'current' block")
        response = OpenMeteoResponse.model_validate(document)
        current = response.current
        units = response.current_units
        return WeatherData(
            temperature=current.temperature_2m,
            temperature_unit=units.get("temperature_2m") or "°C",
            windspeed=current.wind_speed_10m,
            windspeed_unit=units.get("wind_speed_10m") or "km/h",
            winddirection=int(round(current.wind_direction_10m)),
            precipitation=current.precipitation,
            precipitation_unit=units.get("precipitation") or "mm",
            humidity=current.relative_humidity_2m,
            pressure=current.surface_pressure,
            weather_code=current.weather_code,
            is_day=current.is_day,
            time=current.time,
            latitude=params.latitude,
            longitude=params.longitude,
        )
