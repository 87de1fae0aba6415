import json

import httpx
import pytest


@pytest.fixture(autouse=True)
def isolate_cache_dir(tmp_path, monkeypatch):
    """Point every test at its own cache root so nothing leaks into ./cache."""
    monkeypatch.setenv("JUST_WEATHER_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.delenv("JUST_WEATHER_CACHE", raising=False)
    yield


@pytest.fixture
def open_meteo_payload() -> dict:
    return {
        "latitude": 50.45,
        "longitude": 30.5234,
        "current_units": {
            "time": "iso8601",
            "temperature_2m": "°C",
            "relative_humidity_2m": "%",
            "precipitation": "mm",
            "surface_pressure": "hPa",
            "wind_speed_10m": "km/h",
            "wind_direction_10m": "°",
        },
        "current": {
            "time": "2024-01-15T14:30",
            "interval": 900,
            "temperature_2m": -3.4,
            "relative_humidity_2m": 81,
            "apparent_temperature": -8.1,
            "is_day": 1,
            "precipitation": 0.0,
            "weather_code": 3,
            "surface_pressure": 1003.2,
            "wind_speed_10m": 14.8,
            "wind_direction_10m": 224,
        },
    }


@pytest.fixture
def geocoding_payload() -> dict:
    return {
        "results": [
            {
                "id": 703448,
                "name": "Kyiv",
                "latitude": 50.45466,
                "longitude": 30.5238,
                "country": "Ukraine",
                "country_code": "UA",
                "admin1": "Kyiv City",
                "population": 2797553,
                "timezone": "Europe/Kyiv",
            },
            {
                "id": 4862034,
                "name": "Kiev",
                "latitude": 43.2,
                "longitude": -95.9,
                "country": "United States",
                "country_code": "US",
                "admin1": "Iowa",
                "admin2": "Kossuth County",
                "population": 120,
            },
        ]
    }


@pytest.fixture
def price_payload() -> list:
    return [
        {
            "SEK_per_kWh": 0.42,
            "EUR_per_kWh": 0.037,
            "EXR": 11.35,
            "time_start": "2024-01-15T00:00:00+01:00",
            "time_end": "2024-01-15T01:00:00+01:00",
        },
        {
            "SEK_per_kWh": 1.18,
            "EUR_per_kWh": 0.104,
            "EXR": 11.35,
            "time_start": "2024-01-15T01:00:00+01:00",
            "time_end": "2024-01-15T02:00:00+01:00",
        },
    ]


class RecordingUpstream:
    """httpx.MockTransport handler that serves JSON bodies by host."""

    def __init__(self, bodies: dict[str, object]):
        self.bodies = bodies
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = self.bodies.get(request.url.host)
        if body is None:
            return httpx.Response(404, json={"error": True, "reason": "not found"})
        if isinstance(body, (bytes, str)):
            return httpx.Response(200, content=body)
        return httpx.Response(200, content=json.dumps(body).encode("utf-8"))

    @property
    def count(self) -> int:
        return len(self.requests)


@pytest.fixture
def upstream(open_meteo_payload, geocoding_payload, price_payload) -> RecordingUpstream:
    return RecordingUpstream(
        {
            "api.open-meteo.com": open_meteo_payload,
            "geocoding-api.open-meteo.com": geocoding_payload,
            "www.elprisetjustnu.se": price_payload,
        }
    )


@pytest.fixture
def clients(tmp_path, upstream):
    from just_weather.clients import build_clients

    built = build_clients(
        cache_root=tmp_path / "cache",
        timeout=2.0,
        transport=httpx.MockTransport(upstream),
    )
    yield built
    built.close()
