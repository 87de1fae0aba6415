from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable

import click

from .cli_options import CityOptions, GlobalOptions
from .clients import Clients, build_clients
from .errors import JustWeatherError, envelope
from .geocoding_api import load_popular_cities
from .requests import GeocodingQuery, Location, PriceQuery, PRICE_AREAS

CACHE_NAMES = ("weather", "geo", "prices", "all")


def _configure_logging(options: GlobalOptions) -> None:
    logging.basicConfig(
        level=options.log_level(),
        format="[%(asctime)s][%(levelname)s][%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _fail(ctx: click.Context, exc: JustWeatherError) -> None:
    click.echo(envelope(error=exc))
    ctx.exit(1)


def _run(
    ctx: click.Context, action: Callable[[Clients], Any], **client_options: Any
) -> None:
    """Build the clients, run ``action`` and print the JSON envelope."""

    options: GlobalOptions = ctx.obj
    with build_clients(
        cache_root=options.cache_dir,
        use_cache=None if options.use_cache else False,
        timeout=options.timeout,
        **client_options,
    ) as clients:
        try:
            data = action(clients)
        except JustWeatherError as exc:
            _fail(ctx, exc)
        click.echo(envelope(data=data))


@click.group()
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False, path_type=str),
    default=None,
    help="Root directory for the cache (defaults to $JUST_WEATHER_CACHE_DIR or ./cache).",
)
@click.option(
    "--no-cache",
    is_flag=True,
    default=False,
    help="Disable reading and writing cache entries.",
)
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Seconds to wait for an upstream response.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log debug output.")
@click.pass_context
def click_main(
    ctx: click.Context,
    cache_dir: str | None,
    no_cache: bool,
    timeout: float | None,
    verbose: bool,
):
    if timeout is not None and timeout <= 0:
        raise click.BadParameter("--timeout must be positive.", param_hint="--timeout")
    ctx.obj = GlobalOptions(
        cache_dir=cache_dir,
        use_cache=not no_cache,
        timeout=timeout,
        verbose=verbose,
    )
    _configure_logging(ctx.obj)


@click_main.command()
@click.option("--lat", type=float, required=True, help="Latitude in degrees.")
@click.option("--lon", type=float, required=True, help="Longitude in degrees.")
@click.pass_context
def current(ctx: click.Context, lat: float, lon: float):
    """Current weather for a coordinate pair."""

    location = Location(latitude=lat, longitude=lon)
    _run(ctx, lambda clients: clients.weather.current(location).to_dict())


@click_main.command()
@click.argument("city")
@click.option("--country", default=None, help="Country code or name to prefer.")
@click.option("--region", default=None, help="Region (admin area) to filter on.")
@click.pass_context
def weather(ctx: click.Context, city: str, country: str | None, region: str | None):
    """Current weather for a city name."""

    options = CityOptions(city=city, country=country, region=region)
    query = GeocodingQuery(
        name=options.city, country=options.country, region=options.region
    )
    _run(ctx, lambda clients: clients.weather_by_city(query))


@click_main.command()
@click.argument("query")
@click.option(
    "--popular-cities",
    type=click.Path(exists=True, dir_okay=False, path_type=str),
    default=None,
    help="JSON list of well-known cities searched before the cache and the API.",
)
@click.pass_context
def cities(ctx: click.Context, query: str, popular_cities: str | None):
    """Search cities by name without writing to the cache."""

    lookup = None
    if popular_cities:
        try:
            lookup = load_popular_cities(popular_cities)
        except JustWeatherError as exc:
            _fail(ctx, exc)

    def action(clients: Clients) -> Any:
        response = clients.search_cities(query)
        return {
            "query": query,
            "count": response.count,
            "results": [r.model_dump() for r in response.results],
        }

    _run(ctx, action, popular_cities=lookup)


@click_main.command()
@click.option(
    "--date",
    "day",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Day to fetch prices for (defaults to today).",
)
@click.option(
    "--area",
    type=click.Choice(PRICE_AREAS, case_sensitive=False),
    default="SE3",
    show_default=True,
    help="Price area.",
)
@click.pass_context
def prices(ctx: click.Context, day: datetime | None, area: str):
    """Electricity prices for one day and price area."""

    query = PriceQuery(day=day.date() if day else date.today(), area=area)

    def action(clients: Clients) -> Any:
        response = clients.pricing.prices(query)
        data = response.to_dict()
        data["average_sek"] = response.average_sek()
        return data

    _run(ctx, action)


@click_main.group()
def cache():
    """Inspect and manage cache directories."""


@cache.command("clear")
@click.argument(
    "name", type=click.Choice(CACHE_NAMES, case_sensitive=False), default="all"
)
@click.pass_context
def cache_clear(ctx: click.Context, name: str):
    """Delete cache entries (one cache or all of them)."""

    names = () if name.lower() == "all" else (name.lower(),)
    _run(ctx, lambda clients: {"removed": clients.clear_caches(*names)})


def main():
    click_main()


if __name__ == "__main__":
    main()
