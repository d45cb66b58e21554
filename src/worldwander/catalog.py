"""Country catalog indexing, filtering and region summaries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from .models import Country
from .selection import SelectionStore


@dataclass(frozen=True, slots=True)
class RegionSummary:
    region: str
    total: int
    in_bucket_list: int


def index_by_code(countries: Iterable[Country]) -> dict[str, Country]:
    return {country.code: country for country in countries}


def filter_countries(
    countries: Sequence[Country],
    *,
    search: str | None = None,
    region: str | None = None,
) -> list[Country]:
    """Case-insensitive name search combined with an exact region filter."""
    needle = search.strip().casefold() if search else ""
    out: list[Country] = []
    for country in countries:
        if needle and needle not in country.display_name.casefold():
            continue
        if region and country.region != region:
            continue
        out.append(country)
    return out


def list_regions(countries: Iterable[Country]) -> list[str]:
    return sorted({country.region for country in countries if country.region})


def region_summaries(countries: Sequence[Country], selection: SelectionStore) -> list[RegionSummary]:
    totals: dict[str, int] = {}
    selected: dict[str, int] = {}
    for country in countries:
        if not country.region:
            continue
        totals[country.region] = totals.get(country.region, 0) + 1
        if selection.contains(country.code):
            selected[country.region] = selected.get(country.region, 0) + 1
    return [
        RegionSummary(region=region, total=totals[region], in_bucket_list=selected.get(region, 0))
        for region in sorted(totals)
    ]


def catalog_stats(shown: int, total: int, selected: int) -> str:
    line = f"Showing {shown} of {total} countries"
    if selected > 0:
        line += f" - {selected} in your bucket list"
    return line


def format_population(population: int) -> str:
    return f"{population:,}"
