"""Domain models shared across the selection, loader and map modules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from .identity import normalize


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _population(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("Expected integer for 'population'")
    if not math.isfinite(value) or value < 0 or int(value) != value:
        raise ValueError(f"Population must be a non-negative integer, got {value!r}")
    return int(value)


def _str_tuple(value: Any, field_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"Expected list for '{field_name}'")
    return tuple(_require_str(item, f"{field_name}[]") for item in value)


def _coordinates(value: Any) -> tuple[float, float] | None:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    lat_raw, lon_raw = value
    if not isinstance(lat_raw, (int, float)) or not isinstance(lon_raw, (int, float)):
        return None
    lat = float(lat_raw)
    lon = float(lon_raw)
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    if lat < -90.0 or lat > 90.0 or lon < -180.0 or lon > 180.0:
        return None
    return (lat, lon)


@dataclass(frozen=True, slots=True)
class Country:
    """A country record; `code` is its only identity."""

    code: str
    display_name: str
    flag_url: str
    population: int
    region: str
    capital: str | None = None
    subregion: str | None = None
    languages: tuple[str, ...] = ()
    currencies: tuple[str, ...] = ()
    coordinates: tuple[float, float] | None = None

    @classmethod
    def from_api(cls, record: Mapping[str, Any]) -> Country:
        """Build a country from a REST Countries v3.1 record."""
        name = record.get("name")
        display_name = name.get("common") if isinstance(name, Mapping) else name
        flags = record.get("flags")
        flag_url = (flags.get("png") or flags.get("svg")) if isinstance(flags, Mapping) else flags

        capital_raw = record.get("capital")
        if isinstance(capital_raw, list):
            capital = _optional_str(capital_raw[0]) if capital_raw else None
        else:
            capital = _optional_str(capital_raw)

        languages_raw = record.get("languages")
        if isinstance(languages_raw, Mapping):
            languages = tuple(_require_str(item, "languages[]") for item in languages_raw.values())
        else:
            languages = _str_tuple(languages_raw, "languages")

        currencies_raw = record.get("currencies") or {}
        currencies: list[str] = []
        if isinstance(currencies_raw, Mapping):
            for currency_code, info in currencies_raw.items():
                label = info.get("name") if isinstance(info, Mapping) else None
                currencies.append(_require_str(label or currency_code, "currencies[]"))
        else:
            currencies.extend(_str_tuple(currencies_raw, "currencies"))

        return cls(
            code=normalize(record.get("cca3")),
            display_name=_require_str(display_name, "name.common"),
            flag_url=_require_str(flag_url, "flags.png"),
            population=_population(record.get("population")),
            region=_require_str(record.get("region"), "region"),
            capital=capital,
            subregion=_optional_str(record.get("subregion")),
            languages=languages,
            currencies=tuple(currencies),
            coordinates=_coordinates(record.get("latlng")),
        )

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any]) -> Country:
        """Restore a persisted snapshot.

        Also reads the layout written by the earlier browser app
        (`name`, `flag`, `alpha3Code`, capital "Unknown").
        """
        capital = _optional_str(data.get("capital"))
        if capital == "Unknown":
            capital = None
        return cls(
            code=normalize(data.get("code", data.get("alpha3Code"))),
            display_name=_require_str(data.get("display_name", data.get("name")), "display_name"),
            flag_url=_require_str(data.get("flag_url", data.get("flag")), "flag_url"),
            population=_population(data.get("population")),
            region=_require_str(data.get("region"), "region"),
            capital=capital,
            subregion=_optional_str(data.get("subregion")),
            languages=_str_tuple(data.get("languages"), "languages"),
            currencies=_str_tuple(data.get("currencies"), "currencies"),
            coordinates=_coordinates(data.get("coordinates")),
        )

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "display_name": self.display_name,
            "flag_url": self.flag_url,
            "population": self.population,
            "region": self.region,
            "capital": self.capital,
            "subregion": self.subregion,
            "languages": list(self.languages),
            "currencies": list(self.currencies),
            "coordinates": list(self.coordinates) if self.coordinates is not None else None,
        }


@dataclass(frozen=True, slots=True)
class Feature:
    """One polygon/multipolygon from the map-geometry dataset."""

    index: int
    identity: str | None
    key: str | None
    name: str
    geometry: Mapping[str, Any] | None = None
    properties: Mapping[str, Any] = field(default_factory=dict)


class RenderState(str, Enum):
    DEFAULT = "default"
    HOVERED = "hovered"
    SELECTED = "selected"
    HOVERED_SELECTED = "hovered+selected"

    @classmethod
    def compose(cls, *, selected: bool, hovered: bool) -> RenderState:
        if selected:
            return cls.HOVERED_SELECTED if hovered else cls.SELECTED
        return cls.HOVERED if hovered else cls.DEFAULT

    @property
    def selected(self) -> bool:
        return self in (RenderState.SELECTED, RenderState.HOVERED_SELECTED)

    @property
    def hovered(self) -> bool:
        return self in (RenderState.HOVERED, RenderState.HOVERED_SELECTED)


@dataclass(frozen=True, slots=True)
class FeatureStyle:
    fill_color: str
    fill_opacity: float
    color: str
    weight: float
    opacity: float

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], field_name: str) -> FeatureStyle:
        def _num(key: str) -> float:
            value = data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"Expected number for '{field_name}.{key}'")
            return float(value)

        return cls(
            fill_color=_require_str(data.get("fill_color"), f"{field_name}.fill_color"),
            fill_opacity=_num("fill_opacity"),
            color=_require_str(data.get("color"), f"{field_name}.color"),
            weight=_num("weight"),
            opacity=_num("opacity"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "fillColor": self.fill_color,
            "fillOpacity": self.fill_opacity,
            "color": self.color,
            "weight": self.weight,
            "opacity": self.opacity,
        }


@dataclass(frozen=True, slots=True)
class NavigationIntent:
    code: str


@dataclass(frozen=True, slots=True)
class Viewport:
    center: tuple[float, float]
    zoom: int


def sort_countries(countries: Sequence[Country]) -> list[Country]:
    return sorted(countries, key=lambda item: (item.display_name.casefold(), item.code))
