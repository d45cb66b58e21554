"""Shared fixtures for worldwander tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from worldwander.config import AppConfig, load_config
from worldwander.models import Country
from worldwander.selection import SelectionStore
from worldwander.storage import MemoryStorage


def make_country(code: str = "FRA", name: str = "France", **overrides: Any) -> Country:
    fields: dict[str, Any] = {
        "code": code,
        "display_name": name,
        "flag_url": f"https://flagcdn.com/w320/{code[:2].lower()}.png",
        "population": 67_391_582,
        "region": "Europe",
        "capital": "Paris",
        "subregion": "Western Europe",
        "languages": ("French",),
        "currencies": ("Euro",),
        "coordinates": (46.0, 2.0),
    }
    fields.update(overrides)
    return Country(**fields)


def api_record(code: str = "FRA", name: str = "France", **overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "name": {"common": name, "official": f"Republic of {name}"},
        "flags": {"png": f"https://flagcdn.com/w320/{code[:2].lower()}.png", "svg": "x.svg"},
        "capital": ["Paris"],
        "population": 67391582,
        "region": "Europe",
        "subregion": "Western Europe",
        "languages": {"fra": "French"},
        "currencies": {"EUR": {"name": "Euro", "symbol": "€"}},
        "cca2": code[:2],
        "cca3": code,
        "latlng": [46.0, 2.0],
    }
    record.update(overrides)
    return record


def polygon(lon: float, lat: float) -> dict[str, Any]:
    return {
        "type": "Polygon",
        "coordinates": [[[lon, lat], [lon + 1, lat], [lon + 1, lat + 1], [lon, lat + 1], [lon, lat]]],
    }


def feature_collection() -> dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {"NAME": "France", "ISO_A3": "FRA"}, "geometry": polygon(2, 46)},
            {"type": "Feature", "properties": {"NAME": "Germany", "ISO_A3": "DEU"}, "geometry": polygon(10, 51)},
            {"type": "Feature", "properties": {"NAME": "Antarctica", "ISO_A3": "ATA"}, "geometry": polygon(0, -80)},
            {"type": "Feature", "properties": {"NAME": "N. Cyprus", "ISO_A3": "-99"}, "geometry": polygon(33, 35)},
        ],
    }


@pytest.fixture
def france() -> Country:
    return make_country()


@pytest.fixture
def germany() -> Country:
    return make_country(
        "DEU",
        "Germany",
        capital="Berlin",
        population=83_240_525,
        subregion="Central Europe",
        languages=("German",),
        coordinates=(51.0, 9.0),
    )


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(memory_storage: MemoryStorage) -> SelectionStore:
    return SelectionStore(memory_storage)


@pytest.fixture
def geojson_path(tmp_path: Path) -> Path:
    path = tmp_path / "countries.geojson"
    path.write_text(json.dumps(feature_collection()), encoding="utf-8")
    return path


@pytest.fixture
def config_file(tmp_path: Path, geojson_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        "\n".join(
            [
                "project:",
                "  name: worldwander-test",
                "api:",
                "  base_url: https://restcountries.test/v3.1/",
                "  catalog_fields: [name, flags, capital, population, region, cca3, latlng]",
                "  detail_fields: [name, flags, capital, population, region, subregion, languages, currencies, cca3]",
                "  request_timeout_s: 5",
                "  user_agent: worldwander-tests",
                "paths:",
                f"  features: {geojson_path.name}",
                "  storage: state/storage.json",
                "  logs_dir: state/logs",
                "  export_dir: state/export",
                "storage:",
                "  slot: bucket",
                "map:",
                "  block_list: [ATA, ATF]",
                "",
            ]
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def app_config(config_file: Path) -> AppConfig:
    return load_config(config_file)


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, text: str | None = None) -> None:
        self._payload = payload
        self._text = text
        self.status_code = status_code
        self.closed = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._text is not None:
            return json.loads(self._text)
        return self._payload

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Minimal stand-in for `requests.Session` keyed by URL suffix."""

    def __init__(self, routes: dict[str, FakeResponse | Exception]) -> None:
        self.routes = routes
        self.headers: dict[str, str] = {}
        self.calls: list[tuple[str, dict[str, str] | None]] = []

    def get(self, url: str, params: dict[str, str] | None = None, timeout: float | None = None) -> FakeResponse:
        self.calls.append((url, params))
        for suffix, response in self.routes.items():
            if url.endswith(suffix):
                if isinstance(response, Exception):
                    raise response
                return response
        return FakeResponse(status_code=404)
