"""End-to-end tests for CLI commands with the REST client patched out."""

import json
from pathlib import Path

import pytest

from tests.conftest import make_country
from worldwander.cli import main
from worldwander.client import FetchFailed, RestCountriesClient
from worldwander.config import AppConfig
from worldwander.selection import SelectionStore
from worldwander.storage import JsonFileStorage

CATALOG = [make_country("FRA", "France"), make_country("DEU", "Germany", capital="Berlin")]


@pytest.fixture
def offline_client(monkeypatch: pytest.MonkeyPatch) -> None:
    by_code = {country.code: country for country in CATALOG}

    def _fetch_detail(self, code: str):
        key = code.strip().upper()
        if key not in by_code:
            raise FetchFailed(f"detail:{key}", "not found (404)")
        return by_code[key]

    monkeypatch.setattr(RestCountriesClient, "fetch_catalog", lambda self, fields=None: list(CATALOG))
    monkeypatch.setattr(RestCountriesClient, "fetch_detail", _fetch_detail)


def _stored_codes(app_config: AppConfig) -> set[str]:
    return set(SelectionStore(JsonFileStorage(app_config.paths.storage), slot="bucket").keys())


class TestValidate:
    def test_ok(self, config_file: Path) -> None:
        assert main(["validate", "--config", str(config_file)]) == 0

    def test_strict_missing_features(self, config_file: Path, geojson_path: Path) -> None:
        geojson_path.unlink()
        assert main(["validate", "--config", str(config_file)]) == 0
        assert main(["validate", "--config", str(config_file), "--strict"]) == 1


@pytest.mark.usefixtures("offline_client")
class TestBucketListCommands:
    """Tests for add/toggle/remove/bucket-list."""

    def test_add_and_remove(self, config_file: Path, app_config: AppConfig) -> None:
        assert main(["add", "fra", "--config", str(config_file)]) == 0
        assert main(["add", "FRA", "--config", str(config_file)]) == 0
        assert _stored_codes(app_config) == {"FRA"}
        assert main(["bucket-list", "--config", str(config_file)]) == 0
        assert main(["remove", "FRA", "--config", str(config_file)]) == 0
        assert _stored_codes(app_config) == set()

    def test_toggle(self, config_file: Path, app_config: AppConfig) -> None:
        assert main(["toggle", "DEU", "--config", str(config_file)]) == 0
        assert _stored_codes(app_config) == {"DEU"}
        assert main(["toggle", "DEU", "--config", str(config_file)]) == 0
        assert _stored_codes(app_config) == set()

    def test_unknown_country(self, config_file: Path, app_config: AppConfig) -> None:
        assert main(["add", "ZZZ", "--config", str(config_file)]) == 1
        assert main(["show", "ZZZ", "--config", str(config_file)]) == 1
        assert not app_config.paths.storage.exists()

    def test_invalid_code(self, config_file: Path) -> None:
        assert main(["remove", "France", "--config", str(config_file)]) == 1
        assert main(["show", "-99", "--config", str(config_file)]) == 1

    def test_catalog_commands(self, config_file: Path) -> None:
        assert main(["countries", "--config", str(config_file), "--search", "fr"]) == 0
        assert main(["regions", "--config", str(config_file)]) == 0
        assert main(["show", "DEU", "--config", str(config_file)]) == 0


@pytest.mark.usefixtures("offline_client")
class TestMapCommand:
    def test_exports_styled_geojson(self, config_file: Path, app_config: AppConfig, tmp_path: Path) -> None:
        SelectionStore(JsonFileStorage(app_config.paths.storage), slot="bucket").add(CATALOG[0])
        output = tmp_path / "out" / "map.geojson"
        code = main(
            [
                "map",
                "--config",
                str(config_file),
                "--output",
                str(output),
                "--hover",
                "FRA",
                "--hover",
                "ATA",
                "--region",
                "Europe",
            ]
        )
        assert code == 0
        payload = json.loads(output.read_text(encoding="utf-8"))
        states = {item["properties"]["name"]: item["properties"]["render_state"] for item in payload["features"]}
        assert states == {
            "France": "hovered+selected",
            "Germany": "default",
            "Antarctica": "default",
            "N. Cyprus": "default",
        }
        assert payload["bucket_list"] == ["FRA"]
        assert payload["viewport"] == {"center": [50.0, 10.0], "zoom": 4}

    def test_invalid_hover_code(self, config_file: Path, tmp_path: Path) -> None:
        args = ["map", "--config", str(config_file), "--output", str(tmp_path / "m.geojson"), "--hover", "??"]
        assert main(args) == 1

    def test_missing_features(self, config_file: Path, geojson_path: Path, tmp_path: Path) -> None:
        geojson_path.unlink()
        assert main(["map", "--config", str(config_file), "--output", str(tmp_path / "m.geojson")]) == 1
