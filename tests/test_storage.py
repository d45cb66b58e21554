"""Tests for slot storage backends."""

import json
from pathlib import Path

import pytest

from worldwander.storage import JsonFileStorage, MemoryStorage, StorageCorrupt
from worldwander.util import write_json


class TestMemoryStorage:
    def test_get_set_remove(self) -> None:
        storage = MemoryStorage({"a": "1"})
        assert storage.get("a") == "1"
        storage.set("b", "2")
        storage.remove("a")
        storage.remove("missing")
        assert storage.get("a") is None
        assert storage.get("b") == "2"


class TestJsonFileStorage:
    """Tests for the file-backed storage."""

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert JsonFileStorage(tmp_path / "none.json").get("slot") is None

    def test_slots_share_one_file(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "storage.json"
        storage = JsonFileStorage(path)
        storage.set("one", "[]")
        storage.set("two", '["x"]')
        assert json.loads(path.read_text(encoding="utf-8")) == {"one": "[]", "two": '["x"]'}
        storage.remove("one")
        assert JsonFileStorage(path).get("one") is None
        assert JsonFileStorage(path).get("two") == '["x"]'

    @pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
    def test_corrupt_file_raises_on_read(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "storage.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(StorageCorrupt):
            JsonFileStorage(path).get("slot")

    def test_write_replaces_corrupt_file(self, tmp_path: Path) -> None:
        path = tmp_path / "storage.json"
        path.write_text("{broken", encoding="utf-8")
        storage = JsonFileStorage(path)
        storage.set("slot", "[]")
        assert storage.get("slot") == "[]"

    def test_no_temp_files_left_behind(self, tmp_path: Path) -> None:
        storage = JsonFileStorage(tmp_path / "storage.json")
        storage.set("slot", "[]")
        assert [p.name for p in tmp_path.iterdir()] == ["storage.json"]


def test_write_json_failure_keeps_previous_file(tmp_path: Path) -> None:
    path = tmp_path / "out.json"
    write_json(path, {"ok": True})
    with pytest.raises(TypeError):
        write_json(path, {"bad": object()})
    assert json.loads(path.read_text(encoding="utf-8")) == {"ok": True}
    assert [p.name for p in tmp_path.iterdir()] == ["out.json"]


def test_invalid_utf8_file_is_corrupt(tmp_path: Path) -> None:
    path = tmp_path / "storage.json"
    path.write_bytes(b'{"slot": "\xff\xfe"}')
    storage = JsonFileStorage(path)
    with pytest.raises(StorageCorrupt):
        storage.get("slot")
    storage.set("slot", "[]")
    assert storage.get("slot") == "[]"
