"""Durable named-slot storage backed by a single JSON file."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from .util import write_json

_LOGGER = logging.getLogger("worldwander.storage")


class StorageCorrupt(ValueError):
    """Raised when a persisted blob cannot be decoded."""


class SlotStorage(Protocol):
    def get(self, slot: str) -> str | None: ...

    def set(self, slot: str, value: str) -> None: ...

    def remove(self, slot: str) -> None: ...


class MemoryStorage:
    """In-process slot storage, used when no storage file is configured."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._slots: dict[str, str] = dict(initial or {})

    def get(self, slot: str) -> str | None:
        return self._slots.get(slot)

    def set(self, slot: str, value: str) -> None:
        self._slots[slot] = value

    def remove(self, slot: str) -> None:
        self._slots.pop(slot, None)


class JsonFileStorage:
    """String slots persisted as one JSON object; every write replaces the file atomically."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StorageCorrupt(f"Unreadable storage file {self.path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise StorageCorrupt(f"Expected JSON object in {self.path}")
        return {str(key): value for key, value in raw.items() if isinstance(value, str)}

    def get(self, slot: str) -> str | None:
        return self._read_all().get(slot)

    def set(self, slot: str, value: str) -> None:
        try:
            slots = self._read_all()
        except StorageCorrupt as exc:
            _LOGGER.warning("Replacing corrupt storage file: %s", exc)
            slots = {}
        slots[slot] = value
        write_json(self.path, slots)

    def remove(self, slot: str) -> None:
        slots = self._read_all()
        if slots.pop(slot, None) is not None:
            write_json(self.path, slots)
