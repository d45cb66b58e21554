"""Persisted, key-indexed set of bucket-list countries."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from .identity import normalize, try_normalize
from .models import Country
from .storage import SlotStorage, StorageCorrupt

DEFAULT_SLOT = "worldwander_bucketlist"

_LOGGER = logging.getLogger("worldwander.selection")


@dataclass(frozen=True, slots=True)
class SelectionChange:
    kind: str  # "added", "replaced" or "removed"
    key: str
    country: Country | None


SelectionListener = Callable[[SelectionChange], None]


class SelectionStore:
    """Authoritative bucket list keyed by canonical alpha-3 code.

    Every mutation writes the whole set to `storage` before the in-memory
    mapping is swapped, then notifies subscribers.
    """

    def __init__(self, storage: SlotStorage, *, slot: str = DEFAULT_SLOT) -> None:
        self.storage = storage
        self.slot = slot
        self.diagnostic: str | None = None
        self._entries: dict[str, Country] = {}
        self._listeners: list[SelectionListener] = []
        self._mutating = False
        self._restore()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Any) -> bool:
        return self.contains(key)

    def contains(self, key: Any) -> bool:
        normalized = try_normalize(key)
        return normalized is not None and normalized in self._entries

    def get(self, key: Any) -> Country | None:
        normalized = try_normalize(key)
        return self._entries.get(normalized) if normalized is not None else None

    def keys(self) -> frozenset[str]:
        return frozenset(self._entries)

    def list(self) -> tuple[Country, ...]:
        return tuple(self._entries.values())

    def add(self, country: Country) -> bool:
        """Insert a country; re-adding an existing code keeps one entry with the newest snapshot."""
        key = normalize(country.code)
        current = self._entries.get(key)
        if current == country:
            return False
        updated = dict(self._entries)
        updated[key] = country
        self._commit(updated)
        self._notify(SelectionChange("added" if current is None else "replaced", key, country))
        return True

    def remove(self, key: Any) -> bool:
        normalized = try_normalize(key)
        if normalized is None or normalized not in self._entries:
            return False
        updated = dict(self._entries)
        removed = updated.pop(normalized)
        self._commit(updated)
        self._notify(SelectionChange("removed", normalized, removed))
        return True

    def subscribe(self, listener: SelectionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def serialize(self) -> str:
        return _encode(self._entries)

    def _commit(self, updated: dict[str, Country]) -> None:
        if self._mutating:
            raise RuntimeError("Selection mutation attempted while another mutation is in progress")
        self._mutating = True
        try:
            self.storage.set(self.slot, _encode(updated))
            self._entries = updated
        finally:
            self._mutating = False

    def _notify(self, change: SelectionChange) -> None:
        for listener in list(self._listeners):
            listener(change)

    def _restore(self) -> None:
        try:
            blob = self.storage.get(self.slot)
            if blob is None:
                return
            self._entries = _decode(blob)
        except StorageCorrupt as exc:
            self.diagnostic = str(exc)
            self._entries = {}
            _LOGGER.warning("Bucket list storage unreadable, starting empty: %s", exc)
            return
        _LOGGER.debug("Restored %d bucket list entries from slot '%s'", len(self._entries), self.slot)


def _encode(entries: dict[str, Country]) -> str:
    return json.dumps([country.to_snapshot() for country in entries.values()], ensure_ascii=False)


def _decode(blob: str) -> dict[str, Country]:
    try:
        raw = json.loads(blob)
    except json.JSONDecodeError as exc:
        raise StorageCorrupt(f"Persisted bucket list is not valid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise StorageCorrupt(f"Expected JSON array, got {type(raw).__name__}")

    entries: dict[str, Country] = {}
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            _LOGGER.warning("Skipping non-object bucket list entry at index %d", idx)
            continue
        try:
            country = Country.from_snapshot(item)
        except ValueError as exc:
            _LOGGER.warning("Skipping malformed bucket list entry %d: %s", idx, exc)
            continue
        entries[country.code] = country
    return entries
