"""Map feature collection loading and identity-property detection."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Mapping, Sequence

import requests

from .client import FetchFailed
from .config import MapConfig
from .identity import SENTINEL_CODES, try_normalize
from .models import Feature

_LOGGER = logging.getLogger("worldwander.features")

_GEOJSON_SUFFIXES = {".geojson", ".json"}


class FeatureRepository:
    """Loads one polygon per territory from a GeoJSON file or URL.

    Other vector formats (shapefile, GeoPackage) are read through GeoPandas.
    """

    def __init__(
        self,
        source: str | Path,
        cfg: MapConfig | None = None,
        *,
        session: requests.Session | None = None,
        timeout_s: float = 30.0,
    ) -> None:
        self.source = str(source)
        self.cfg = cfg or MapConfig()
        self._session = session
        self.timeout_s = timeout_s

    @property
    def is_remote(self) -> bool:
        return self.source.startswith(("http://", "https://"))

    def load_collection(self) -> Mapping[str, Any]:
        if self.is_remote:
            raw = self._load_remote()
        else:
            path = Path(self.source)
            if not path.exists():
                raise FetchFailed("features", f"feature file not found: {path}")
            if path.suffix.lower() in _GEOJSON_SUFFIXES:
                try:
                    with path.open("r", encoding="utf-8") as fh:
                        raw = json.load(fh)
                except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
                    raise FetchFailed("features", f"unreadable GeoJSON {path}: {exc}") from exc
            else:
                gpd = self._require_geopandas()
                raw = json.loads(gpd.read_file(path).to_json())
        if not isinstance(raw, Mapping) or not isinstance(raw.get("features"), list):
            raise FetchFailed("features", "expected a GeoJSON FeatureCollection")
        return raw

    def load(self, *, iso_allowlist: set[str] | None = None) -> list[Feature]:
        return parse_features(self.load_collection(), self.cfg, iso_allowlist=iso_allowlist)

    def fetcher(self, *, iso_allowlist: set[str] | None = None) -> Callable[[], Awaitable[list[Feature]]]:
        async def _fetch() -> list[Feature]:
            return await asyncio.to_thread(self.load, iso_allowlist=iso_allowlist)

        return _fetch

    def _load_remote(self) -> Any:
        if self._session is not None:
            return self._get_collection(self._session)
        with requests.Session() as session:
            return self._get_collection(session)

    def _get_collection(self, session: requests.Session) -> Any:
        try:
            response = session.get(self.source, timeout=self.timeout_s)
        except requests.RequestException as exc:
            raise FetchFailed("features", f"request failed: {exc}") from exc
        try:
            if not response.ok:
                raise FetchFailed("features", f"HTTP {response.status_code}")
            try:
                return response.json()
            except ValueError as exc:
                raise FetchFailed("features", f"invalid JSON: {exc}") from exc
        finally:
            response.close()

    @staticmethod
    def _require_geopandas() -> Any:
        try:
            import geopandas as gpd
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError("geopandas is required for non-GeoJSON feature sources") from exc
        return gpd


def parse_features(
    collection: Mapping[str, Any],
    cfg: MapConfig | None = None,
    *,
    identity_property: str | None = None,
    iso_allowlist: set[str] | None = None,
) -> list[Feature]:
    """Convert GeoJSON features into typed records with normalized keys.

    Features whose identity is a sentinel or otherwise unnormalizable keep
    `key=None`; they are still returned so they can render neutrally.
    """
    cfg = cfg or MapConfig()
    raw_features = [item for item in collection.get("features", []) if isinstance(item, Mapping)]
    prop = identity_property or detect_identity_property(
        raw_features,
        cfg.identity_properties,
        iso_allowlist=iso_allowlist,
    )
    if prop is None:
        _LOGGER.warning("No identity property detected; all features will be non-interactive")

    features: list[Feature] = []
    unresolved = 0
    for index, raw in enumerate(raw_features):
        properties = raw.get("properties") or {}
        if not isinstance(properties, Mapping):
            properties = {}
        identity_raw = _feature_value(raw, prop) if prop else None
        identity = str(identity_raw).strip() if identity_raw is not None else None
        key = try_normalize(identity)
        if key is None:
            unresolved += 1
        name = _first_name(properties, cfg.name_properties) or identity or "Unknown"
        features.append(
            Feature(
                index=index,
                identity=identity,
                key=key,
                name=name,
                geometry=raw.get("geometry"),
                properties=dict(properties),
            )
        )
    _LOGGER.info(
        "Parsed %d features (identity property=%s, unresolved=%d)", len(features), prop, unresolved
    )
    return features


def detect_identity_property(
    raw_features: Sequence[Mapping[str, Any]],
    preferred: Sequence[str],
    *,
    iso_allowlist: set[str] | None = None,
) -> str | None:
    """Pick the best ISO3-like property using schema hints and data-based scoring."""
    existing: list[str] = []
    for raw in raw_features:
        properties = raw.get("properties") or {}
        if isinstance(properties, Mapping):
            for name in properties:
                if str(name) not in existing:
                    existing.append(str(name))
    has_top_level_id = any(raw.get("id") is not None for raw in raw_features)
    by_lower = {col.lower(): col for col in existing}

    candidates: list[str] = []
    for candidate in preferred:
        if candidate == "id" and has_top_level_id:
            match: str | None = "id"
        else:
            match = by_lower.get(candidate.lower())
        if match and match not in candidates:
            candidates.append(match)
    for candidate in _heuristic_iso_candidates(existing):
        if candidate not in candidates:
            candidates.append(candidate)

    best_prop: str | None = None
    best_score: tuple[int, int, int] | None = None
    for candidate in candidates:
        values = [_feature_value(raw, candidate) for raw in raw_features]
        score = _score_iso_values(values, iso_allowlist=iso_allowlist)
        if best_score is None or score > best_score:
            best_prop = candidate
            best_score = score

    if best_prop is None or best_score is None or best_score[1] == 0:
        return None
    return best_prop


def _feature_value(raw: Mapping[str, Any], prop: str) -> Any:
    properties = raw.get("properties") or {}
    if prop == "id" and raw.get("id") is not None:
        return raw.get("id")
    if isinstance(properties, Mapping):
        return properties.get(prop)
    return None


def _first_name(properties: Mapping[str, Any], candidates: Sequence[str]) -> str | None:
    for candidate in candidates:
        value = properties.get(candidate)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _score_iso_values(
    values: list[Any],
    *,
    iso_allowlist: set[str] | None,
) -> tuple[int, int, int]:
    valid: list[str] = []
    for value in values:
        if value is None:
            continue
        normalized = str(value).strip().upper()
        if len(normalized) == 3 and normalized.isalpha() and normalized not in SENTINEL_CODES:
            valid.append(normalized)

    valid_set = set(valid)
    overlap_count = len(valid_set & iso_allowlist) if iso_allowlist else 0
    return (overlap_count, len(valid), len(valid_set))


def _heuristic_iso_candidates(columns: Iterable[str]) -> list[str]:
    candidates: list[str] = []
    for original_name in columns:
        norm = "".join(ch for ch in original_name.upper() if ch.isalnum())
        if "A3" not in norm:
            continue
        if any(token in norm for token in ("ISO", "ADM0", "SOV", "WB", "BRK", "GU", "SU")):
            candidates.append(original_name)
    return candidates
