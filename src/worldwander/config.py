"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .identity import DEFAULT_BLOCK_LIST, normalize_block_list
from .models import FeatureStyle, RenderState, Viewport


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected bool for '{field_name}'")
    return value


def _str_list(value: Any, field_name: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Expected list for '{field_name}'")
    out: list[str] = []
    for idx, item in enumerate(value):
        out.append(_str(item, f"{field_name}[{idx}]"))
    return tuple(out)


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


def _source_from_cfg(value: Any, field_name: str, root_dir: Path) -> str:
    """URLs are kept verbatim; anything else is resolved like a path."""
    raw = _str(value, field_name)
    if raw.startswith(("http://", "https://")):
        return raw
    return str(_path_from_cfg(raw, field_name, root_dir))


_DEFAULT_STYLES: dict[RenderState, FeatureStyle] = {
    RenderState.DEFAULT: FeatureStyle("#3498db", 0.3, "#ffffff", 1.0, 0.7),
    RenderState.HOVERED: FeatureStyle("#4dabf7", 0.8, "#333333", 2.0, 1.0),
    RenderState.SELECTED: FeatureStyle("#F9A826", 0.6, "#ffffff", 1.0, 0.7),
    RenderState.HOVERED_SELECTED: FeatureStyle("#F9A826", 0.8, "#333333", 2.0, 1.0),
}

_DEFAULT_REGION_VIEWPORTS: dict[str, Viewport] = {
    "Africa": Viewport((0.0, 20.0), 3),
    "Americas": Viewport((0.0, -80.0), 2),
    "Asia": Viewport((30.0, 100.0), 3),
    "Europe": Viewport((50.0, 10.0), 4),
    "Oceania": Viewport((-25.0, 135.0), 4),
}

_DEFAULT_WORLD_VIEWPORT = Viewport((20.0, 0.0), 2)

_DEFAULT_IDENTITY_PROPERTIES = ("ISO_A3", "ADM0_A3", "ISO3", "id")
_DEFAULT_NAME_PROPERTIES = ("name", "NAME", "ADMIN", "NAME_EN")


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    name: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ProjectConfig:
        return cls(name=_str(raw.get("name"), "project.name"))


@dataclass(frozen=True, slots=True)
class ApiConfig:
    base_url: str
    catalog_fields: tuple[str, ...]
    detail_fields: tuple[str, ...]
    request_timeout_s: float
    user_agent: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ApiConfig:
        timeout = _float(raw.get("request_timeout_s", 20), "api.request_timeout_s")
        if timeout <= 0:
            raise ValueError("api.request_timeout_s must be > 0")
        return cls(
            base_url=_str(raw.get("base_url"), "api.base_url").rstrip("/"),
            catalog_fields=_str_list(raw.get("catalog_fields"), "api.catalog_fields"),
            detail_fields=_str_list(raw.get("detail_fields"), "api.detail_fields"),
            request_timeout_s=timeout,
            user_agent=_str(raw.get("user_agent"), "api.user_agent"),
        )


@dataclass(frozen=True, slots=True)
class PathsConfig:
    features: str
    storage: Path
    logs_dir: Path
    export_dir: Path

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        return cls(
            features=_source_from_cfg(raw.get("features"), "paths.features", root_dir),
            storage=_path_from_cfg(raw.get("storage"), "paths.storage", root_dir),
            logs_dir=_path_from_cfg(raw.get("logs_dir"), "paths.logs_dir", root_dir),
            export_dir=_path_from_cfg(raw.get("export_dir"), "paths.export_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class StorageConfig:
    slot: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> StorageConfig:
        return cls(slot=_str(raw.get("slot"), "storage.slot"))


@dataclass(frozen=True, slots=True)
class MapConfig:
    identity_properties: tuple[str, ...] = _DEFAULT_IDENTITY_PROPERTIES
    name_properties: tuple[str, ...] = _DEFAULT_NAME_PROPERTIES
    block_list: frozenset[str] = DEFAULT_BLOCK_LIST
    styles: Mapping[RenderState, FeatureStyle] = field(default_factory=lambda: dict(_DEFAULT_STYLES))
    region_viewports: Mapping[str, Viewport] = field(
        default_factory=lambda: dict(_DEFAULT_REGION_VIEWPORTS)
    )
    world_viewport: Viewport = _DEFAULT_WORLD_VIEWPORT

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MapConfig:
        styles = dict(_DEFAULT_STYLES)
        styles_raw = raw.get("styles")
        if styles_raw is not None:
            for state_name, style_raw in _mapping(styles_raw, "map.styles").items():
                try:
                    state = RenderState(str(state_name))
                except ValueError as exc:
                    raise ValueError(f"Unknown render state '{state_name}' in map.styles") from exc
                styles[state] = FeatureStyle.from_mapping(
                    _mapping(style_raw, f"map.styles.{state_name}"), f"map.styles.{state_name}"
                )

        viewports = dict(_DEFAULT_REGION_VIEWPORTS)
        viewports_raw = raw.get("region_viewports")
        if viewports_raw is not None:
            for region, vp_raw in _mapping(viewports_raw, "map.region_viewports").items():
                viewports[_str(region, "map.region_viewports key")] = _viewport(
                    vp_raw, f"map.region_viewports.{region}"
                )

        world_raw = raw.get("world_viewport")
        world = (
            _viewport(world_raw, "map.world_viewport")
            if world_raw is not None
            else _DEFAULT_WORLD_VIEWPORT
        )

        block_raw = raw.get("block_list")
        return cls(
            identity_properties=_str_list(
                raw.get("identity_properties", list(_DEFAULT_IDENTITY_PROPERTIES)),
                "map.identity_properties",
            ),
            name_properties=_str_list(
                raw.get("name_properties", list(_DEFAULT_NAME_PROPERTIES)), "map.name_properties"
            ),
            block_list=(
                normalize_block_list(_str_list(block_raw, "map.block_list"))
                if block_raw is not None
                else DEFAULT_BLOCK_LIST
            ),
            styles=styles,
            region_viewports=viewports,
            world_viewport=world,
        )


def _viewport(value: Any, field_name: str) -> Viewport:
    raw = _mapping(value, field_name)
    center_raw = raw.get("center")
    if not isinstance(center_raw, list) or len(center_raw) != 2:
        raise ValueError(f"Expected [lat, lon] for '{field_name}.center'")
    lat = _float(center_raw[0], f"{field_name}.center[0]")
    lon = _float(center_raw[1], f"{field_name}.center[1]")
    if lat < -90.0 or lat > 90.0 or lon < -180.0 or lon > 180.0:
        raise ValueError(f"'{field_name}.center' is outside valid coordinates")
    zoom = _int(raw.get("zoom"), f"{field_name}.zoom")
    if zoom < 0:
        raise ValueError(f"'{field_name}.zoom' must be >= 0")
    return Viewport((lat, lon), zoom)


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    to_file: bool
    verbose: bool

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LoggingConfig:
        return cls(
            to_file=_bool(raw.get("to_file", False), "logging.to_file"),
            verbose=_bool(raw.get("verbose", False), "logging.verbose"),
        )


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    project: ProjectConfig
    api: ApiConfig
    paths: PathsConfig
    storage: StorageConfig
    map: MapConfig
    logging: LoggingConfig

    @property
    def log_file(self) -> Path | None:
        return self.paths.logs_dir / "worldwander.log" if self.logging.to_file else None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        map_raw = raw.get("map")
        logging_raw = raw.get("logging")
        return cls(
            source_path=source_path.resolve(),
            project=ProjectConfig.from_mapping(_mapping(raw.get("project"), "project")),
            api=ApiConfig.from_mapping(_mapping(raw.get("api"), "api")),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            storage=StorageConfig.from_mapping(_mapping(raw.get("storage"), "storage")),
            map=MapConfig.from_mapping(_mapping(map_raw, "map")) if map_raw is not None else MapConfig(),
            logging=LoggingConfig.from_mapping(_mapping(logging_raw or {}, "logging")),
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
