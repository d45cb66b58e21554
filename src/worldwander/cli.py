"""CLI entrypoint for worldwander."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

from .app import WorldWanderApp
from .catalog import (
    catalog_stats,
    filter_countries,
    format_population,
    index_by_code,
    region_summaries,
)
from .config import AppConfig, load_config
from .identity import InvalidIdentity, normalize
from .loader import LoadState
from .models import Country, sort_countries
from .util import ensure_directories, setup_logging, write_json
from .validate import Validator, format_report_lines

LOGGER = logging.getLogger("worldwander.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="worldwander",
        description="Browse countries and keep a travel bucket list.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    countries_p = subparsers.add_parser("countries", help="List catalog countries.")
    add_common(countries_p)
    countries_p.add_argument("--search", default=None, help="Case-insensitive name filter.")
    countries_p.add_argument("--region", default=None, help="Exact region filter.")

    regions_p = subparsers.add_parser("regions", help="Summarize regions and bucket list coverage.")
    add_common(regions_p)

    show_p = subparsers.add_parser("show", help="Show one country's details.")
    add_common(show_p)
    show_p.add_argument("code", help="ISO alpha-3 (or alpha-2) code.")

    for name, help_text in (
        ("add", "Add a country to the bucket list."),
        ("toggle", "Add or remove a country depending on current membership."),
    ):
        p = subparsers.add_parser(name, help=help_text)
        add_common(p)
        p.add_argument("code", help="ISO alpha-3 (or alpha-2) code.")

    remove_p = subparsers.add_parser("remove", help="Remove a country from the bucket list.")
    add_common(remove_p)
    remove_p.add_argument("code", help="ISO alpha-3 code.")

    list_p = subparsers.add_parser("bucket-list", help="Show the saved bucket list.")
    add_common(list_p)

    map_p = subparsers.add_parser(
        "map",
        help="Correlate map features with the bucket list and export styled GeoJSON.",
    )
    add_common(map_p)
    map_p.add_argument("--output", default=None, help="Output GeoJSON path.")
    map_p.add_argument(
        "--hover",
        action="append",
        default=[],
        help="Alpha-3 code to render as hovered. Can be repeated.",
    )
    map_p.add_argument("--region", default=None, help="Report the viewport for this region.")

    validate_p = subparsers.add_parser("validate", help="Validate config, storage and map features.")
    add_common(validate_p)
    validate_p.add_argument(
        "--strict",
        action="store_true",
        help="Treat missing or empty feature data as validation errors.",
    )
    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(Path(args.config))
    setup_logging(cfg.log_file, verbose=bool(args.verbose) or cfg.logging.verbose)
    return cfg


def _log_failure(what: str, state: LoadState) -> int:
    LOGGER.error("[ERROR] Failed loading %s: %s", what, state.reason)
    return 1


def _country_lines(country: Country) -> list[str]:
    return [
        f"{country.display_name} ({country.code})",
        f"  Capital:    {country.capital or 'Unknown'}",
        f"  Population: {format_population(country.population)}",
        f"  Region:     {country.region}",
        f"  Subregion:  {country.subregion or '-'}",
        f"  Languages:  {', '.join(country.languages) or '-'}",
        f"  Currencies: {', '.join(country.currencies) or '-'}",
        f"  Flag:       {country.flag_url}",
    ]


async def _run_countries(app: WorldWanderApp, *, search: str | None, region: str | None) -> int:
    state = await app.load_catalog()
    if not state.is_loaded:
        return _log_failure("country catalog", state)
    catalog = state.value or []
    shown = filter_countries(sort_countries(catalog), search=search, region=region)
    for country in shown:
        marker = "*" if app.selection.contains(country.code) else " "
        LOGGER.info("%s %s  %-40s %s", marker, country.code, country.display_name, country.region)
    LOGGER.info(catalog_stats(len(shown), len(catalog), len(app.selection)))
    return 0


async def _run_regions(app: WorldWanderApp) -> int:
    state = await app.load_catalog()
    if not state.is_loaded:
        return _log_failure("country catalog", state)
    for summary in region_summaries(state.value or [], app.selection):
        LOGGER.info(
            "%-12s countries=%d in_bucket_list=%d",
            summary.region,
            summary.total,
            summary.in_bucket_list,
        )
    return 0


async def _run_show(app: WorldWanderApp, code: str) -> int:
    state = await app.open_detail(code)
    if not state.is_loaded or state.value is None:
        return _log_failure(f"country {code}", state)
    for line in _country_lines(state.value):
        LOGGER.info(line)
    in_list = app.selection.contains(state.value.code)
    LOGGER.info("  Bucket list: %s", "yes" if in_list else "no")
    return 0


async def _run_add(app: WorldWanderApp, code: str, *, toggle: bool) -> int:
    state = await app.open_detail(code)
    if not state.is_loaded or state.value is None:
        return _log_failure(f"country {code}", state)
    country = state.value
    if toggle:
        now_selected = app.toggle_current()
        LOGGER.info(
            "%s %s (%s)",
            "Added" if now_selected else "Removed",
            country.display_name,
            country.code,
        )
        return 0
    if app.selection.add(country):
        LOGGER.info("Added %s (%s) to the bucket list", country.display_name, country.code)
    else:
        LOGGER.info("%s (%s) is already in the bucket list", country.display_name, country.code)
    return 0


def _run_remove(app: WorldWanderApp, code: str) -> int:
    try:
        key = normalize(code)
    except InvalidIdentity as exc:
        LOGGER.error("[ERROR] %s", exc)
        return 1
    if app.selection.remove(key):
        LOGGER.info("Removed %s from the bucket list", key)
    else:
        LOGGER.info("%s is not in the bucket list", key)
    return 0


def _run_bucket_list(app: WorldWanderApp) -> int:
    entries = sort_countries(app.selection.list())
    if app.selection.diagnostic:
        LOGGER.warning("[WARN] Saved bucket list was unreadable: %s", app.selection.diagnostic)
    if not entries:
        LOGGER.info("Your bucket list is empty.")
        return 0
    for country in entries:
        LOGGER.info(
            "%s  %-40s capital=%s region=%s population=%s",
            country.code,
            country.display_name,
            country.capital or "Unknown",
            country.region,
            format_population(country.population),
        )
    LOGGER.info("%d countries in your bucket list", len(entries))
    return 0


async def _run_map(
    app: WorldWanderApp,
    *,
    output: Path,
    hover: Sequence[str],
    region: str | None,
) -> int:
    catalog_state = await app.load_catalog()
    if catalog_state.is_failed:
        LOGGER.warning(
            "[WARN] Catalog unavailable (%s); features are matched without a code allowlist",
            catalog_state.reason,
        )
    features_state = await app.load_features()
    if not features_state.is_loaded:
        return _log_failure("map features", features_state)

    countries = index_by_code(app.catalog())
    for code in hover:
        for feature in app.engine.features_for(normalize(code)):
            state = app.engine.on_hover_enter(feature)
            tip = app.engine.tooltip(feature, countries)
            LOGGER.info(
                "Hover %s [%s]: capital=%s population=%s (%s)",
                tip.name,
                state.value,
                tip.capital or "Unknown",
                tip.population or "-",
                tip.hint,
            )

    counts: dict[str, int] = {}
    for item in app.engine.render():
        counts[item.state.value] = counts.get(item.state.value, 0) + 1
    LOGGER.info(
        "Render states: %s",
        ", ".join(f"{name}={count}" for name, count in sorted(counts.items())),
    )

    missing = sorted(key for key in app.selection.keys() if not app.engine.features_for(key))
    if missing:
        LOGGER.warning("[WARN] Bucket list codes without a map feature: %s", ", ".join(missing))

    markers = app.engine.bucket_markers(app.catalog() or list(app.selection.list()))
    for marker in markers:
        LOGGER.info("Marker %s %s at (%.2f, %.2f)", marker.code, marker.name, marker.lat, marker.lon)

    viewport = app.engine.viewport_for_region(region)
    LOGGER.info("Viewport: center=%s zoom=%d", viewport.center, viewport.zoom)

    payload = app.engine.to_geojson()
    payload["bucket_list"] = sorted(app.selection.keys())
    payload["viewport"] = {"center": list(viewport.center), "zoom": viewport.zoom}
    write_json(output, payload)
    LOGGER.info("Styled map written to %s", output)
    return 0


def _run_validate(cfg: AppConfig, *, strict: bool) -> int:
    report = Validator(cfg).run(strict=strict)
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "validate":
        return _run_validate(cfg, strict=bool(args.strict))

    ensure_directories([cfg.paths.storage.parent])
    app = WorldWanderApp(cfg)
    try:
        if command == "countries":
            return asyncio.run(_run_countries(app, search=args.search, region=args.region))
        if command == "regions":
            return asyncio.run(_run_regions(app))
        if command == "show":
            return asyncio.run(_run_show(app, str(args.code)))
        if command == "add":
            return asyncio.run(_run_add(app, str(args.code), toggle=False))
        if command == "toggle":
            return asyncio.run(_run_add(app, str(args.code), toggle=True))
        if command == "remove":
            return _run_remove(app, str(args.code))
        if command == "bucket-list":
            return _run_bucket_list(app)
        if command == "map":
            output = Path(args.output) if args.output else cfg.paths.export_dir / "map.geojson"
            return asyncio.run(
                _run_map(
                    app,
                    output=output,
                    hover=[str(item) for item in args.hover],
                    region=args.region,
                )
            )
    except InvalidIdentity as exc:
        LOGGER.error("[ERROR] %s", exc)
        return 1
    finally:
        app.close()
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
