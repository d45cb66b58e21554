"""Offline validation of config, persisted bucket list and map features."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from .client import FetchFailed
from .config import AppConfig
from .features import FeatureRepository
from .identity import is_blocked
from .selection import SelectionStore
from .storage import JsonFileStorage


@dataclass(slots=True)
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


class Validator:
    """Checks local inputs without touching the remote country service."""

    def __init__(self, cfg: AppConfig, *, feature_repository: FeatureRepository | None = None) -> None:
        self.cfg = cfg
        self.features = feature_repository or FeatureRepository(
            cfg.paths.features,
            cfg.map,
            timeout_s=cfg.api.request_timeout_s,
        )

    def run(self, *, strict: bool = False) -> ValidationReport:
        report = ValidationReport()
        self._validate_storage(report)
        self._validate_features(report, strict=strict)
        return report

    def _validate_storage(self, report: ValidationReport) -> None:
        storage = JsonFileStorage(self.cfg.paths.storage)
        if not self.cfg.paths.storage.exists():
            report.add_info(f"No storage file yet at {self.cfg.paths.storage}; bucket list starts empty")
            return
        store = SelectionStore(storage, slot=self.cfg.storage.slot)
        if store.diagnostic:
            report.add_warning(
                f"Bucket list slot '{self.cfg.storage.slot}' unreadable, "
                f"it will be replaced on the next change: {store.diagnostic}"
            )
        else:
            report.add_info(f"Bucket list slot '{self.cfg.storage.slot}' holds {len(store)} countries")

    def _validate_features(self, report: ValidationReport, *, strict: bool) -> None:
        try:
            features = self.features.load()
        except FetchFailed as exc:
            self._add_quality_issue(report, f"Map features unavailable: {exc.reason}", strict=strict)
            return
        except RuntimeError as exc:
            report.add_error(str(exc))
            return

        if not features:
            self._add_quality_issue(report, "Feature collection is empty", strict=strict)
            return

        unresolved = sorted({str(f.identity) for f in features if f.key is None})
        blocked = sorted(
            {f.key for f in features if f.key is not None and is_blocked(f.key, self.cfg.map.block_list)}
        )
        counts = Counter(f.key for f in features if f.key is not None)
        multi = sorted(f"{key}({count})" for key, count in counts.items() if count > 1)

        report.add_info(
            "Feature summary: "
            f"features={len(features)}, "
            f"interactive_codes={len(counts) - len(blocked)}, "
            f"unresolved={sum(1 for f in features if f.key is None)}, "
            f"blocked={len(blocked)}"
        )
        if unresolved:
            report.add_warning(
                "Features without a usable alpha-3 identity (render neutrally): "
                f"{_format_code_list(unresolved)}"
            )
        if blocked:
            report.add_info(f"Block-listed feature codes: {_format_code_list(blocked)}")
        if multi:
            report.add_warning(
                f"Codes with several feature rows (all highlight together): {_format_code_list(multi)}"
            )

    @staticmethod
    def _add_quality_issue(report: ValidationReport, msg: str, *, strict: bool) -> None:
        if strict:
            report.add_error(msg)
        else:
            report.add_warning(msg)


def _format_code_list(values: list[str], limit: int = 12) -> str:
    if len(values) <= limit:
        return ", ".join(values)
    shown = ", ".join(values[:limit])
    return f"{shown}, ... (+{len(values) - limit} more)"


def format_report_lines(report: ValidationReport) -> Iterable[str]:
    for info in report.infos:
        yield f"[INFO] {info}"
    for warning in report.warnings:
        yield f"[WARN] {warning}"
    for error in report.errors:
        yield f"[ERROR] {error}"
    if report.ok:
        yield "[OK] Validation completed with no errors."
