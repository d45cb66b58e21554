"""Canonical ISO alpha-3 identity for countries and map features."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

_LOGGER = logging.getLogger("worldwander.identity")

# Placeholder codes emitted by geometry datasets for territories without an ISO code.
SENTINEL_CODES = frozenset({"-99", "N/A", "NAN", "NUL", "NONE", "XXX"})

# Valid codes excluded from map interaction (no counterpart in the country catalog).
DEFAULT_BLOCK_LIST = frozenset({"ATA", "ATF"})

IDENTITY_FIELDS = ("code", "cca3", "alpha3Code", "ISO_A3", "ADM0_A3", "id")


class InvalidIdentity(ValueError):
    """Raised when a raw value cannot be mapped to a canonical alpha-3 code."""

    def __init__(self, raw: Any, reason: str) -> None:
        super().__init__(f"Invalid country code {raw!r}: {reason}")
        self.raw = raw
        self.reason = reason


def _extract_raw(raw: Any) -> Any:
    if isinstance(raw, str) or raw is None:
        return raw
    if isinstance(raw, Mapping):
        for field_name in IDENTITY_FIELDS:
            value = raw.get(field_name)
            if value is not None:
                return value
        return None
    code = getattr(raw, "code", None)
    if code is not None:
        return code
    return raw


def _clean(raw: Any, expected_lengths: tuple[int, ...]) -> str:
    value = _extract_raw(raw)
    if value is None:
        raise InvalidIdentity(raw, "missing")
    if not isinstance(value, str):
        raise InvalidIdentity(raw, f"expected string, got {type(value).__name__}")
    normalized = value.strip().upper()
    if normalized in SENTINEL_CODES:
        raise InvalidIdentity(raw, "placeholder code")
    if len(normalized) not in expected_lengths:
        raise InvalidIdentity(raw, f"expected length {' or '.join(map(str, expected_lengths))}")
    if not normalized.isascii() or not normalized.isalnum():
        raise InvalidIdentity(raw, "expected alphanumeric characters")
    return normalized


def normalize(raw: Any) -> str:
    """Return the canonical alpha-3 key for a code, country object or record.

    Display names are never accepted as identity.
    """
    return _clean(raw, (3,))


def try_normalize(raw: Any) -> str | None:
    try:
        return normalize(raw)
    except InvalidIdentity as exc:
        _LOGGER.debug("Skipping unnormalizable identity: %s", exc)
        return None


def normalize_lookup_code(raw: Any) -> str:
    """Normalize a detail-lookup code, which may also be an alpha-2 code."""
    return _clean(raw, (2, 3))


def normalize_block_list(codes: Iterable[str]) -> frozenset[str]:
    out: set[str] = set()
    for code in codes:
        if not isinstance(code, str) or not code.strip():
            raise ValueError(f"Invalid block-list entry: {code!r}")
        out.add(code.strip().upper())
    return frozenset(out)


def is_blocked(key: str | None, block_list: frozenset[str] = DEFAULT_BLOCK_LIST) -> bool:
    """True when a key is missing or excluded from interaction."""
    return key is None or key in block_list or key in SENTINEL_CODES
