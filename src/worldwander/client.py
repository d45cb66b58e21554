"""REST Countries HTTP client for the catalog and country detail lookups."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

import requests

from .config import ApiConfig
from .identity import normalize_lookup_code
from .models import Country

_LOGGER = logging.getLogger("worldwander.client")


class FetchFailed(RuntimeError):
    """Network, non-2xx or parse failure while fetching a remote resource."""

    def __init__(self, resource: str, reason: str) -> None:
        super().__init__(f"{resource}: {reason}")
        self.resource = resource
        self.reason = reason


class RestCountriesClient:
    """Blocking lookups against the REST Countries API.

    No retries happen here; callers issue a new request to retry.
    """

    def __init__(self, cfg: ApiConfig, session: requests.Session | None = None) -> None:
        self.cfg = cfg
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": cfg.user_agent})

    def fetch_catalog(self, fields: Sequence[str] | None = None) -> list[Country]:
        payload = self._get_json(
            "catalog",
            f"{self.cfg.base_url}/all",
            fields=fields if fields is not None else self.cfg.catalog_fields,
        )
        if not isinstance(payload, list):
            raise FetchFailed("catalog", f"expected JSON array, got {type(payload).__name__}")

        countries: list[Country] = []
        seen: set[str] = set()
        skipped = 0
        for idx, record in enumerate(payload):
            if not isinstance(record, dict):
                skipped += 1
                continue
            try:
                country = Country.from_api(record)
            except ValueError as exc:
                skipped += 1
                _LOGGER.debug("Skipping catalog record %d: %s", idx, exc)
                continue
            if country.code in seen:
                _LOGGER.warning("Duplicate catalog code %s; keeping first record", country.code)
                continue
            seen.add(country.code)
            countries.append(country)
        if skipped:
            _LOGGER.info("Skipped %d catalog records without a usable code or fields", skipped)
        return countries

    def fetch_detail(self, code: str) -> Country:
        lookup = normalize_lookup_code(code)
        resource = f"detail:{lookup}"
        payload = self._get_json(
            resource,
            f"{self.cfg.base_url}/alpha/{lookup}",
            fields=self.cfg.detail_fields,
        )
        # The provider answers with either an object or a one-element array.
        if isinstance(payload, list):
            if len(payload) != 1:
                raise FetchFailed(resource, f"expected one record, got {len(payload)}")
            payload = payload[0]
        if not isinstance(payload, dict):
            raise FetchFailed(resource, "expected a JSON object")
        try:
            return Country.from_api(payload)
        except ValueError as exc:
            raise FetchFailed(resource, f"malformed record: {exc}") from exc

    def catalog_fetcher(self) -> Callable[[], Awaitable[list[Country]]]:
        async def _fetch() -> list[Country]:
            return await asyncio.to_thread(self.fetch_catalog)

        return _fetch

    def detail_fetcher(self, code: str) -> Callable[[], Awaitable[Country]]:
        async def _fetch() -> Country:
            return await asyncio.to_thread(self.fetch_detail, code)

        return _fetch

    def _get_json(self, resource: str, url: str, *, fields: Sequence[str]) -> Any:
        params = {"fields": ",".join(fields)} if fields else None
        _LOGGER.debug("GET %s params=%s", url, params)
        try:
            response = self._session.get(url, params=params, timeout=self.cfg.request_timeout_s)
        except requests.RequestException as exc:
            raise FetchFailed(resource, f"request failed: {exc}") from exc
        try:
            if response.status_code == 404:
                raise FetchFailed(resource, "not found (404)")
            if not response.ok:
                raise FetchFailed(resource, f"HTTP {response.status_code}")
            try:
                return response.json()
            except ValueError as exc:
                raise FetchFailed(resource, f"invalid JSON: {exc}") from exc
        finally:
            response.close()
