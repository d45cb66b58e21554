"""Session wiring: loader slots, REST client, bucket list and map engine."""

from __future__ import annotations

import logging
from typing import Any

from .client import RestCountriesClient
from .config import AppConfig
from .correlation import MapCorrelationEngine, Navigate
from .features import FeatureRepository
from .identity import normalize_lookup_code
from .loader import CATALOG_SLOT, FEATURES_SLOT, LoadState, ResourceLoader, detail_slot
from .models import Country
from .selection import SelectionStore
from .storage import JsonFileStorage, SlotStorage

_LOGGER = logging.getLogger("worldwander.app")


class WorldWanderApp:
    """One browsing session.

    Catalog and features are loaded once per session; a country's detail is
    re-requested whenever the requested code changes.
    """

    def __init__(
        self,
        cfg: AppConfig,
        *,
        client: RestCountriesClient | None = None,
        storage: SlotStorage | None = None,
        feature_repository: FeatureRepository | None = None,
        navigate: Navigate | None = None,
    ) -> None:
        self.cfg = cfg
        self.client = client or RestCountriesClient(cfg.api)
        self.loader = ResourceLoader()
        self.selection = SelectionStore(
            storage if storage is not None else JsonFileStorage(cfg.paths.storage),
            slot=cfg.storage.slot,
        )
        self.features = feature_repository or FeatureRepository(
            cfg.paths.features,
            cfg.map,
            timeout_s=cfg.api.request_timeout_s,
        )
        self.engine = MapCorrelationEngine(self.selection, cfg.map, navigate=navigate)
        self._current_detail_slot: str | None = None

    async def load_catalog(self, *, reload: bool = False) -> LoadState[list[Country]]:
        fetcher = self.client.catalog_fetcher()
        if reload:
            return await self.loader.request(CATALOG_SLOT, fetcher)
        return await self.loader.ensure(CATALOG_SLOT, fetcher)

    def catalog(self) -> list[Country]:
        return self.loader.state(CATALOG_SLOT).latest or []

    async def load_features(self, *, reload: bool = False) -> LoadState[Any]:
        allowlist = {country.code for country in self.catalog()} or None
        fetcher = self.features.fetcher(iso_allowlist=allowlist)
        state = (
            await self.loader.request(FEATURES_SLOT, fetcher)
            if reload
            else await self.loader.ensure(FEATURES_SLOT, fetcher)
        )
        if state.is_loaded:
            self.engine.set_features(state.value or [])
        return state

    async def open_detail(self, raw_code: str) -> LoadState[Country]:
        """Request the detail record for a code and make it the current detail."""
        lookup = normalize_lookup_code(raw_code)
        slot = detail_slot(lookup)
        self._current_detail_slot = slot
        state = await self.loader.request(slot, self.client.detail_fetcher(lookup))
        if state.is_failed:
            _LOGGER.warning("Detail for %s failed: %s", lookup, state.reason)
        return state

    def current_detail(self) -> LoadState[Country]:
        if self._current_detail_slot is None:
            return LoadState.idle()
        return self.loader.state(self._current_detail_slot)

    def toggle_current(self) -> bool | None:
        """Toggle the displayed country; None when no detail snapshot is available."""
        country = self.current_detail().latest
        if country is None:
            return None
        return self.engine.toggle(country)

    def close(self) -> None:
        self.engine.close()
