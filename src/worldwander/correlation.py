"""Per-feature render state derived from map features and the bucket list."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Sequence

from .catalog import format_population
from .config import MapConfig
from .identity import is_blocked
from .models import Country, Feature, FeatureStyle, NavigationIntent, RenderState, Viewport
from .selection import SelectionChange, SelectionStore

_LOGGER = logging.getLogger("worldwander.correlation")

Navigate = Callable[[str], None]
FeaturesChanged = Callable[[tuple[int, ...]], None]


@dataclass(frozen=True, slots=True)
class FeatureRender:
    feature: Feature
    state: RenderState
    style: FeatureStyle


@dataclass(frozen=True, slots=True)
class Tooltip:
    name: str
    flag_url: str | None
    capital: str | None
    population: str | None
    hint: str = "Click to view details"


@dataclass(frozen=True, slots=True)
class BucketMarker:
    code: str
    name: str
    lat: float
    lon: float


class MapCorrelationEngine:
    """Combines the feature collection with the Selection Store.

    The selected axis of a feature's state is read from the store's O(1)
    membership test on every query; only the hovered axis is held here.
    Clicking a feature yields a navigation intent and never changes the
    selection.
    """

    def __init__(
        self,
        selection: SelectionStore,
        cfg: MapConfig | None = None,
        *,
        navigate: Navigate | None = None,
    ) -> None:
        self.selection = selection
        self.cfg = cfg or MapConfig()
        self._navigate = navigate
        self._features: tuple[Feature, ...] = ()
        self._by_key: dict[str, list[Feature]] = {}
        self._hovered: set[int] = set()
        self._listeners: list[FeaturesChanged] = []
        self._unsubscribe = selection.subscribe(self._on_selection_change)

    @property
    def features(self) -> tuple[Feature, ...]:
        return self._features

    def set_features(self, features: Iterable[Feature]) -> None:
        self._features = tuple(features)
        self._hovered.clear()
        self._by_key = {}
        interactive = 0
        for feature in self._features:
            if self.is_interactive(feature):
                self._by_key.setdefault(feature.key, []).append(feature)  # type: ignore[arg-type]
                interactive += 1
        _LOGGER.debug("Indexed %d interactive features out of %d", interactive, len(self._features))

    def features_for(self, key: str) -> tuple[Feature, ...]:
        return tuple(self._by_key.get(key, ()))

    def is_interactive(self, feature: Feature) -> bool:
        return not is_blocked(feature.key, self.cfg.block_list)

    def state_of(self, feature: Feature) -> RenderState:
        if not self.is_interactive(feature):
            return RenderState.DEFAULT
        return RenderState.compose(
            selected=self.selection.contains(feature.key),
            hovered=feature.index in self._hovered,
        )

    def style_of(self, feature: Feature) -> FeatureStyle:
        return self.cfg.styles[self.state_of(feature)]

    def on_hover_enter(self, feature: Feature) -> RenderState:
        if self.is_interactive(feature) and feature.index not in self._hovered:
            self._hovered.add(feature.index)
            self._emit((feature.index,))
        return self.state_of(feature)

    def on_hover_leave(self, feature: Feature) -> RenderState:
        if feature.index in self._hovered:
            self._hovered.discard(feature.index)
            self._emit((feature.index,))
        return self.state_of(feature)

    def on_click(self, feature: Feature) -> NavigationIntent | None:
        if not self.is_interactive(feature):
            _LOGGER.debug("Ignoring click on non-interactive feature %r (%s)", feature.name, feature.identity)
            return None
        intent = NavigationIntent(code=feature.key)  # type: ignore[arg-type]
        if self._navigate is not None:
            self._navigate(intent.code)
        return intent

    def toggle(self, country: Country) -> bool:
        """Flip bucket-list membership of a country; returns the new membership."""
        if self.selection.contains(country.code):
            self.selection.remove(country.code)
            return False
        self.selection.add(country)
        return True

    def render(self) -> list[FeatureRender]:
        out: list[FeatureRender] = []
        for feature in self._features:
            state = self.state_of(feature)
            out.append(FeatureRender(feature=feature, state=state, style=self.cfg.styles[state]))
        return out

    def to_geojson(self) -> dict[str, Any]:
        """Styled FeatureCollection for any GeoJSON-capable map renderer."""
        features: list[dict[str, Any]] = []
        for item in self.render():
            properties = dict(item.feature.properties)
            properties.update(
                {
                    "code": item.feature.key,
                    "name": item.feature.name,
                    "interactive": self.is_interactive(item.feature),
                    "render_state": item.state.value,
                    "style": item.style.to_dict(),
                }
            )
            features.append(
                {"type": "Feature", "geometry": item.feature.geometry, "properties": properties}
            )
        return {"type": "FeatureCollection", "features": features}

    def tooltip(self, feature: Feature, countries: Mapping[str, Country]) -> Tooltip:
        country = countries.get(feature.key) if feature.key else None
        if country is None:
            return Tooltip(name=feature.name, flag_url=None, capital=None, population=None)
        return Tooltip(
            name=country.display_name,
            flag_url=country.flag_url,
            capital=country.capital,
            population=format_population(country.population),
        )

    def bucket_markers(self, countries: Sequence[Country]) -> list[BucketMarker]:
        """Point markers for bucket-list countries that have coordinates."""
        markers: list[BucketMarker] = []
        for country in countries:
            if country.coordinates is None or not self.selection.contains(country.code):
                continue
            lat, lon = country.coordinates
            markers.append(BucketMarker(code=country.code, name=country.display_name, lat=lat, lon=lon))
        return markers

    def viewport_for_region(self, region: str | None) -> Viewport:
        if not region:
            return self.cfg.world_viewport
        return self.cfg.region_viewports.get(region, self.cfg.world_viewport)

    def subscribe(self, listener: FeaturesChanged) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def close(self) -> None:
        self._unsubscribe()
        self._listeners.clear()

    def _on_selection_change(self, change: SelectionChange) -> None:
        affected = tuple(feature.index for feature in self._by_key.get(change.key, ()))
        if affected:
            self._emit(affected)

    def _emit(self, indices: tuple[int, ...]) -> None:
        for listener in list(self._listeners):
            listener(indices)
