"""Async fetch-with-lifecycle slots with request supersession."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

from .identity import normalize_lookup_code

T = TypeVar("T")

CATALOG_SLOT = "catalog"
FEATURES_SLOT = "features"

_LOGGER = logging.getLogger("worldwander.loader")


def detail_slot(code: str) -> str:
    return f"detail:{normalize_lookup_code(code)}"


class LoadStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class LoadState(Generic[T]):
    """Exactly one of Idle, Loading, Loaded(value) or Failed(reason).

    `stale` keeps the last loaded value while a refresh is loading or after it
    failed, so a displayed snapshot is never cleared by a failed refresh.
    """

    status: LoadStatus
    value: T | None = None
    reason: str | None = None
    stale: T | None = None

    @classmethod
    def idle(cls) -> LoadState[T]:
        return cls(LoadStatus.IDLE)

    @classmethod
    def loading(cls, stale: T | None = None) -> LoadState[T]:
        return cls(LoadStatus.LOADING, stale=stale)

    @classmethod
    def loaded(cls, value: T) -> LoadState[T]:
        return cls(LoadStatus.LOADED, value=value)

    @classmethod
    def failed(cls, reason: str, stale: T | None = None) -> LoadState[T]:
        return cls(LoadStatus.FAILED, reason=reason, stale=stale)

    @property
    def latest(self) -> T | None:
        """Value to display: the loaded value, else the last known one."""
        return self.value if self.status is LoadStatus.LOADED else self.stale

    @property
    def is_loading(self) -> bool:
        return self.status is LoadStatus.LOADING

    @property
    def is_loaded(self) -> bool:
        return self.status is LoadStatus.LOADED

    @property
    def is_failed(self) -> bool:
        return self.status is LoadStatus.FAILED


StateListener = Callable[[str, LoadState[Any]], None]


class ResourceLoader:
    """Holds one `LoadState` per slot key.

    A per-slot sequence number is taken when a request is dispatched and
    compared when it resolves; results of superseded requests are dropped.
    There is no abort of the underlying fetch.
    """

    def __init__(self) -> None:
        self._states: dict[str, LoadState[Any]] = {}
        self._sequence: dict[str, int] = {}
        self._listeners: list[StateListener] = []

    def state(self, slot: str) -> LoadState[Any]:
        return self._states.get(slot, LoadState.idle())

    def slots(self) -> dict[str, LoadState[Any]]:
        return dict(self._states)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def request(self, slot: str, fetcher: Callable[[], Awaitable[T]]) -> LoadState[T]:
        seq = self._sequence.get(slot, 0) + 1
        self._sequence[slot] = seq
        stale = self.state(slot).latest
        self._transition(slot, LoadState.loading(stale))

        try:
            value = await fetcher()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not self._is_current(slot, seq):
                _LOGGER.debug("Dropping superseded failure for slot '%s' (seq %d): %s", slot, seq, exc)
                return self.state(slot)
            _LOGGER.warning("Load failed for slot '%s': %s", slot, exc)
            return self._transition(slot, LoadState.failed(str(exc) or type(exc).__name__, stale))

        if not self._is_current(slot, seq):
            _LOGGER.debug("Dropping superseded result for slot '%s' (seq %d)", slot, seq)
            return self.state(slot)
        return self._transition(slot, LoadState.loaded(value))

    async def ensure(self, slot: str, fetcher: Callable[[], Awaitable[T]]) -> LoadState[T]:
        """Request a slot unless it already holds a loaded value."""
        current = self.state(slot)
        if current.is_loaded:
            return current
        return await self.request(slot, fetcher)

    def reset(self, slot: str) -> None:
        """Return a slot to Idle; any in-flight request for it is superseded."""
        self._sequence[slot] = self._sequence.get(slot, 0) + 1
        self._transition(slot, LoadState.idle())

    def _is_current(self, slot: str, seq: int) -> bool:
        return self._sequence.get(slot) == seq

    def _transition(self, slot: str, state: LoadState[T]) -> LoadState[T]:
        self._states[slot] = state
        for listener in list(self._listeners):
            listener(slot, state)
        return state
