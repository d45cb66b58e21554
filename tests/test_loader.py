"""Tests for the async resource loader and request supersession."""

import asyncio

import pytest

from worldwander.loader import (
    CATALOG_SLOT,
    LoadState,
    LoadStatus,
    ResourceLoader,
    detail_slot,
)


def _gated(value, gate: asyncio.Event):
    async def _fetch():
        await gate.wait()
        return value

    return _fetch


def _failing(message: str, gate: asyncio.Event | None = None):
    async def _fetch():
        if gate is not None:
            await gate.wait()
        raise RuntimeError(message)

    return _fetch


class TestLoadState:
    """Tests for the tagged load-state variant."""

    def test_initial_state_is_idle(self) -> None:
        loader = ResourceLoader()
        assert loader.state("anything").status is LoadStatus.IDLE

    def test_latest_prefers_loaded_value(self) -> None:
        assert LoadState.loaded(3).latest == 3
        assert LoadState.failed("boom", stale=2).latest == 2
        assert LoadState.loading(stale=1).latest == 1
        assert LoadState.idle().latest is None

    def test_detail_slot_normalizes_code(self) -> None:
        assert detail_slot(" fra") == "detail:FRA"


class TestRequest:
    """Tests for request lifecycle transitions."""

    @pytest.mark.asyncio
    async def test_success_transitions(self) -> None:
        loader = ResourceLoader()
        seen: list[LoadStatus] = []
        loader.subscribe(lambda slot, state: seen.append(state.status))

        async def _fetch():
            return ["FRA"]

        state = await loader.request(CATALOG_SLOT, _fetch)
        assert state.is_loaded
        assert state.value == ["FRA"]
        assert seen == [LoadStatus.LOADING, LoadStatus.LOADED]

    @pytest.mark.asyncio
    async def test_failure_keeps_reason_and_stale_value(self) -> None:
        loader = ResourceLoader()

        async def _ok():
            return "snapshot"

        await loader.request("detail:FRA", _ok)
        state = await loader.request("detail:FRA", _failing("HTTP 503"))
        assert state.is_failed
        assert state.reason == "HTTP 503"
        assert state.latest == "snapshot"
        assert loader.state("detail:FRA") == state

    @pytest.mark.asyncio
    async def test_failed_slot_can_be_retried(self) -> None:
        loader = ResourceLoader()
        await loader.request(CATALOG_SLOT, _failing("offline"))

        async def _ok():
            return [1, 2]

        state = await loader.request(CATALOG_SLOT, _ok)
        assert state.is_loaded
        assert state.value == [1, 2]

    @pytest.mark.asyncio
    async def test_loading_state_visible_while_pending(self) -> None:
        loader = ResourceLoader()
        gate = asyncio.Event()
        task = asyncio.create_task(loader.request("features", _gated("done", gate)))
        await asyncio.sleep(0)
        assert loader.state("features").is_loading
        gate.set()
        assert (await task).value == "done"


class TestSupersession:
    """Tests for discarding stale results of superseded requests."""

    @pytest.mark.asyncio
    async def test_late_first_result_is_discarded(self) -> None:
        loader = ResourceLoader()
        gate_first = asyncio.Event()
        gate_second = asyncio.Event()

        first = asyncio.create_task(loader.request("detail:FRA", _gated("f1", gate_first)))
        await asyncio.sleep(0)
        second = asyncio.create_task(loader.request("detail:FRA", _gated("f2", gate_second)))
        await asyncio.sleep(0)

        gate_second.set()
        await second
        gate_first.set()
        await first

        assert loader.state("detail:FRA").value == "f2"

    @pytest.mark.asyncio
    async def test_early_first_result_is_discarded(self) -> None:
        loader = ResourceLoader()
        gate_first = asyncio.Event()
        gate_second = asyncio.Event()

        first = asyncio.create_task(loader.request("detail:FRA", _gated("f1", gate_first)))
        await asyncio.sleep(0)
        second = asyncio.create_task(loader.request("detail:FRA", _gated("f2", gate_second)))
        await asyncio.sleep(0)

        gate_first.set()
        await first
        assert loader.state("detail:FRA").is_loading

        gate_second.set()
        await second
        assert loader.state("detail:FRA").value == "f2"

    @pytest.mark.asyncio
    async def test_superseded_failure_is_discarded(self) -> None:
        loader = ResourceLoader()
        gate_first = asyncio.Event()

        first = asyncio.create_task(loader.request("catalog", _failing("timeout", gate_first)))
        await asyncio.sleep(0)

        async def _ok():
            return "fresh"

        await loader.request("catalog", _ok)
        gate_first.set()
        await first
        assert loader.state("catalog").value == "fresh"

    @pytest.mark.asyncio
    async def test_slots_are_independent(self) -> None:
        loader = ResourceLoader()
        gate = asyncio.Event()
        slow = asyncio.create_task(loader.request("detail:FRA", _gated("france", gate)))
        await asyncio.sleep(0)

        async def _deu():
            return "germany"

        await loader.request("detail:DEU", _deu)
        gate.set()
        await slow
        assert loader.state("detail:FRA").value == "france"
        assert loader.state("detail:DEU").value == "germany"

    @pytest.mark.asyncio
    async def test_reset_supersedes_in_flight_request(self) -> None:
        loader = ResourceLoader()
        gate = asyncio.Event()
        task = asyncio.create_task(loader.request("features", _gated("late", gate)))
        await asyncio.sleep(0)
        loader.reset("features")
        gate.set()
        await task
        assert loader.state("features").status is LoadStatus.IDLE


class TestEnsure:
    """Tests for fetch-once slots."""

    @pytest.mark.asyncio
    async def test_ensure_fetches_once(self) -> None:
        loader = ResourceLoader()
        calls = 0

        async def _fetch():
            nonlocal calls
            calls += 1
            return calls

        await loader.ensure("catalog", _fetch)
        state = await loader.ensure("catalog", _fetch)
        assert calls == 1
        assert state.value == 1

    @pytest.mark.asyncio
    async def test_ensure_retries_after_failure(self) -> None:
        loader = ResourceLoader()
        await loader.ensure("catalog", _failing("down"))

        async def _ok():
            return "up"

        assert (await loader.ensure("catalog", _ok)).value == "up"

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self) -> None:
        loader = ResourceLoader()
        gate = asyncio.Event()
        task = asyncio.create_task(loader.request("catalog", _gated("never", gate)))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert not loader.state("catalog").is_failed
