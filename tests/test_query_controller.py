"""
Tests for QueryController.

Connectors are scripted per query text and can be held on an asyncio.Event,
so tests decide exactly which run finishes first.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from conftest import make_candidate

from imagify.application.search.aggregator import Aggregator
from imagify.application.search.controller import QueryController, SearchState, SearchStatus
from imagify.domain.entities import Candidate, ImageSource
from imagify.shared.exceptions import AllSourcesFailedError, ImagifyError, InvalidParameterError, NetworkError


class ScriptedConnector:
    """Answers each query text with a pre-registered outcome."""

    def __init__(self, source: ImageSource = ImageSource.WIKIMEDIA):
        self.source = source
        self._script: dict[str, tuple[asyncio.Event | None, list[Candidate], Exception | None]] = {}
        self.calls: list[str] = []

    def on(
        self,
        query: str,
        candidates: list[Candidate] | None = None,
        *,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self._script[query] = (gate, list(candidates or []), error)

    async def fetch(self, query_text: str) -> list[Candidate]:
        self.calls.append(query_text)
        gate, candidates, error = self._script.get(query_text, (None, [], None))
        if gate is not None:
            await gate.wait()
        if error is not None:
            raise error
        return candidates


def _ids(state: SearchState) -> list[str]:
    return [r.id for r in state.results]


@pytest.fixture
def connector():
    return ScriptedConnector()


@pytest.fixture
def controller(connector):
    return QueryController(Aggregator([connector]))


@pytest.fixture
def paris():
    return make_candidate(id="wm_paris", title="Paris", image_url="https://x.org/paris.jpg")


@pytest.fixture
def rome():
    return make_candidate(id="wm_rome", title="Rome", image_url="https://x.org/rome.jpg")


# ============================================================================
# Basic lifecycle
# ============================================================================


class TestLifecycle:
    async def test_starts_idle(self, controller):
        assert controller.state.status is SearchStatus.IDLE
        assert controller.generation == 0
        assert controller.state.results == ()

    async def test_query_runs_and_settles(self, controller, connector, paris):
        connector.on("Paris", [paris])
        task = controller.on_query_change("Paris")

        assert controller.state.status is SearchStatus.RUNNING
        assert controller.state.loading is True

        await task
        state = controller.state
        assert state.status is SearchStatus.SETTLED
        assert state.generation == 1
        assert state.query == "Paris"
        assert _ids(state) == ["wm_paris"]
        assert state.error is None
        assert state.loading is False

    async def test_listener_sees_every_transition(self, controller, connector, paris):
        connector.on("Paris", [paris])
        seen: list[SearchState] = []
        controller.subscribe(seen.append)

        await controller.on_query_change("Paris")

        assert [s.status for s in seen] == [SearchStatus.RUNNING, SearchStatus.SETTLED]

    async def test_unsubscribe(self, controller, connector):
        seen: list[SearchState] = []
        unsubscribe = controller.subscribe(seen.append)
        unsubscribe()
        unsubscribe()  # second call is a no-op
        await controller.on_query_change("Paris")
        assert seen == []

    async def test_previous_results_visible_while_running(self, controller, connector, paris, rome):
        connector.on("Paris", [paris])
        gate = asyncio.Event()
        connector.on("Rome", [rome], gate=gate)

        await controller.on_query_change("Paris")
        task = controller.on_query_change("Rome")

        assert controller.state.status is SearchStatus.RUNNING
        assert _ids(controller.state) == ["wm_paris"]

        gate.set()
        await task
        assert _ids(controller.state) == ["wm_rome"]


# ============================================================================
# Stale runs
# ============================================================================


class TestStaleRuns:
    async def test_stale_result_dropped(self, controller, connector, paris, rome):
        paris_gate = asyncio.Event()
        connector.on("Paris", [paris], gate=paris_gate)
        connector.on("Rome", [rome])

        first = controller.on_query_change("Paris")
        second = controller.on_query_change("Rome")

        await second
        assert _ids(controller.state) == ["wm_rome"]

        # The superseded run completes afterwards and must not overwrite
        paris_gate.set()
        await first
        state = controller.state
        assert state.generation == 2
        assert state.query == "Rome"
        assert _ids(state) == ["wm_rome"]

    async def test_stale_error_dropped(self, controller, connector, rome):
        paris_gate = asyncio.Event()
        connector.on("Paris", error=NetworkError("down"), gate=paris_gate)
        connector.on("Rome", [rome])

        first = controller.on_query_change("Paris")
        await controller.on_query_change("Rome")

        paris_gate.set()
        await first
        assert controller.state.error is None
        assert _ids(controller.state) == ["wm_rome"]

    async def test_only_latest_of_many_published(self, controller, connector):
        gates = {}
        for i in range(5):
            gates[i] = asyncio.Event()
            connector.on(
                f"City {i}",
                [make_candidate(id=f"wm_{i}", image_url=f"https://x.org/{i}.jpg")],
                gate=gates[i],
            )
        published: list[SearchState] = []
        controller.subscribe(published.append)

        tasks = [controller.on_query_change(f"City {i}") for i in range(5)]
        # Release in reverse order so older runs finish last
        for i in reversed(range(5)):
            gates[i].set()
            await tasks[i]

        settled = [s for s in published if s.status is SearchStatus.SETTLED]
        assert len(settled) == 1
        assert _ids(settled[0]) == ["wm_4"]
        assert _ids(controller.state) == ["wm_4"]


# ============================================================================
# Empty query / errors
# ============================================================================


class TestEmptyAndErrors:
    async def test_empty_query_goes_idle_and_clears(self, controller, connector, paris):
        connector.on("Paris", [paris])
        await controller.on_query_change("Paris")

        assert controller.on_query_change("   ") is None
        state = controller.state
        assert state.status is SearchStatus.IDLE
        assert state.results == ()
        assert state.error is None
        assert connector.calls == ["Paris"]

    async def test_empty_query_invalidates_in_flight_run(self, controller, connector, paris):
        gate = asyncio.Event()
        connector.on("Paris", [paris], gate=gate)
        task = controller.on_query_change("Paris")

        controller.on_query_change("")
        gate.set()
        await task

        assert controller.state.status is SearchStatus.IDLE
        assert controller.state.results == ()

    async def test_all_failed_keeps_previous_results(self, controller, connector, paris):
        connector.on("Paris", [paris])
        connector.on("Rome", error=NetworkError("down"))

        await controller.on_query_change("Paris")
        await controller.on_query_change("Rome")

        state = controller.state
        assert state.status is SearchStatus.SETTLED
        assert isinstance(state.error, AllSourcesFailedError)
        assert _ids(state) == ["wm_paris"]

    async def test_error_cleared_by_next_success(self, controller, connector, rome):
        connector.on("Paris", error=NetworkError("down"))
        connector.on("Rome", [rome])

        await controller.on_query_change("Paris")
        assert controller.state.error is not None

        await controller.on_query_change("Rome")
        assert controller.state.error is None
        assert _ids(controller.state) == ["wm_rome"]

    async def test_connector_returning_none_settles_with_error(self):
        broken = ScriptedConnector(ImageSource.OPENVERSE)
        broken.fetch = AsyncMock(return_value=None)
        controller = QueryController(Aggregator([broken]))

        await controller.on_query_change("Paris")

        state = controller.state
        assert state.status is SearchStatus.SETTLED
        assert isinstance(state.error, AllSourcesFailedError)

    async def test_unexpected_aggregator_error_settles(self, connector, paris):
        aggregator = Aggregator([connector])
        controller = QueryController(aggregator)
        connector.on("Paris", [paris])
        await controller.on_query_change("Paris")

        with patch.object(aggregator, "run", side_effect=RuntimeError("bug")):
            await controller.on_query_change("Rome")

        state = controller.state
        assert state.status is SearchStatus.SETTLED
        assert not state.loading
        assert isinstance(state.error, ImagifyError)
        assert isinstance(state.error.context.related_errors[0], RuntimeError)
        assert _ids(state) == ["wm_paris"]

    async def test_unexpected_error_from_stale_run_dropped(self, connector, rome):
        aggregator = Aggregator([connector])
        controller = QueryController(aggregator)
        connector.on("Rome", [rome])
        gate = asyncio.Event()
        real_run = aggregator.run

        async def run(context):
            if context.query_text == "Paris":
                await gate.wait()
                raise RuntimeError("bug")
            return await real_run(context)

        with patch.object(aggregator, "run", side_effect=run):
            stale = controller.on_query_change("Paris")
            await controller.on_query_change("Rome")
            gate.set()
            await stale

        assert controller.state.error is None
        assert _ids(controller.state) == ["wm_rome"]

    async def test_partial_failure_not_surfaced(self, paris):
        good = ScriptedConnector(ImageSource.WIKIMEDIA)
        good.on("Paris", [paris])
        bad = ScriptedConnector(ImageSource.OPENVERSE)
        bad.on("Paris", error=NetworkError("down"))
        controller = QueryController(Aggregator([bad, good]))

        await controller.on_query_change("Paris")

        assert controller.state.error is None
        assert _ids(controller.state) == ["wm_paris"]
        assert len(controller.state.errors) == 1


# ============================================================================
# Settings
# ============================================================================


class TestSettings:
    async def test_limit_change_reruns(self, controller, connector):
        connector.on(
            "Paris",
            [make_candidate(id=f"wm_{i}", image_url=f"https://x.org/{i}.jpg") for i in range(5)],
        )
        await controller.on_query_change("Paris")
        assert len(controller.state.results) == 5

        task = controller.on_settings_change(limit=2)
        assert task is not None
        await task
        assert controller.limit == 2
        assert len(controller.state.results) == 2
        assert connector.calls == ["Paris", "Paris"]

    async def test_disabling_all_sources(self, controller, connector, paris):
        connector.on("Paris", [paris])
        await controller.on_query_change("Paris")

        await controller.on_settings_change(enabled_sources=[])

        state = controller.state
        assert state.status is SearchStatus.SETTLED
        assert state.results == ()
        assert state.error is None
        assert controller.enabled_sources == frozenset()

    async def test_settings_without_query_stays_idle(self, controller, connector):
        assert controller.on_settings_change(limit=5) is None
        assert controller.state.status is SearchStatus.IDLE
        assert connector.calls == []

    async def test_invalid_limit_rejected(self, controller):
        with pytest.raises(InvalidParameterError):
            controller.on_settings_change(limit=-3)
        assert controller.generation == 0

    def test_invalid_initial_limit(self, connector):
        with pytest.raises(InvalidParameterError):
            QueryController(Aggregator([connector]), limit=-1)


# ============================================================================
# Shutdown
# ============================================================================


class TestClose:
    async def test_aclose_drops_in_flight_result(self, controller, connector, paris):
        gate = asyncio.Event()
        connector.on("Paris", [paris], gate=gate)
        controller.on_query_change("Paris")

        gate.set()
        await controller.aclose()

        assert controller.state.status is SearchStatus.RUNNING
        assert controller.state.results == ()
