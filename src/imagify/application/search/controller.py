"""
Query Controller - owns the current query and publishes the latest result.

State machine:
    IDLE     no query text
    RUNNING  a run for the current generation is in flight
    SETTLED  the current generation finished (results, possibly an error)

Every query or settings change bumps the generation and starts a new run.
Runs are never aborted: a superseded run is allowed to finish and its
outcome (success or error) is dropped because its generation no longer
matches. All state is mutated from the event loop only, so no lock is
needed.

Usage:
    controller = QueryController(aggregator, limit=24)
    controller.subscribe(render)
    task = controller.on_query_change("Paris, eiffel tower")
    if task is not None:
        await task
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from enum import Enum

from imagify.domain.entities import DEFAULT_LIMIT, ImageSource, QueryContext, ScoredCandidate, parse_sources
from imagify.shared.exceptions import ErrorContext, ImagifyError, InvalidParameterError

from .aggregator import Aggregator

logger = logging.getLogger(__name__)


class SearchStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SETTLED = "settled"


@dataclass(frozen=True)
class SearchState:
    """Snapshot handed to the rendering collaborator."""

    status: SearchStatus = SearchStatus.IDLE
    generation: int = 0
    query: str = ""
    results: tuple[ScoredCandidate, ...] = ()
    error: ImagifyError | None = None
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def loading(self) -> bool:
        return self.status is SearchStatus.RUNNING


StateListener = Callable[[SearchState], None]


class QueryController:
    """
    Drives aggregation runs from discrete query/settings change events.

    Args:
        aggregator: Pipeline to run
        enabled_sources: Initially enabled sources (None = all)
        limit: Initial top-K
    """

    def __init__(
        self,
        aggregator: Aggregator,
        enabled_sources: Iterable[ImageSource | str] | None = None,
        limit: int = DEFAULT_LIMIT,
    ):
        self._aggregator = aggregator
        self._enabled_sources = parse_sources(enabled_sources)
        self._limit = self._validate_limit(limit)
        self._query = ""
        self._generation = 0
        self._state = SearchState()
        self._listeners: list[StateListener] = []
        self._tasks: set[asyncio.Task[None]] = set()

    # =========================================================================
    # Read side
    # =========================================================================

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def query(self) -> str:
        return self._query

    @property
    def enabled_sources(self) -> frozenset[ImageSource]:
        return self._enabled_sources

    @property
    def limit(self) -> int:
        return self._limit

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # Events
    # =========================================================================

    def on_query_change(self, text: str | None) -> asyncio.Task[None] | None:
        """
        Handle a (debounced) query change.

        Returns:
            The task running the new pipeline pass, or None when the query
            is empty and the controller went back to IDLE.
        """
        self._query = (text or "").strip()
        return self._restart()

    def on_settings_change(
        self,
        enabled_sources: Iterable[ImageSource | str] | None = None,
        limit: int | None = None,
    ) -> asyncio.Task[None] | None:
        """Update enabled sources and/or K; re-runs the current query if any."""
        if enabled_sources is not None:
            self._enabled_sources = parse_sources(enabled_sources)
        if limit is not None:
            self._limit = self._validate_limit(limit)
        return self._restart()

    async def aclose(self) -> None:
        """Invalidate in-flight runs and wait for them to finish."""
        self._generation += 1
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # =========================================================================
    # Internals
    # =========================================================================

    def _restart(self) -> asyncio.Task[None] | None:
        self._generation += 1
        generation = self._generation

        if not self._query:
            self._publish(SearchState(generation=generation))
            return None

        context = QueryContext.from_input(self._query, self._enabled_sources, self._limit)

        # Previous results stay visible while loading
        self._publish(
            replace(
                self._state,
                status=SearchStatus.RUNNING,
                generation=generation,
                query=self._query,
                error=None,
                errors=(),
            )
        )

        task = asyncio.get_running_loop().create_task(self._execute(generation, context))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _execute(self, generation: int, context: QueryContext) -> None:
        try:
            result = await self._aggregator.run(context)
        except ImagifyError as e:
            self._settle_with_error(generation, context, e)
            return
        except Exception as e:
            logger.exception(f"Unexpected error while searching for {context.query_text!r}")
            error = ImagifyError(
                f"Search failed: {e!r}",
                context=ErrorContext(operation="search", related_errors=(e,)),
            )
            self._settle_with_error(generation, context, error)
            return

        if not self._is_current(generation):
            logger.debug(
                f"Dropping stale result from generation {generation} "
                f"(current is {self._generation})"
            )
            return

        self._publish(
            SearchState(
                status=SearchStatus.SETTLED,
                generation=generation,
                query=context.query_text,
                results=tuple(result.candidates),
                error=None,
                errors=tuple(result.errors),
            )
        )

    def _settle_with_error(self, generation: int, context: QueryContext, error: ImagifyError) -> None:
        if not self._is_current(generation):
            logger.debug(f"Dropping stale error from generation {generation}: {error}")
            return
        logger.warning(f"Search for {context.query_text!r} failed: {error}")
        # Keep the last settled results on screen alongside the error
        self._publish(replace(self._state, status=SearchStatus.SETTLED, error=error, errors=()))

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _publish(self, state: SearchState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    @staticmethod
    def _validate_limit(limit: int) -> int:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise InvalidParameterError("limit", limit, "a non-negative integer")
        return limit
