"""
Debounced query coordinator.

    idle/settled/error --change--> pending --quiet 300ms--> in_flight
    in_flight --ok--> settled        in_flight --failure--> error

Every filter change or refresh bumps a generation counter. A fetch remembers
the generation it was issued for and its response is dropped if the counter
has moved on, so responses apply in last-request-wins order rather than in
network arrival order. In-flight fetches are never cancelled.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from ams.core.config import DEBOUNCE_SECONDS
from ams.core.errors import RemoteError
from ams.schemas.filters import FilterState

logger = logging.getLogger(__name__)

FetchFn = Callable[[FilterState], Awaitable[Sequence[Any]]]


class QueryState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    SETTLED = "settled"
    ERROR = "error"


class FetchReason(str, Enum):
    FILTERS = "filters"
    REFRESH = "refresh"


class DebouncedQueryCoordinator:
    def __init__(
        self,
        fetch: FetchFn,
        filters: FilterState,
        *,
        delay: float = DEBOUNCE_SECONDS,
        on_settled: Optional[Callable[[tuple, FetchReason], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        error_notice: str = "Failed to load results",
    ):
        self._fetch = fetch
        self._delay = delay
        self._on_settled = on_settled
        self._on_error = on_error
        self._error_notice = error_notice

        self.filters = filters
        self.state = QueryState.IDLE
        self.items: tuple = ()
        self.notice: Optional[str] = None
        self.generation = 0
        self.fetch_count = 0

        self._reason = FetchReason.FILTERS
        self._timer: Optional[asyncio.Task] = None
        self._in_flight: set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, filters: FilterState) -> None:
        """Record a filter change and (re)start the quiescence timer."""
        self.filters = filters
        self._arm(FetchReason.FILTERS)

    def refresh(self) -> None:
        """Re-run the current query, e.g. after an external change."""
        # a pending user change keeps its reason so pagination still resets
        if self.state == QueryState.PENDING and self._reason == FetchReason.FILTERS:
            self._arm(FetchReason.FILTERS)
        else:
            self._arm(FetchReason.REFRESH)

    async def wait_settled(self) -> None:
        """Wait until no timer is armed and nothing is in flight."""
        while not self._closed:
            pending = [t for t in (self._timer, *self._in_flight) if t is not None and not t.done()]
            if not pending:
                return
            await asyncio.wait(pending)

    def close(self) -> None:
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        logger.debug("Coordinator closed (generation %d)", self.generation)

    def _arm(self, reason: FetchReason) -> None:
        if self._closed:
            return

        self.generation += 1
        self._reason = reason
        self.state = QueryState.PENDING

        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._wait_then_issue())

    async def _wait_then_issue(self) -> None:
        try:
            await asyncio.sleep(self._delay)
        except asyncio.CancelledError:
            logger.debug("Debounce timer reset")
            raise

        if self._closed:
            return
        self._issue()

    def _issue(self) -> None:
        generation = self.generation
        filters = self.filters
        reason = self._reason

        self.state = QueryState.IN_FLIGHT
        self.fetch_count += 1
        logger.debug("Issuing fetch #%d for generation %d (%s)", self.fetch_count, generation, reason.value)

        task = asyncio.get_running_loop().create_task(self._run_fetch(generation, filters, reason))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _run_fetch(self, generation: int, filters: FilterState, reason: FetchReason) -> None:
        try:
            rows = await self._fetch(filters)
        except RemoteError as exc:
            logger.warning("Fetch for generation %d failed: %s", generation, exc.message)
            self._fail(generation)
            return
        except Exception:
            logger.exception("Fetch for generation %d raised unexpectedly", generation)
            self._fail(generation)
            return

        if self._is_stale(generation):
            logger.debug("Dropping stale result for generation %d", generation)
            return

        self.items = tuple(rows)
        self.notice = None
        self.state = QueryState.SETTLED
        if self._on_settled is not None:
            self._on_settled(self.items, reason)

    def _fail(self, generation: int) -> None:
        if self._is_stale(generation):
            logger.debug("Dropping stale failure for generation %d", generation)
            return
        self.state = QueryState.ERROR
        self.notice = self._error_notice
        if self._on_error is not None:
            self._on_error(self.notice)

    def _is_stale(self, generation: int) -> bool:
        return self._closed or generation != self.generation
