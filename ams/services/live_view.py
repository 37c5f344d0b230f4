"""
One live list view: filter state, debounced coordinator, refresh bridge and
paginator wired together for a single viewer.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from starlette.concurrency import run_in_threadpool

from ams.core.config import DEBOUNCE_SECONDS, PAGE_SIZE
from ams.schemas.filters import FilterState, ViewKind
from ams.schemas.views import ListPage
from ams.services import filter_state, presentation
from ams.services.backend import Backend, Viewer
from ams.services.coordinator import DebouncedQueryCoordinator, FetchReason, QueryState
from ams.services.engine import Paginator
from ams.services.refresh import ReactiveRefreshBridge

logger = logging.getLogger(__name__)

# entity -> (view kind, change events that invalidate it, error notice)
VIEWS = {
    "assessments": (
        ViewKind.ASSESSMENTS,
        ("grades.insert", "grades.update", "submissions.insert", "assessments.insert"),
        "Failed to load assessments",
    ),
    "courses": (
        ViewKind.COURSES,
        ("courses.insert", "assessments.insert", "enrollments.insert", "submissions.insert", "grades.update"),
        "Failed to load courses",
    ),
}


class ListView:
    def __init__(
        self,
        backend: Backend,
        entity: str,
        viewer: Viewer,
        *,
        filters: Optional[FilterState] = None,
        delay: float = DEBOUNCE_SECONDS,
        page_size: int = PAGE_SIZE,
        grid: bool = False,
        on_update: Optional[Callable[[dict[str, Any]], None]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        view_kind, event_kinds, notice = VIEWS[entity]

        self.entity = entity
        self.viewer = viewer
        self.filters = filters or filter_state.default_filter_state(view_kind)
        self.paginator = Paginator(page_size=page_size, reset_on_resize=grid)

        self._backend = backend
        self._on_update = on_update
        self._now = now

        self.coordinator = DebouncedQueryCoordinator(
            self._fetch,
            self.filters,
            delay=delay,
            on_settled=self._settled,
            on_error=self._failed,
            error_notice=notice,
        )
        self.bridge = ReactiveRefreshBridge(backend, event_kinds, self.coordinator)

    @property
    def state(self) -> QueryState:
        return self.coordinator.state

    @property
    def items(self) -> tuple:
        return self.coordinator.items

    def open(self) -> None:
        """Start listening for changes and schedule the first fetch."""
        self.bridge.start()
        self.coordinator.submit(self.filters)

    def close(self) -> None:
        self.bridge.stop()
        self.coordinator.close()

    def update(self, **changes: Any) -> FilterState:
        return self._set_filters(filter_state.update_many(self.filters, changes))

    def clear(self, key: str, partial: bool = False) -> FilterState:
        return self._set_filters(filter_state.clear(self.filters, key, partial=partial))

    def reset(self) -> FilterState:
        return self._set_filters(filter_state.reset(self.filters))

    def go_to(self, page_number: int) -> ListPage:
        self.paginator.go_to(page_number)
        return self.render()

    def render(self) -> ListPage:
        render_item = presentation.course_card if self.entity == "courses" else self._assessment_card
        return presentation.list_page(
            self.items,
            self.paginator,
            self.filters,
            render_item,
            course_codes=self._course_codes(),
        )

    def _set_filters(self, new: FilterState) -> FilterState:
        self.paginator.on_filters_changed(self.filters, new)
        self.filters = new
        self.coordinator.submit(new)
        return new

    async def _fetch(self, filters: FilterState):
        return await run_in_threadpool(self._backend.fetch_filtered, self.entity, filters, self.viewer)

    def _settled(self, items: tuple, reason: FetchReason) -> None:
        self.paginator.on_results(len(items), refresh=reason == FetchReason.REFRESH)
        logger.debug(
            "%s view for user %s settled: %d item(s), page %d/%d",
            self.entity,
            self.viewer.id,
            len(items),
            self.paginator.current_page,
            self.paginator.total_pages,
        )
        if self._on_update is not None:
            self._on_update({"type": "results", "reason": reason.value, **self.render().model_dump(mode="json")})

    def _failed(self, notice: str) -> None:
        if self._on_update is not None:
            self._on_update({"type": "error", "notice": notice})

    def _assessment_card(self, item):
        return presentation.assessment_card(item, self._now() if self._now else None)

    def _course_codes(self) -> dict[int, str]:
        codes = {}
        for item in self.items:
            code = getattr(item, "course_code", None) or getattr(item, "code", None)
            codes[item.course_id] = code
        return codes
