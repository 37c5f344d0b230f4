"""
Client-side filter / sort / paginate engine for list views.

``apply`` is pure and cheap enough to run on every keystroke; debouncing is
the caller's job. Items are read through attribute access, so any of the
item projections in ``ams.schemas.items`` can be fed through it.
"""

import math
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Optional, Sequence, TypeVar

from ams.core.config import PAGE_SIZE
from ams.schemas.filters import FilterState, SortField, SortOrder, SubmissionStatus
from ams.services.filter_state import predicate_values
from ams.services.status import as_utc

T = TypeVar("T")

STATUS_RANK = {
    SubmissionStatus.NOT_SUBMITTED: 0,
    SubmissionStatus.SUBMITTED: 1,
    SubmissionStatus.GRADED: 2,
}

TEXT_SORT_FIELDS = {SortField.TITLE, SortField.NAME, SortField.CODE}

# sort field -> attribute read from the item
SORT_ATTRIBUTES = {
    SortField.DATE: "due_date",
    SortField.TITLE: "title",
    SortField.GRADE: "percentage",
    SortField.STATUS: "submission_status",
    SortField.NEWEST: "created_at",
    SortField.UPDATED: "updated_at",
    SortField.PROGRESS: "progress",
    SortField.ASSESSMENTS: "assessments_count",
    SortField.CODE: "code",
    SortField.NAME: "title",
}


def apply(items: Sequence[T], state: FilterState) -> tuple[T, ...]:
    """Filter with every supplied predicate ANDed together, then sort."""
    predicates = _predicates(state)
    matched = [item for item in items if all(p(item) for p in predicates)]
    return sort_items(matched, state.sort_field, state.sort_order)


def sort_items(items: Sequence[T], field: SortField, order: SortOrder) -> tuple[T, ...]:
    # sorted() is stable and reverse=True keeps equal keys in input order,
    # so ties are never broken by a secondary key.
    key = _sort_key(field)
    return tuple(sorted(items, key=key, reverse=order == SortOrder.DESC))


def total_pages(count: int, page_size: int = PAGE_SIZE) -> int:
    return math.ceil(count / page_size)


def page(items: Sequence[T], page_number: int, page_size: int = PAGE_SIZE) -> tuple[T, ...]:
    """One page of ``items``; empty when ``page_number`` is out of range."""
    if page_number < 1 or page_number > total_pages(len(items), page_size):
        return ()
    start = (page_number - 1) * page_size
    return tuple(items[start:start + page_size])


def clamp_page(page_number: int, count: int, page_size: int = PAGE_SIZE) -> int:
    last = max(1, total_pages(count, page_size))
    return min(max(1, page_number), last)


def predicates_differ(old: FilterState, new: FilterState) -> bool:
    return predicate_values(old) != predicate_values(new)


@dataclass
class Paginator:
    """Pagination cursor for one list view.

    A predicate change resets to page 1, a sort-only change does not. With
    ``reset_on_resize`` (the grid paginator) a user-driven fetch whose size
    changed also resets. Refresh-driven results only clamp.
    """

    page_size: int = PAGE_SIZE
    current_page: int = 1
    total_items: int = 0
    reset_on_resize: bool = False

    @property
    def total_pages(self) -> int:
        return total_pages(self.total_items, self.page_size)

    def on_filters_changed(self, old: FilterState, new: FilterState) -> None:
        if predicates_differ(old, new):
            self.current_page = 1

    def on_results(self, count: int, refresh: bool = False) -> None:
        if not refresh and self.reset_on_resize and count != self.total_items:
            self.current_page = 1
        self.total_items = count
        self.current_page = clamp_page(self.current_page, count, self.page_size)

    def go_to(self, page_number: int) -> int:
        self.current_page = clamp_page(page_number, self.total_items, self.page_size)
        return self.current_page

    def slice(self, items: Sequence[T]) -> tuple[T, ...]:
        return page(items, self.current_page, self.page_size)


def _predicates(state: FilterState) -> list[Callable[[Any], bool]]:
    predicates: list[Callable[[Any], bool]] = []

    if state.search_query:
        query = state.search_query.casefold()
        predicates.append(lambda item: _matches_text(item, query))

    for field in ("course_id", "assessment_type", "submission_status", "results_status"):
        wanted = getattr(state, field)
        if wanted is not None:
            predicates.append(_equals(field, wanted))

    if state.course_status is not None:
        predicates.append(_equals("status", state.course_status.value))

    if state.due_date_start is not None or state.due_date_end is not None:
        predicates.append(_within("due_date", state.due_date_start, state.due_date_end))

    if state.submission_date_start is not None or state.submission_date_end is not None:
        predicates.append(
            _within("submitted_at", state.submission_date_start, state.submission_date_end)
        )

    return predicates


def _matches_text(item: Any, query: str) -> bool:
    for field in getattr(item, "search_fields", ("title",)):
        value = getattr(item, field, None)
        if value and query in value.casefold():
            return True
    return False


def _equals(field: str, wanted: Any) -> Callable[[Any], bool]:
    return lambda item: getattr(item, field, None) == wanted


def _within(field: str, start: Optional[date], end: Optional[date]) -> Callable[[Any], bool]:
    def predicate(item: Any) -> bool:
        value = getattr(item, field, None)
        if value is None:
            return False
        day = as_utc(value).date() if isinstance(value, datetime) else value
        if start is not None and day < start:
            return False
        if end is not None and day > end:
            return False
        return True

    return predicate


def collation_key(text: str) -> tuple[str, str]:
    """Accent- and case-insensitive ordering; the raw text only breaks ties."""
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), text


def _sort_key(field: SortField) -> Callable[[Any], tuple]:
    attribute = SORT_ATTRIBUTES[field]

    def key(item: Any) -> tuple:
        value = getattr(item, attribute, None)
        if value is None:
            # missing values rank below everything else
            return (0, 0)
        if field == SortField.STATUS:
            return (1, STATUS_RANK.get(value, 0))
        if field in TEXT_SORT_FIELDS:
            return (1, collation_key(value))
        if isinstance(value, datetime):
            return (1, as_utc(value))
        return (1, value)

    return key
