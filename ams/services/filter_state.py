"""
Operations on FilterState.

All functions are pure: they return a new FilterState and never mutate the
one they are given. Sort field/order count as one active dimension only when
they differ from the view's default sort.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ams.core.errors import ValidationError
from ams.schemas.filters import DATE_RANGES, VIEW_DEFAULT_SORT, FilterState, ViewKind

# dimension name -> fields it owns, in the order they are counted
PREDICATE_DIMENSIONS = {
    "search_query": ("search_query",),
    "course_id": ("course_id",),
    "assessment_type": ("assessment_type",),
    "submission_status": ("submission_status",),
    "results_status": ("results_status",),
    "course_status": ("course_status",),
    **DATE_RANGES,
}

SORT_KEYS = ("sort_field", "sort_order")


def default_filter_state(view: ViewKind = ViewKind.ASSESSMENTS) -> FilterState:
    sort_field, sort_order = VIEW_DEFAULT_SORT[view]
    return FilterState(view=view, sort_field=sort_field, sort_order=sort_order)


def build(**values: Any) -> FilterState:
    """Validate raw values (query params, websocket payloads) into a FilterState."""
    try:
        return FilterState(**values)
    except PydanticValidationError as exc:
        raise ValidationError(_first_error(exc)) from exc


def update(state: FilterState, key: str, value: Any) -> FilterState:
    return update_many(state, {key: value})


def update_many(state: FilterState, changes: dict[str, Any]) -> FilterState:
    unknown = set(changes) - set(FilterState.model_fields)
    if unknown:
        raise ValidationError(f"Unknown filter key(s): {', '.join(sorted(unknown))}")
    if "view" in changes and changes["view"] != state.view:
        raise ValidationError("A filter state cannot move to another view")

    values = state.model_dump()
    values.update(changes)
    return build(**values)


def clear(state: FilterState, key: str, partial: bool = False) -> FilterState:
    """Reset one dimension to unconstrained.

    ``key`` may name a dimension ("due_date") or one of its fields
    ("due_date_start"). Date ranges are cleared at both ends unless
    ``partial`` is set, in which case only the named field is cleared.
    """
    if key in SORT_KEYS:
        sort_field, sort_order = VIEW_DEFAULT_SORT[state.view]
        return update_many(state, {"sort_field": sort_field, "sort_order": sort_order})

    dimension = _dimension_of(key)
    fields = PREDICATE_DIMENSIONS[dimension]
    if partial and key in fields:
        fields = (key,)

    blank = FilterState.model_fields
    return update_many(state, {field: blank[field].default for field in fields})


def reset(state: FilterState) -> FilterState:
    return default_filter_state(state.view)


def predicate_values(state: FilterState) -> dict[str, Any]:
    return state.model_dump(exclude={"view", *SORT_KEYS})


def sort_is_default(state: FilterState) -> bool:
    return (state.sort_field, state.sort_order) == VIEW_DEFAULT_SORT[state.view]


def active_dimensions(state: FilterState) -> list[str]:
    active = [
        dimension
        for dimension, fields in PREDICATE_DIMENSIONS.items()
        if any(getattr(state, field) for field in fields)
    ]
    if not sort_is_default(state):
        active.append("sort")
    return active


def has_active_filters(state: FilterState) -> bool:
    return bool(active_dimensions(state))


def active_filter_count(state: FilterState) -> int:
    return len(active_dimensions(state))


def _dimension_of(key: str) -> str:
    for dimension, fields in PREDICATE_DIMENSIONS.items():
        if key == dimension or key in fields:
            return dimension
    raise ValidationError(f"Unknown filter key: {key}")


def _first_error(exc: PydanticValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "invalid value")
    return f"{location}: {message}" if location else message
