import itertools
from datetime import date, timedelta

import pytest

from ams.schemas.filters import (
    AssessmentType,
    ResultsStatus,
    SortField,
    SortOrder,
    SubmissionStatus,
    ViewKind,
)
from ams.services import engine, filter_state
from ams.services.engine import Paginator
from tests.fakes import DAY0, make_assessment, make_course


@pytest.fixture()
def assessments():
    return [
        make_assessment(1, "Midterm Quiz", 3, assessment_type="quiz"),
        make_assessment(2, "Final Exam", 20, assessment_type="examination"),
        make_assessment(
            3,
            "Quiz 2",
            5,
            assessment_type="quiz",
            course_id=2,
            course_code="MA201",
            submission_status=SubmissionStatus.GRADED,
            results_status=ResultsStatus.AVAILABLE,
            submitted_at=DAY0,
            graded_at=DAY0 + timedelta(days=1),
            score=45,
            total_marks=60,
        ),
        make_assessment(
            4,
            "Lab Report",
            -1,
            submission_status=SubmissionStatus.SUBMITTED,
            results_status=ResultsStatus.NOT_APPLICABLE,
            submitted_at=DAY0 - timedelta(days=2),
        ),
    ]


def _state(**values):
    return filter_state.update_many(filter_state.default_filter_state(), values)


def test_search_is_case_insensitive_and_sorted_by_title(assessments):
    state = _state(search_query="QUIZ", sort_field="title", sort_order="asc")

    result = engine.apply(assessments, state)

    assert [item.title for item in result] == ["Midterm Quiz", "Quiz 2"]


def test_predicates_are_anded(assessments):
    state = _state(assessment_type="quiz", course_id=2)
    assert [item.id for item in engine.apply(assessments, state)] == [3]


def test_inclusive_due_date_range(assessments):
    start = (DAY0 + timedelta(days=3)).date()
    end = (DAY0 + timedelta(days=5)).date()

    result = engine.apply(assessments, _state(due_date_start=start, due_date_end=end))

    assert {item.id for item in result} == {1, 3}


def test_open_ended_ranges_and_missing_dates(assessments):
    result = engine.apply(assessments, _state(submission_date_start=(DAY0 - timedelta(days=3)).date()))
    # items that were never submitted never match a submission date filter
    assert {item.id for item in result} == {3, 4}

    result = engine.apply(assessments, _state(due_date_end=DAY0.date()))
    assert {item.id for item in result} == {4}


def test_result_is_subset_and_relaxing_a_filter_never_shrinks(assessments):
    tight = _state(assessment_type="quiz", results_status="available", search_query="quiz")
    tight_result = engine.apply(assessments, tight)

    assert set(tight_result) <= set(assessments)
    for key in ("assessment_type", "results_status", "search_query"):
        relaxed = engine.apply(assessments, filter_state.clear(tight, key))
        assert set(tight_result) <= set(relaxed)


def test_sort_by_due_date_defaults_to_latest_first(assessments):
    result = engine.apply(assessments, filter_state.default_filter_state())
    assert [item.id for item in result] == [2, 3, 1, 4]


def test_status_sort_uses_workflow_order(assessments):
    result = engine.apply(assessments, _state(sort_field="status", sort_order="asc"))
    statuses = [item.submission_status for item in result]
    assert statuses == [
        SubmissionStatus.NOT_SUBMITTED,
        SubmissionStatus.NOT_SUBMITTED,
        SubmissionStatus.SUBMITTED,
        SubmissionStatus.GRADED,
    ]


def test_sort_is_stable_for_equal_keys():
    items = [make_assessment(i, "Same title", 1) for i in range(1, 6)]
    for order in (SortOrder.ASC, SortOrder.DESC):
        result = engine.sort_items(items, SortField.TITLE, order)
        assert [item.id for item in result] == [1, 2, 3, 4, 5]


def test_missing_values_sort_first_ascending(assessments):
    result = engine.apply(assessments, _state(sort_field="grade", sort_order="asc"))
    assert [item.id for item in result][-1] == 3
    assert all(item.percentage is None for item in result[:-1])

    result = engine.apply(assessments, _state(sort_field="grade", sort_order="desc"))
    assert result[0].id == 3


def test_course_search_covers_code_and_instructor():
    courses = [
        make_course(1, "Intro to Programming", "CS101", instructor_name="Ada Lovelace"),
        make_course(2, "Linear Algebra", "MA201", instructor_name="Emmy Noether"),
        make_course(3, "Databases", "CS202", status="completed"),
    ]
    state = filter_state.update(filter_state.default_filter_state(ViewKind.COURSES), "search_query", "cs")
    assert {c.id for c in engine.apply(courses, state)} == {1, 3}

    state = filter_state.update(state, "search_query", "noether")
    assert [c.id for c in engine.apply(courses, state)] == [2]

    state = filter_state.update_many(state, {"search_query": "", "course_status": "completed"})
    assert [c.id for c in engine.apply(courses, state)] == [3]


def test_twenty_five_items_make_three_pages():
    items = list(range(25))

    assert engine.total_pages(len(items), 12) == 3
    assert len(engine.page(items, 1, 12)) == 12
    assert engine.page(items, 3, 12) == (24,)


def test_out_of_range_page_is_empty():
    items = list(range(5))
    assert engine.page(items, 2, 12) == ()
    assert engine.page(items, 0, 12) == ()
    assert engine.page([], 1, 12) == ()


def test_pages_partition_the_result():
    items = list(range(30))
    pages = [engine.page(items, n, 12) for n in range(1, engine.total_pages(30, 12) + 1)]
    assert list(itertools.chain.from_iterable(pages)) == items


def test_refresh_clamps_current_page():
    paginator = Paginator(page_size=12)
    paginator.on_results(30)
    paginator.go_to(3)

    paginator.on_results(20, refresh=True)

    assert paginator.current_page == 2
    assert paginator.total_pages == 2


def test_predicate_change_resets_page_but_sort_change_does_not():
    paginator = Paginator(page_size=12)
    paginator.on_results(30)
    paginator.go_to(2)
    state = filter_state.default_filter_state()

    sorted_state = filter_state.update(state, "sort_field", "title")
    paginator.on_filters_changed(state, sorted_state)
    assert paginator.current_page == 2

    filtered = filter_state.update(sorted_state, "assessment_type", AssessmentType.QUIZ)
    paginator.on_filters_changed(sorted_state, filtered)
    assert paginator.current_page == 1


def test_grid_paginator_resets_when_result_size_changes():
    paginator = Paginator(page_size=12, reset_on_resize=True)
    paginator.on_results(30)
    paginator.go_to(3)

    paginator.on_results(30)
    assert paginator.current_page == 3

    paginator.on_results(26)
    assert paginator.current_page == 1


def test_go_to_clamps():
    paginator = Paginator(page_size=12)
    paginator.on_results(13)
    assert paginator.go_to(9) == 2
    assert paginator.go_to(-1) == 1

    paginator.on_results(0)
    assert paginator.current_page == 1
    assert paginator.total_pages == 0


def test_date_only_filters_match_whole_day():
    item = make_assessment(1, "Late night", 0)
    day = DAY0.date()
    state = _state(due_date_start=day, due_date_end=day)
    assert engine.apply([item], state) == (item,)
    assert engine.apply([item], _state(due_date_start=day + timedelta(days=1))) == ()
    assert isinstance(day, date)


def test_ten_assessments_three_due_in_first_week():
    offsets = [-3, 1, 9, 4, 12, 30, 7, -1, 15, 8]
    items = [make_assessment(i, f"Item {i}", offset) for i, offset in enumerate(offsets, start=1)]
    state = _state(due_date_start=DAY0.date(), due_date_end=(DAY0 + timedelta(days=7)).date(), sort_order="asc")

    result = engine.apply(items, state)

    assert [item.id for item in result] == [2, 4, 7]


def test_search_and_type_intersect_rather_than_union(assessments):
    state = _state(search_query="quiz", assessment_type="examination")
    assert engine.apply(assessments, state) == ()

    state = filter_state.update(state, "search_query", "exam")
    assert [item.id for item in engine.apply(assessments, state)] == [2]


def test_title_sort_ignores_accents_and_case():
    items = [make_assessment(i, title, 1) for i, title in enumerate(["Zeta", "Éclair", "apple", "eclair"], 1)]

    result = engine.sort_items(items, SortField.TITLE, SortOrder.ASC)

    assert [item.title for item in result] == ["apple", "eclair", "Éclair", "Zeta"]
