"""
Maps engine output to renderable view-models: badges, labels, progress and
percentage strings, filter tags and tables grouped by their parent record.
"""

from collections import defaultdict
from datetime import date, datetime
from typing import Callable, Iterable, Mapping, Optional, Sequence, TypeVar

from ams.schemas.filters import FilterState, ResultsStatus, SubmissionStatus
from ams.schemas.items import AssessmentItem, CourseItem, GradeRecord, SubmissionRecord
from ams.schemas.views import (
    AssessmentCard,
    CourseCard,
    CourseGradeTable,
    FilterTag,
    GradeRow,
    GradesDashboard,
    ListPage,
    SubmissionAttempt,
    SubmissionHistoryGroup,
)
from ams.services import filter_state
from ams.services.engine import Paginator
from ams.services.grades import (
    grade_label_from_percentage,
    grade_label_name,
    grade_statistics,
    summarize_by_course,
)
from ams.services.status import (
    days_until,
    format_late_duration,
    is_overdue,
    urgency,
)

T = TypeVar("T")

NO_VALUE = "—"

TYPE_LABELS = {
    "assignment": "Assignment",
    "quiz": "Quiz",
    "examination": "Examination",
    "project": "Project",
    "practical": "Practical",
    "other": "Other",
}

SUBMISSION_LABELS = {
    SubmissionStatus.NOT_SUBMITTED: ("Not Submitted", "outline"),
    SubmissionStatus.SUBMITTED: ("Submitted", "secondary"),
    SubmissionStatus.GRADED: ("Graded", "default"),
}

RESULTS_LABELS = {
    ResultsStatus.AVAILABLE: ("Results Available", "default"),
    ResultsStatus.PENDING: ("Results Pending", "secondary"),
    ResultsStatus.NOT_APPLICABLE: ("Not Graded", "outline"),
}

TIMELINESS_LABELS = {
    "on_time": "On Time",
    "grace_period": "Grace Period",
    "late": "Late",
}

SORT_LABELS = {
    "date": "Due date",
    "title": "Title",
    "grade": "Grade",
    "status": "Status",
    "newest": "Newest",
    "updated": "Updated",
    "progress": "Progress",
    "assessments": "Assessments",
    "code": "Code",
    "name": "Name",
}


def format_assessment_type(value: str) -> str:
    return TYPE_LABELS.get(value, value)


def format_percentage(value: Optional[int]) -> str:
    return f"{value}%" if value is not None else NO_VALUE


def assessment_card(item: AssessmentItem, now: Optional[datetime] = None) -> AssessmentCard:
    status_label, status_variant = SUBMISSION_LABELS[item.submission_status]
    results_label, results_variant = RESULTS_LABELS[item.results_status]
    pct = item.percentage

    return AssessmentCard(
        id=item.id,
        title=item.title,
        description=item.description,
        course_id=item.course_id,
        course_code=item.course_code,
        course_title=item.course_title,
        assessment_type=item.assessment_type,
        type_label=format_assessment_type(item.assessment_type.value),
        due_date=item.due_date,
        days_until_due=days_until(item.due_date, now),
        # submitted work is never urgent
        urgency=urgency(item.due_date, now) if item.submission_status == SubmissionStatus.NOT_SUBMITTED else "normal",
        is_overdue=is_overdue(item.due_date, item.submission_status, now),
        submission_status=item.submission_status,
        status_label=status_label,
        status_variant=status_variant,
        results_status=item.results_status,
        results_label=results_label,
        results_variant=results_variant,
        submitted_at=item.submitted_at,
        attempt_number=item.attempt_number,
        max_attempts=item.max_attempts,
        score=item.score,
        total_marks=item.total_marks,
        percentage=pct,
        percentage_display=format_percentage(pct),
        grade_label=grade_label_from_percentage(pct) if pct is not None else None,
        feedback=item.feedback,
    )


def course_card(item: CourseItem) -> CourseCard:
    return CourseCard(
        id=item.id,
        title=item.title,
        code=item.code,
        description=item.description,
        instructor_name=item.instructor_name,
        status=item.status,
        status_label=item.status.replace("_", " ").title(),
        created_at=item.created_at,
        updated_at=item.updated_at,
        assessments_count=item.assessments_count,
        completed_assessments=item.completed_assessments,
        students_count=item.students_count,
        average_grade=item.average_grade,
        progress=item.progress,
        progress_display=format_percentage(item.progress),
    )


def filter_tags(state: FilterState, course_codes: Optional[Mapping[int, str]] = None) -> list[FilterTag]:
    """Removable tags for the active filters, in display order.

    A tag's ``key`` is what ``filter_state.clear`` expects; date range tags
    use the range name so both ends are cleared together.
    """
    course_codes = course_codes or {}
    tags: list[FilterTag] = []

    if state.search_query:
        tags.append(FilterTag(key="search_query", label=f'Search: "{state.search_query}"'))
    if state.course_id is not None:
        tags.append(FilterTag(key="course_id", label=course_codes.get(state.course_id, "Course")))
    if state.assessment_type is not None:
        tags.append(FilterTag(key="assessment_type", label=format_assessment_type(state.assessment_type.value)))
    if state.submission_status is not None:
        tags.append(FilterTag(key="submission_status", label=SUBMISSION_LABELS[state.submission_status][0]))
    if state.results_status is not None:
        tags.append(FilterTag(key="results_status", label=RESULTS_LABELS[state.results_status][0]))
    if state.course_status is not None:
        tags.append(FilterTag(key="course_status", label=state.course_status.value.title()))
    if state.due_date_start or state.due_date_end:
        label = _range_label(state.due_date_start, state.due_date_end)
        tags.append(FilterTag(key="due_date", label=f"Due: {label}"))
    if state.submission_date_start or state.submission_date_end:
        label = _range_label(state.submission_date_start, state.submission_date_end)
        tags.append(FilterTag(key="submission_date", label=f"Submitted: {label}"))
    if not filter_state.sort_is_default(state):
        tags.append(
            FilterTag(
                key="sort_field",
                label=f"Sort: {SORT_LABELS[state.sort_field.value]} ({state.sort_order.value})",
            )
        )

    return tags


def list_page(
    items: Sequence[T],
    paginator: Paginator,
    state: FilterState,
    render: Callable[[T], object],
    course_codes: Optional[Mapping[int, str]] = None,
) -> ListPage:
    """Render the paginator's current page of already filtered and sorted items."""
    total = len(items)
    visible = paginator.slice(items)
    start = (paginator.current_page - 1) * paginator.page_size

    return ListPage(
        items=[render(item) for item in visible],
        total=total,
        page=paginator.current_page,
        page_size=paginator.page_size,
        total_pages=paginator.total_pages,
        showing_from=start + 1 if visible else 0,
        showing_to=start + len(visible),
        active_filter_count=filter_state.active_filter_count(state),
        has_active_filters=filter_state.has_active_filters(state),
        tags=filter_tags(state, course_codes),
        filters=state,
    )


def group_history(records: Iterable[SubmissionRecord]) -> list[SubmissionHistoryGroup]:
    """Submission attempts grouped by assessment, latest attempt first."""
    grouped: dict[int, list[SubmissionRecord]] = defaultdict(list)
    for record in records:
        grouped[record.assessment_id].append(record)

    groups = []
    for attempts in grouped.values():
        attempts = sorted(attempts, key=lambda r: r.attempt_number, reverse=True)
        first = attempts[0]
        groups.append(
            SubmissionHistoryGroup(
                assessment_id=first.assessment_id,
                title=first.title,
                course_code=first.course_code,
                due_date=first.due_date,
                attempts_used=len(attempts),
                max_attempts=first.max_attempts,
                attempts_display=_attempts_display(len(attempts), first.max_attempts),
                attempts=[
                    SubmissionAttempt(
                        submission_id=r.submission_id,
                        attempt_number=r.attempt_number,
                        submitted_at=r.submitted_at,
                        file_name=r.file_name,
                        is_latest=r.is_latest,
                        timeliness=r.timeliness,
                        timeliness_label=TIMELINESS_LABELS.get(r.timeliness, r.timeliness),
                        late_display=format_late_duration(r.late_by_minutes),
                    )
                    for r in attempts
                ],
            )
        )
    return groups


def grades_dashboard(records: Sequence[GradeRecord]) -> GradesDashboard:
    rows_by_course: dict[int, list[GradeRow]] = defaultdict(list)
    for record in records:
        pct = record.percentage
        rows_by_course[record.course_id].append(
            GradeRow(
                grade_id=record.grade_id,
                assessment_id=record.assessment_id,
                title=record.title,
                type_label=format_assessment_type(record.assessment_type.value),
                score=record.score,
                total_marks=record.total_marks,
                percentage_display=format_percentage(pct),
                grade_label=record.grade_label,
                grade_label_name=grade_label_name(record.grade_label) or NO_VALUE,
                feedback=record.feedback,
                graded_at=record.graded_at,
            )
        )

    return GradesDashboard(
        statistics=grade_statistics(records),
        courses=[
            CourseGradeTable(summary=summary, rows=rows_by_course[summary.course_id])
            for summary in summarize_by_course(records)
        ],
    )


def _attempts_display(used: int, max_attempts: Optional[int]) -> str:
    if max_attempts is None:
        return "Unlimited attempts"
    return f"{used} of {max_attempts} attempts used"


def _short_date(value: date) -> str:
    return f"{value:%b} {value.day}"


def _range_label(start: Optional[date], end: Optional[date]) -> str:
    start_label = _short_date(start) if start else ""
    end_label = _short_date(end) if end else ""
    separator = " - " if start_label and end_label else ""
    return f"{start_label}{separator}{end_label}"
