from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, model_validator


class ViewKind(str, Enum):
    ASSESSMENTS = "assessments"
    COURSES = "courses"


class AssessmentType(str, Enum):
    ASSIGNMENT = "assignment"
    QUIZ = "quiz"
    EXAMINATION = "examination"
    PROJECT = "project"
    PRACTICAL = "practical"
    OTHER = "other"


class SubmissionStatus(str, Enum):
    NOT_SUBMITTED = "not_submitted"
    SUBMITTED = "submitted"
    GRADED = "graded"


class ResultsStatus(str, Enum):
    AVAILABLE = "available"
    PENDING = "pending"
    NOT_APPLICABLE = "not_applicable"


class CourseStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"
    DRAFT = "draft"
    PUBLISHED = "published"


class SortField(str, Enum):
    DATE = "date"
    TITLE = "title"
    GRADE = "grade"
    STATUS = "status"
    NEWEST = "newest"
    UPDATED = "updated"
    PROGRESS = "progress"
    ASSESSMENTS = "assessments"
    CODE = "code"
    NAME = "name"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


VIEW_SORT_FIELDS = {
    ViewKind.ASSESSMENTS: (SortField.DATE, SortField.TITLE, SortField.GRADE, SortField.STATUS),
    ViewKind.COURSES: (
        SortField.NEWEST,
        SortField.UPDATED,
        SortField.PROGRESS,
        SortField.ASSESSMENTS,
        SortField.CODE,
        SortField.NAME,
    ),
}

VIEW_DEFAULT_SORT = {
    ViewKind.ASSESSMENTS: (SortField.DATE, SortOrder.DESC),
    ViewKind.COURSES: (SortField.NEWEST, SortOrder.DESC),
}

# Pairs cleared together by the "remove filter" affordance
DATE_RANGES = {
    "due_date": ("due_date_start", "due_date_end"),
    "submission_date": ("submission_date_start", "submission_date_end"),
}


class FilterState(BaseModel):
    """Active search/filter/sort selection for one list view.

    ``None`` on any dimension means the dimension is unconstrained.
    """

    view: ViewKind = ViewKind.ASSESSMENTS

    search_query: str = ""
    course_id: Optional[int] = None
    assessment_type: Optional[AssessmentType] = None
    submission_status: Optional[SubmissionStatus] = None
    results_status: Optional[ResultsStatus] = None
    course_status: Optional[CourseStatus] = None

    due_date_start: Optional[date] = None
    due_date_end: Optional[date] = None
    submission_date_start: Optional[date] = None
    submission_date_end: Optional[date] = None

    sort_field: SortField = SortField.DATE
    sort_order: SortOrder = SortOrder.DESC

    class Config:
        frozen = True

    @model_validator(mode="after")
    def _check_ranges_and_sort(self):
        for start_key, end_key in DATE_RANGES.values():
            start, end = getattr(self, start_key), getattr(self, end_key)
            if start is not None and end is not None and start > end:
                raise ValueError(f"{start_key} must not be after {end_key}")

        if self.sort_field not in VIEW_SORT_FIELDS[self.view]:
            raise ValueError(
                f"sort_field '{self.sort_field.value}' is not available for the {self.view.value} view"
            )
        return self
