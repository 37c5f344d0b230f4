from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

from ams.schemas.filters import AssessmentType, FilterState, ResultsStatus, SubmissionStatus
from ams.services.grades import CourseGradeSummary, GradeStatistics

T = TypeVar("T")


class FilterTag(BaseModel):
    key: str
    label: str


class AssessmentCard(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    course_id: int
    course_code: str
    course_title: str

    assessment_type: AssessmentType
    type_label: str

    due_date: datetime
    days_until_due: int
    urgency: str  # "normal" | "due_soon" | "overdue"
    is_overdue: bool

    submission_status: SubmissionStatus
    status_label: str
    status_variant: str
    results_status: ResultsStatus
    results_label: str
    results_variant: str

    submitted_at: Optional[datetime] = None
    attempt_number: Optional[int] = None
    max_attempts: Optional[int] = None

    score: Optional[float] = None
    total_marks: float
    percentage: Optional[int] = None
    percentage_display: str
    grade_label: Optional[str] = None
    feedback: Optional[str] = None


class CourseCard(BaseModel):
    id: int
    title: str
    code: str
    description: Optional[str] = None
    instructor_name: Optional[str] = None
    status: str
    status_label: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    assessments_count: int
    completed_assessments: int
    students_count: int
    average_grade: Optional[int] = None
    progress: Optional[int] = None
    progress_display: str


class ListPage(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    showing_from: int
    showing_to: int
    active_filter_count: int
    has_active_filters: bool
    tags: list[FilterTag]
    filters: FilterState


class SubmissionAttempt(BaseModel):
    submission_id: int
    attempt_number: int
    submitted_at: datetime
    file_name: Optional[str] = None
    is_latest: bool
    timeliness: str
    timeliness_label: str
    late_display: str


class SubmissionHistoryGroup(BaseModel):
    assessment_id: int
    title: str
    course_code: str
    due_date: datetime
    attempts_used: int
    max_attempts: Optional[int] = None
    attempts_display: str
    attempts: list[SubmissionAttempt]


class GradeRow(BaseModel):
    grade_id: int
    assessment_id: int
    title: str
    type_label: str
    score: float
    total_marks: float
    percentage_display: str
    grade_label: Optional[str] = None
    grade_label_name: str
    feedback: Optional[str] = None
    graded_at: datetime


class CourseGradeTable(BaseModel):
    summary: CourseGradeSummary
    rows: list[GradeRow]


class GradesDashboard(BaseModel):
    statistics: GradeStatistics
    courses: list[CourseGradeTable]
