from datetime import datetime
from typing import ClassVar, Optional

from pydantic import BaseModel

from ams.schemas.filters import AssessmentType, ResultsStatus, SubmissionStatus
from ams.services.status import safe_percentage


class AssessmentItem(BaseModel):
    """One row of the student assessment list, projected from backend rows."""

    search_fields: ClassVar[tuple[str, ...]] = ("title",)

    id: int
    title: str
    description: Optional[str] = None
    assessment_type: AssessmentType
    course_id: int
    course_code: str
    course_title: str
    due_date: datetime
    total_marks: float

    submission_id: Optional[int] = None
    submitted_at: Optional[datetime] = None
    attempt_number: Optional[int] = None
    max_attempts: Optional[int] = None

    score: Optional[float] = None
    feedback: Optional[str] = None
    graded_at: Optional[datetime] = None
    is_verified: bool = False

    submission_status: SubmissionStatus
    results_status: ResultsStatus

    class Config:
        frozen = True

    @property
    def percentage(self) -> int | None:
        return safe_percentage(self.score, self.total_marks)


class CourseItem(BaseModel):
    search_fields: ClassVar[tuple[str, ...]] = ("title", "code", "instructor_name")

    id: int
    title: str
    code: str
    description: Optional[str] = None
    instructor_name: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    assessments_count: int = 0
    completed_assessments: int = 0
    students_count: int = 0
    average_grade: Optional[int] = None
    progress: Optional[int] = None

    class Config:
        frozen = True

    @property
    def course_id(self) -> int:
        return self.id


class GradeRecord(BaseModel):
    """A verified grade as shown on the student grades dashboard."""

    search_fields: ClassVar[tuple[str, ...]] = ("title", "course_code")

    grade_id: int
    assessment_id: int
    title: str
    assessment_type: AssessmentType
    course_id: int
    course_code: str
    course_title: str
    due_date: datetime
    score: float
    total_marks: float
    percentage: Optional[int] = None
    grade_label: Optional[str] = None
    feedback: Optional[str] = None
    graded_at: datetime
    released_at: Optional[datetime] = None

    class Config:
        frozen = True


class SubmissionRecord(BaseModel):
    """One submission attempt in the student's submission history."""

    search_fields: ClassVar[tuple[str, ...]] = ("title", "course_code")

    submission_id: int
    assessment_id: int
    title: str
    assessment_type: AssessmentType
    course_id: int
    course_code: str
    course_title: str
    due_date: datetime
    submitted_at: datetime
    file_name: Optional[str] = None
    attempt_number: int
    is_latest: bool
    max_attempts: Optional[int] = None
    timeliness: str  # "on_time" | "grace_period" | "late"
    late_by_minutes: int

    class Config:
        frozen = True
