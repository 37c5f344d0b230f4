from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SubmissionCreate(BaseModel):
    content: Optional[str] = None
    file_name: Optional[str] = Field(default=None, max_length=255)


class SubmissionRead(BaseModel):
    id: int
    assessment_id: int
    student_id: int
    content: Optional[str]
    file_name: Optional[str] = None
    submitted_at: datetime
    attempt_number: int

    # computed against the assessment's due date
    timeliness: str
    late_by_minutes: int


class SubmissionGradeUpdate(BaseModel):
    score: float
    feedback: Optional[str] = None


class GradeRead(BaseModel):
    id: int
    submission_id: int
    score: float
    total_marks: float
    percentage: Optional[int] = None
    feedback: Optional[str] = None
    graded_at: datetime
    verified: bool
    verified_at: Optional[datetime] = None
