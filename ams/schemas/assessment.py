from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from ams.schemas.filters import AssessmentType

class AssessmentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    assessment_type: AssessmentType = AssessmentType.ASSIGNMENT
    due_date: datetime
    total_marks: float = Field(default=100, gt=0)
    max_attempts: Optional[int] = Field(default=None, ge=1)


class AssessmentRead(BaseModel):
    id: int
    course_id: int
    title: str
    description: Optional[str]
    assessment_type: AssessmentType
    due_date: datetime
    total_marks: float
    max_attempts: Optional[int]

    class Config:
        from_attributes = True
