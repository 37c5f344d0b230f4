from datetime import datetime

from pydantic import BaseModel


class EnrollmentCreate(BaseModel):
    course_id: int


class EnrollmentRead(BaseModel):
    id: int
    student_id: int
    course_id: int
    course_code: str
    enrolled_at: datetime
