from pydantic import BaseModel, Field

from ams.schemas.filters import CourseStatus


class CourseCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=2, max_length=32)
    description: str | None = None
    status: CourseStatus = CourseStatus.PUBLISHED
    # admins may create a course on behalf of an instructor
    instructor_id: int | None = None


class CourseRead(BaseModel):
    id: int
    title: str
    code: str
    description: str | None = None
    status: CourseStatus
    instructor_id: int | None = None

    class Config:
        from_attributes = True
