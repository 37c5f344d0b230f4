from fastapi import APIRouter, Depends, status

from ams.core.deps import get_backend
from ams.core.permissions import require_student
from ams.models.user import User
from ams.schemas.enrollment import EnrollmentCreate, EnrollmentRead
from ams.services.backend import Backend

router = APIRouter()


@router.post("", response_model=EnrollmentRead, status_code=status.HTTP_201_CREATED)
def enroll_me(
    payload: EnrollmentCreate,
    backend: Backend = Depends(get_backend),
    me: User = Depends(require_student),
):
    return backend.mutate("enroll", {"student_id": me.id, "course_id": payload.course_id})
