from fastapi import APIRouter, Depends

from ams.core.deps import get_backend
from ams.core.permissions import require_admin, require_instructor, require_student
from ams.models.user import User
from ams.schemas.submission import GradeRead, SubmissionGradeUpdate
from ams.schemas.views import GradesDashboard
from ams.services import filter_state, presentation
from ams.services.backend import Backend, Viewer

router = APIRouter()


@router.patch("/submissions/{submission_id}/grade", response_model=GradeRead)
def grade_submission(
    submission_id: int,
    payload: SubmissionGradeUpdate,
    backend: Backend = Depends(get_backend),
    instructor: User = Depends(require_instructor),
):
    return backend.mutate(
        "grade_submission",
        {
            "submission_id": submission_id,
            "grader_id": instructor.id,
            "score": payload.score,
            "feedback": payload.feedback,
        },
    )


@router.post("/grades/{grade_id}/verify", response_model=GradeRead)
def verify_grade(
    grade_id: int,
    backend: Backend = Depends(get_backend),
    admin: User = Depends(require_admin),
):
    return backend.mutate("verify_grade", {"grade_id": grade_id, "verifier_id": admin.id})


@router.get("/grades/me", response_model=GradesDashboard)
def my_grades(
    backend: Backend = Depends(get_backend),
    me: User = Depends(require_student),
):
    filters = filter_state.default_filter_state()
    records = backend.fetch_filtered("grades", filters, Viewer.from_user(me))
    return presentation.grades_dashboard(records)
