from fastapi import APIRouter, Depends

from ams.core.deps import get_backend
from ams.core.permissions import require_student
from ams.models.user import User
from ams.schemas.views import SubmissionHistoryGroup
from ams.services import filter_state, presentation
from ams.services.backend import Backend, Viewer

router = APIRouter()


@router.get("/submissions/me/history", response_model=list[SubmissionHistoryGroup])
def my_submission_history(
    course_id: int | None = None,
    backend: Backend = Depends(get_backend),
    me: User = Depends(require_student),
):
    filters = filter_state.update(filter_state.default_filter_state(), "course_id", course_id)
    records = backend.fetch_filtered("submissions", filters, Viewer.from_user(me))
    return presentation.group_history(records)
