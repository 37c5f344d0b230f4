from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, status
from sqlalchemy.orm import Session

from ams.core.current_user import resolve_user
from ams.core.deps import get_backend, get_db
from ams.core.permissions import require_student
from ams.models.user import User
from ams.routers.live import serve_live_view
from ams.schemas.filters import (
    AssessmentType,
    FilterState,
    ResultsStatus,
    SortField,
    SortOrder,
    SubmissionStatus,
    ViewKind,
)
from ams.schemas.submission import SubmissionCreate, SubmissionRead
from ams.schemas.views import AssessmentCard, ListPage
from ams.services import filter_state, presentation
from ams.services.backend import Backend, Viewer
from ams.services.engine import Paginator

router = APIRouter()


def assessment_filters(
    search: str = "",
    course_id: Optional[int] = None,
    assessment_type: Optional[AssessmentType] = None,
    submission_status: Optional[SubmissionStatus] = None,
    results_status: Optional[ResultsStatus] = None,
    due_date_start: Optional[date] = None,
    due_date_end: Optional[date] = None,
    submission_date_start: Optional[date] = None,
    submission_date_end: Optional[date] = None,
    sort_field: SortField = SortField.DATE,
    sort_order: SortOrder = SortOrder.DESC,
) -> FilterState:
    return filter_state.build(
        view=ViewKind.ASSESSMENTS,
        search_query=search,
        course_id=course_id,
        assessment_type=assessment_type,
        submission_status=submission_status,
        results_status=results_status,
        due_date_start=due_date_start,
        due_date_end=due_date_end,
        submission_date_start=submission_date_start,
        submission_date_end=submission_date_end,
        sort_field=sort_field,
        sort_order=sort_order,
    )


@router.get("/assessments/me", response_model=ListPage[AssessmentCard])
def my_assessments(
    page: int = Query(default=1, ge=1),
    filters: FilterState = Depends(assessment_filters),
    backend: Backend = Depends(get_backend),
    me: User = Depends(require_student),
):
    items = backend.fetch_filtered("assessments", filters, Viewer.from_user(me))

    paginator = Paginator()
    paginator.on_results(len(items))
    paginator.go_to(page)

    course_codes = {item.course_id: item.course_code for item in items}
    return presentation.list_page(
        items, paginator, filters, presentation.assessment_card, course_codes=course_codes
    )


@router.post(
    "/assessments/{assessment_id}/submissions",
    response_model=SubmissionRead,
    status_code=status.HTTP_201_CREATED,
)
def submit_assessment(
    assessment_id: int,
    payload: SubmissionCreate,
    backend: Backend = Depends(get_backend),
    me: User = Depends(require_student),
):
    return backend.mutate(
        "submit_assessment",
        {
            "assessment_id": assessment_id,
            "student_id": me.id,
            "content": payload.content,
            "file_name": payload.file_name,
        },
    )


@router.websocket("/assessments/me/live")
async def my_assessments_live(
    websocket: WebSocket,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    backend: Backend = Depends(get_backend),
):
    user = resolve_user(db, user_id)
    db.close()
    if user is None or user.role != "student":
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await serve_live_view(websocket, backend, user, "assessments")
