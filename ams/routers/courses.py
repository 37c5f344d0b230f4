from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status
from sqlalchemy.orm import Session

from ams.core.current_user import get_current_user, resolve_user
from ams.core.deps import get_backend, get_db
from ams.core.permissions import require_instructor
from ams.models.user import User
from ams.routers.live import serve_live_view
from ams.schemas.assessment import AssessmentCreate, AssessmentRead
from ams.schemas.course import CourseCreate, CourseRead
from ams.schemas.filters import CourseStatus, FilterState, SortField, SortOrder, ViewKind
from ams.schemas.views import CourseCard, ListPage
from ams.services import filter_state, presentation
from ams.services.backend import Backend, Viewer
from ams.services.engine import Paginator

router = APIRouter()


def course_filters(
    search: str = "",
    course_status: Optional[CourseStatus] = None,
    sort_field: SortField = SortField.NEWEST,
    sort_order: SortOrder = SortOrder.DESC,
) -> FilterState:
    return filter_state.build(
        view=ViewKind.COURSES,
        search_query=search,
        course_status=course_status,
        sort_field=sort_field,
        sort_order=sort_order,
    )


@router.get("/overview", response_model=ListPage[CourseCard])
def course_overview(
    page: int = Query(default=1, ge=1),
    filters: FilterState = Depends(course_filters),
    backend: Backend = Depends(get_backend),
    current_user: User = Depends(get_current_user),
):
    items = backend.fetch_filtered("courses", filters, Viewer.from_user(current_user))

    paginator = Paginator(reset_on_resize=True)
    paginator.on_results(len(items))
    paginator.go_to(page)

    return presentation.list_page(items, paginator, filters, presentation.course_card)


@router.post("/", response_model=CourseRead, status_code=status.HTTP_201_CREATED)
def create_course(
    payload: CourseCreate,
    backend: Backend = Depends(get_backend),
    instructor: User = Depends(require_instructor),
):
    instructor_id = instructor.id
    if payload.instructor_id is not None and payload.instructor_id != instructor.id:
        if instructor.role != "admin":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only admins can assign another instructor",
            )
        instructor_id = payload.instructor_id

    return backend.mutate(
        "create_course",
        {
            "title": payload.title,
            "code": payload.code,
            "description": payload.description,
            "status": payload.status.value,
            "instructor_id": instructor_id,
        },
    )


@router.post(
    "/{course_id}/assessments",
    response_model=AssessmentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_assessment(
    course_id: int,
    payload: AssessmentCreate,
    backend: Backend = Depends(get_backend),
    instructor: User = Depends(require_instructor),
):
    return backend.mutate(
        "create_assessment",
        {
            "course_id": course_id,
            "actor_id": instructor.id,
            "title": payload.title,
            "description": payload.description,
            "assessment_type": payload.assessment_type.value,
            "due_date": payload.due_date,
            "total_marks": payload.total_marks,
            "max_attempts": payload.max_attempts,
        },
    )


@router.websocket("/overview/live")
async def course_overview_live(
    websocket: WebSocket,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    backend: Backend = Depends(get_backend),
):
    user = resolve_user(db, user_id)
    db.close()
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await serve_live_view(websocket, backend, user, "courses", grid=True)
