import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ams.core.errors import AMSError
from ams.core.logging_middleware import LoggingMiddleware
from ams.db.init_db import init_db
from ams.db.session import SessionLocal
from ams.routers.assessments import router as assessments_router
from ams.routers.courses import router as courses_router
from ams.routers.enrollments import router as enrollments_router
from ams.routers.grades import router as grades_router
from ams.routers.submissions import router as submissions_router
from ams.services.backend import SqlBackend

logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)

app = FastAPI(title="Assessment & Marking System")

# Backend collaborator; tests swap this for one bound to the test database
app.state.backend = SqlBackend(SessionLocal)

# Middleware
app.add_middleware(LoggingMiddleware)


@app.exception_handler(AMSError)
async def ams_error_handler(request: Request, exc: AMSError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Startup event
@app.on_event("startup")
def on_startup():
    init_db()


# Include routers
app.include_router(courses_router, prefix="/courses", tags=["courses"])
app.include_router(enrollments_router, prefix="/enrollments", tags=["enrollments"])
app.include_router(assessments_router, tags=["assessments"])
app.include_router(submissions_router, tags=["submissions"])
app.include_router(grades_router, tags=["grades"])
