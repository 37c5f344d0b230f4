"""
Backend collaborator.

Views never talk to the database directly; they receive a ``Backend`` with
three operations (fetch_filtered, subscribe, mutate). ``SqlBackend`` is the
SQLAlchemy implementation used by the service; tests may substitute any
object with the same shape.
"""

import logging
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ams.core.config import DEFAULT_MAX_ATTEMPTS
from ams.core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    RemoteError,
    ValidationError,
)
from ams.models.assessment import Assessment
from ams.models.course import Course
from ams.models.enrollment import Enrollment
from ams.models.grade import Grade
from ams.models.submission import Submission
from ams.models.user import User
from ams.schemas.filters import FilterState
from ams.schemas.items import AssessmentItem, CourseItem, GradeRecord, SubmissionRecord
from ams.services import engine
from ams.services.events import ChangeEvent, EventCallback, EventChannel
from ams.services.grades import grade_label_from_percentage
from ams.services.status import (
    as_utc,
    classify_results,
    classify_submission,
    classify_timeliness,
    late_duration,
    safe_percentage,
)

logger = logging.getLogger(__name__)

STUDENT_VISIBLE_COURSE_STATUSES = ("published", "active")


@dataclass(frozen=True)
class Viewer:
    id: int
    role: str

    @classmethod
    def from_user(cls, user: User) -> "Viewer":
        return cls(id=user.id, role=user.role)


class Backend(Protocol):
    def fetch_filtered(
        self, entity_type: str, filters: FilterState, viewer: Viewer
    ) -> tuple[Any, ...]: ...

    def subscribe(self, event_kind: str, callback: EventCallback) -> Callable[[], None]: ...

    def mutate(self, action: str, payload: dict[str, Any]) -> dict[str, Any]: ...


class SqlBackend:
    def __init__(self, session_factory: Callable[[], Session], channel: Optional[EventChannel] = None):
        self._session_factory = session_factory
        self.channel = channel or EventChannel()

        self._fetchers = {
            "assessments": self._fetch_assessments,
            "courses": self._fetch_courses,
            "grades": self._fetch_grades,
            "submissions": self._fetch_submissions,
        }
        self._mutations = {
            "create_course": self._create_course,
            "create_assessment": self._create_assessment,
            "enroll": self._enroll,
            "submit_assessment": self._submit_assessment,
            "grade_submission": self._grade_submission,
            "verify_grade": self._verify_grade,
        }

    # ------------------------------------------------------------------
    # collaborator interface
    # ------------------------------------------------------------------

    def fetch_filtered(self, entity_type: str, filters: FilterState, viewer: Viewer) -> tuple[Any, ...]:
        fetcher = self._fetchers.get(entity_type)
        if fetcher is None:
            raise ValidationError(f"Unknown entity type: {entity_type}")

        with self._session() as db:
            candidates = fetcher(db, filters, viewer)

        return engine.apply(candidates, filters)

    def subscribe(self, event_kind: str, callback: EventCallback) -> Callable[[], None]:
        return self.channel.subscribe(event_kind, callback)

    def mutate(self, action: str, payload: dict[str, Any]) -> dict[str, Any]:
        handler = self._mutations.get(action)
        if handler is None:
            raise ValidationError(f"Unknown action: {action}")

        with self._session() as db:
            result, events = handler(db, payload)
            db.commit()

        logger.info("Mutation %s succeeded (%d event(s))", action, len(events))
        for event in events:
            self.channel.publish(event)
        return result

    @contextmanager
    def _session(self):
        db = self._session_factory()
        try:
            yield db
        except IntegrityError as exc:
            db.rollback()
            logger.warning("Integrity error from backend: %s", exc.orig)
            raise ConflictError("The change conflicts with existing data") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Backend database error")
            raise RemoteError("Backend request failed") from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ------------------------------------------------------------------
    # fetchers (candidate rows; filtering happens in engine.apply)
    # ------------------------------------------------------------------

    def _fetch_assessments(self, db: Session, filters: FilterState, viewer: Viewer) -> list[AssessmentItem]:
        _require_student(viewer, "Assessment filters")

        query = (
            db.query(Assessment, Course)
            .join(Course, Course.id == Assessment.course_id)
            .join(Enrollment, Enrollment.course_id == Course.id)
            .filter(Enrollment.student_id == viewer.id)
        )
        # cheap push-down; engine.apply re-checks it
        if filters.course_id is not None:
            query = query.filter(Course.id == filters.course_id)
        rows = query.order_by(Assessment.id.asc()).all()

        latest = _latest_submissions(db, viewer.id, [a.id for a, _ in rows])

        items = []
        for assessment, course in rows:
            sub = latest.get(assessment.id)
            grade = sub.grade if sub is not None else None
            items.append(_assessment_item(assessment, course, sub, grade))
        return items

    def _fetch_courses(self, db: Session, filters: FilterState, viewer: Viewer) -> list[CourseItem]:
        query = db.query(Course)
        if viewer.role == "student":
            query = query.filter(Course.status.in_(STUDENT_VISIBLE_COURSE_STATUSES))
        elif viewer.role == "instructor":
            query = query.filter(Course.instructor_id == viewer.id)
        courses = query.order_by(Course.id.asc()).all()
        course_ids = [c.id for c in courses]

        assessments_by_course: dict[int, list[Assessment]] = defaultdict(list)
        if course_ids:
            for a in db.query(Assessment).filter(Assessment.course_id.in_(course_ids)).all():
                assessments_by_course[a.course_id].append(a)

        if viewer.role == "student":
            return [
                _student_course_item(db, c, assessments_by_course[c.id], viewer.id)
                for c in courses
            ]

        students = dict(
            db.query(Enrollment.course_id, func.count(Enrollment.id))
            .filter(Enrollment.course_id.in_(course_ids))
            .group_by(Enrollment.course_id)
            .all()
        ) if course_ids else {}

        return [
            CourseItem(
                id=c.id,
                title=c.title,
                code=c.code,
                description=c.description,
                instructor_name=_display_name(c.instructor),
                status=c.status,
                created_at=_utc(c.created_at),
                updated_at=_utc(c.updated_at),
                assessments_count=len(assessments_by_course[c.id]),
                students_count=int(students.get(c.id, 0)),
            )
            for c in courses
        ]

    def _fetch_grades(self, db: Session, filters: FilterState, viewer: Viewer) -> list[GradeRecord]:
        _require_student(viewer, "Grades")

        rows = (
            db.query(Grade, Submission, Assessment, Course)
            .join(Submission, Submission.id == Grade.submission_id)
            .join(Assessment, Assessment.id == Submission.assessment_id)
            .join(Course, Course.id == Assessment.course_id)
            .filter(Submission.student_id == viewer.id, Grade.verified.is_(True))
            .order_by(Grade.graded_at.asc(), Grade.id.asc())
            .all()
        )

        records = []
        for grade, sub, assessment, course in rows:
            pct = safe_percentage(grade.score, assessment.total_marks)
            records.append(
                GradeRecord(
                    grade_id=grade.id,
                    assessment_id=assessment.id,
                    title=assessment.title,
                    assessment_type=assessment.assessment_type,
                    course_id=course.id,
                    course_code=course.code,
                    course_title=course.title,
                    due_date=_utc(assessment.due_date),
                    score=grade.score,
                    total_marks=assessment.total_marks,
                    percentage=pct,
                    grade_label=grade_label_from_percentage(pct) if pct is not None else None,
                    feedback=grade.feedback,
                    graded_at=_utc(grade.graded_at),
                    released_at=_utc(grade.verified_at),
                )
            )
        return records

    def _fetch_submissions(self, db: Session, filters: FilterState, viewer: Viewer) -> list[SubmissionRecord]:
        _require_student(viewer, "Submission history")

        rows = (
            db.query(Submission, Assessment, Course)
            .join(Assessment, Assessment.id == Submission.assessment_id)
            .join(Course, Course.id == Assessment.course_id)
            .filter(Submission.student_id == viewer.id)
            .order_by(Submission.assessment_id.asc(), Submission.attempt_number.asc())
            .all()
        )

        latest_attempt: dict[int, int] = {}
        for sub, _, _ in rows:
            latest_attempt[sub.assessment_id] = max(
                latest_attempt.get(sub.assessment_id, 0), sub.attempt_number
            )

        records = []
        for sub, assessment, course in rows:
            records.append(
                SubmissionRecord(
                    submission_id=sub.id,
                    assessment_id=assessment.id,
                    title=assessment.title,
                    assessment_type=assessment.assessment_type,
                    course_id=course.id,
                    course_code=course.code,
                    course_title=course.title,
                    due_date=_utc(assessment.due_date),
                    submitted_at=_utc(sub.submitted_at),
                    file_name=sub.file_name,
                    attempt_number=sub.attempt_number,
                    is_latest=sub.attempt_number == latest_attempt[sub.assessment_id],
                    max_attempts=_max_attempts(assessment),
                    timeliness=classify_timeliness(sub.submitted_at, assessment.due_date),
                    late_by_minutes=late_duration(sub.submitted_at, assessment.due_date),
                )
            )
        return records

    # ------------------------------------------------------------------
    # mutations: each returns (result, events)
    # ------------------------------------------------------------------

    def _create_course(self, db: Session, payload: dict[str, Any]):
        course = Course(
            title=payload["title"],
            code=payload["code"],
            description=payload.get("description"),
            status=payload.get("status") or "published",
            instructor_id=payload.get("instructor_id"),
        )
        db.add(course)
        db.flush()

        result = {
            "id": course.id,
            "title": course.title,
            "code": course.code,
            "description": course.description,
            "status": course.status,
            "instructor_id": course.instructor_id,
        }
        return result, [ChangeEvent("courses", "insert", course.id, result)]

    def _create_assessment(self, db: Session, payload: dict[str, Any]):
        course = _get_or_404(db, Course, payload["course_id"], "Course not found")
        actor = _get_or_404(db, User, payload["actor_id"], "User not found")
        if actor.role != "admin" and course.instructor_id != actor.id:
            raise PermissionDeniedError("Only the course instructor can add assessments")

        assessment = Assessment(
            course_id=course.id,
            title=payload["title"],
            description=payload.get("description"),
            assessment_type=payload.get("assessment_type") or "assignment",
            due_date=payload["due_date"],
            total_marks=payload.get("total_marks", 100),
            max_attempts=payload.get("max_attempts"),
        )
        db.add(assessment)
        db.flush()

        result = {
            "id": assessment.id,
            "course_id": course.id,
            "title": assessment.title,
            "description": assessment.description,
            "assessment_type": assessment.assessment_type,
            "due_date": _utc(assessment.due_date),
            "total_marks": assessment.total_marks,
            "max_attempts": assessment.max_attempts,
        }
        return result, [ChangeEvent("assessments", "insert", assessment.id, {"course_id": course.id})]

    def _enroll(self, db: Session, payload: dict[str, Any]):
        course = _get_or_404(db, Course, payload["course_id"], "Course not found")

        existing = (
            db.query(Enrollment)
            .filter(
                Enrollment.course_id == course.id,
                Enrollment.student_id == payload["student_id"],
            )
            .first()
        )
        if existing:
            raise ConflictError("Already enrolled")

        enrollment = Enrollment(student_id=payload["student_id"], course_id=course.id)
        db.add(enrollment)
        db.flush()

        result = {
            "id": enrollment.id,
            "student_id": enrollment.student_id,
            "course_id": enrollment.course_id,
            "course_code": course.code,
            "enrolled_at": _utc(enrollment.enrolled_at) if enrollment.enrolled_at else _now(),
        }
        return result, [ChangeEvent("enrollments", "insert", enrollment.id, {"course_id": course.id})]

    def _submit_assessment(self, db: Session, payload: dict[str, Any]):
        assessment = _get_or_404(db, Assessment, payload["assessment_id"], "Assessment not found")
        student_id = payload["student_id"]

        enrolled = (
            db.query(Enrollment)
            .filter(
                Enrollment.course_id == assessment.course_id,
                Enrollment.student_id == student_id,
            )
            .first()
            is not None
        )
        if not enrolled:
            raise PermissionDeniedError("Not enrolled in this course")

        attempts_used = (
            db.query(func.count(Submission.id))
            .filter(
                Submission.assessment_id == assessment.id,
                Submission.student_id == student_id,
            )
            .scalar()
        ) or 0

        max_attempts = _max_attempts(assessment)
        if max_attempts is not None and attempts_used >= max_attempts:
            raise ConflictError(f"Maximum of {max_attempts} attempt(s) already used")

        submitted_at = payload.get("submitted_at") or _now()
        sub = Submission(
            assessment_id=assessment.id,
            student_id=student_id,
            content=payload.get("content"),
            file_name=payload.get("file_name"),
            submitted_at=submitted_at,
            attempt_number=attempts_used + 1,
        )
        db.add(sub)
        db.flush()

        result = {
            "id": sub.id,
            "assessment_id": assessment.id,
            "student_id": student_id,
            "content": sub.content,
            "file_name": sub.file_name,
            "submitted_at": _utc(submitted_at),
            "attempt_number": sub.attempt_number,
            "timeliness": classify_timeliness(submitted_at, assessment.due_date),
            "late_by_minutes": late_duration(submitted_at, assessment.due_date),
        }
        return result, [ChangeEvent("submissions", "insert", sub.id, {"assessment_id": assessment.id})]

    def _grade_submission(self, db: Session, payload: dict[str, Any]):
        sub = _get_or_404(db, Submission, payload["submission_id"], "Submission not found")
        assessment = sub.assessment
        grader = _get_or_404(db, User, payload["grader_id"], "User not found")
        if grader.role != "admin" and assessment.course.instructor_id != grader.id:
            raise PermissionDeniedError("Only the course instructor can grade")

        score = payload["score"]
        validate_score(score, assessment.total_marks)

        grade = sub.grade
        if grade is not None and grade.verified:
            raise ConflictError("Verified grades cannot be changed")

        action = "update" if grade is not None else "insert"
        if grade is None:
            grade = Grade(submission_id=sub.id)
            db.add(grade)

        grade.score = score
        grade.feedback = payload.get("feedback")
        grade.graded_by = grader.id
        grade.graded_at = _now()
        db.flush()

        result = _grade_result(grade, assessment)
        return result, [ChangeEvent("grades", action, grade.id, {"submission_id": sub.id})]

    def _verify_grade(self, db: Session, payload: dict[str, Any]):
        grade = _get_or_404(db, Grade, payload["grade_id"], "Grade not found")
        verifier = _get_or_404(db, User, payload["verifier_id"], "User not found")
        if verifier.role != "admin":
            raise PermissionDeniedError("Only administrators can verify grades")
        if grade.verified:
            raise ConflictError("Grade already verified")

        grade.verified = True
        grade.verified_by = verifier.id
        grade.verified_at = _now()
        db.flush()

        result = _grade_result(grade, grade.submission.assessment)
        return result, [ChangeEvent("grades", "update", grade.id, {"verified": True})]


def validate_score(score: float, total_marks: float) -> None:
    if score < 0 or score > total_marks:
        raise ValidationError(f"score must be between 0 and {total_marks:g}")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    return as_utc(value) if value is not None else None


def _require_student(viewer: Viewer, what: str) -> None:
    if viewer.role != "student":
        raise PermissionDeniedError(f"{what} are only available to students")


def _get_or_404(db: Session, model, record_id: int, detail: str):
    record = db.get(model, record_id)
    if record is None:
        raise NotFoundError(detail)
    return record


def _display_name(user: Optional[User]) -> Optional[str]:
    if user is None:
        return None
    return user.display_name


def _max_attempts(assessment: Assessment) -> Optional[int]:
    if assessment.max_attempts is not None:
        return assessment.max_attempts
    return DEFAULT_MAX_ATTEMPTS


def _latest_submissions(db: Session, student_id: int, assessment_ids: Sequence[int]) -> dict[int, Submission]:
    if not assessment_ids:
        return {}

    subs = (
        db.query(Submission)
        .filter(
            Submission.student_id == student_id,
            Submission.assessment_id.in_(assessment_ids),
        )
        .all()
    )
    latest: dict[int, Submission] = {}
    for sub in subs:
        current = latest.get(sub.assessment_id)
        if current is None or sub.attempt_number > current.attempt_number:
            latest[sub.assessment_id] = sub
    return latest


def _assessment_item(
    assessment: Assessment,
    course: Course,
    sub: Optional[Submission],
    grade: Optional[Grade],
) -> AssessmentItem:
    submitted_at = sub.submitted_at if sub is not None else None
    graded_at = grade.graded_at if grade is not None else None
    is_verified = bool(grade is not None and grade.verified)

    return AssessmentItem(
        id=assessment.id,
        title=assessment.title,
        description=assessment.description,
        assessment_type=assessment.assessment_type,
        course_id=course.id,
        course_code=course.code,
        course_title=course.title,
        due_date=_utc(assessment.due_date),
        total_marks=assessment.total_marks,
        submission_id=sub.id if sub is not None else None,
        submitted_at=_utc(submitted_at),
        attempt_number=sub.attempt_number if sub is not None else None,
        max_attempts=_max_attempts(assessment),
        # students only see verified scores
        score=grade.score if is_verified else None,
        feedback=grade.feedback if is_verified else None,
        graded_at=_utc(graded_at),
        is_verified=is_verified,
        submission_status=classify_submission(assessment.due_date, submitted_at, graded_at),
        results_status=classify_results(graded_at, is_verified),
    )


def _student_course_item(
    db: Session,
    course: Course,
    assessments: list[Assessment],
    student_id: int,
) -> CourseItem:
    assessment_ids = [a.id for a in assessments]
    total_marks = {a.id: a.total_marks for a in assessments}

    completed = 0
    percentages: list[int] = []
    if assessment_ids:
        completed = (
            db.query(func.count(func.distinct(Submission.assessment_id)))
            .filter(
                Submission.student_id == student_id,
                Submission.assessment_id.in_(assessment_ids),
            )
            .scalar()
        ) or 0

        graded = (
            db.query(Submission.assessment_id, Grade.score)
            .join(Grade, Grade.submission_id == Submission.id)
            .filter(
                Submission.student_id == student_id,
                Submission.assessment_id.in_(assessment_ids),
                Grade.verified.is_(True),
            )
            .all()
        )
        for assessment_id, score in graded:
            pct = safe_percentage(score, total_marks[assessment_id])
            if pct is not None:
                percentages.append(pct)

    progress = safe_percentage(completed, len(assessments)) or 0
    average = round(sum(percentages) / len(percentages)) if percentages else None

    return CourseItem(
        id=course.id,
        title=course.title,
        code=course.code,
        description=course.description,
        instructor_name=_display_name(course.instructor),
        status="completed" if progress == 100 else "active",
        created_at=_utc(course.created_at),
        updated_at=_utc(course.updated_at),
        assessments_count=len(assessments),
        completed_assessments=completed,
        average_grade=average,
        progress=progress,
    )


def _grade_result(grade: Grade, assessment: Assessment) -> dict[str, Any]:
    return {
        "id": grade.id,
        "submission_id": grade.submission_id,
        "score": grade.score,
        "total_marks": assessment.total_marks,
        "percentage": safe_percentage(grade.score, assessment.total_marks),
        "feedback": grade.feedback,
        "graded_at": _utc(grade.graded_at),
        "verified": grade.verified,
        "verified_at": _utc(grade.verified_at),
    }
