import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("AMS_DATABASE_URL", "sqlite:///./test_ams.db")
os.environ.setdefault("AMS_DEBOUNCE_SECONDS", "0.05")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ams.core.deps import get_db
from ams.db.base_class import Base
from ams.main import app
from ams.models.assessment import Assessment
from ams.models.course import Course
from ams.models.enrollment import Enrollment
from ams.models.grade import Grade
from ams.models.submission import Submission
from ams.models.user import User
from ams.services.backend import SqlBackend

TEST_DB_FILE = "test_ams.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create a fresh schema once for the whole test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)


@pytest.fixture()
def seed():
    """Seed a clean dataset for each test and return the ids tests need."""
    db = TestingSessionLocal()
    try:
        # Clear tables (child -> parent)
        db.query(Grade).delete()
        db.query(Submission).delete()
        db.query(Enrollment).delete()
        db.query(Assessment).delete()
        db.query(Course).delete()
        db.query(User).delete()
        db.commit()

        # Users
        student = User(email="student1@example.com", full_name="Student One", role="student")
        other = User(email="student2@example.com", full_name="Student Two", role="student")
        instructor = User(email="instructor1@example.com", full_name="Ada Lovelace", role="instructor")
        admin = User(email="admin@example.com", full_name="Admin", role="admin")
        db.add_all([student, other, instructor, admin])
        db.commit()

        # Courses
        now = datetime.now(timezone.utc)
        cs101 = Course(
            title="Intro to Programming",
            code="CS101",
            status="published",
            instructor_id=instructor.id,
            created_at=now - timedelta(days=30),
        )
        ma201 = Course(
            title="Linear Algebra",
            code="MA201",
            status="active",
            instructor_id=instructor.id,
            created_at=now - timedelta(days=10),
        )
        draft = Course(
            title="Draft Course",
            code="DR100",
            status="draft",
            instructor_id=instructor.id,
            created_at=now - timedelta(days=1),
        )
        db.add_all([cs101, ma201, draft])
        db.commit()

        # Enrollment
        db.add_all(
            [
                Enrollment(course_id=cs101.id, student_id=student.id),
                Enrollment(course_id=ma201.id, student_id=student.id),
                Enrollment(course_id=cs101.id, student_id=other.id),
            ]
        )
        db.commit()

        quiz = Assessment(
            course_id=cs101.id,
            title="Quiz 1",
            assessment_type="quiz",
            due_date=now + timedelta(days=3),
            total_marks=20,
        )
        project = Assessment(
            course_id=cs101.id,
            title="Project Alpha",
            assessment_type="project",
            due_date=now + timedelta(days=10),
            total_marks=100,
            max_attempts=2,
        )
        midterm = Assessment(
            course_id=cs101.id,
            title="Midterm Examination",
            assessment_type="examination",
            due_date=now - timedelta(days=2),
            total_marks=50,
        )
        weekly = Assessment(
            course_id=ma201.id,
            title="Weekly Quiz 2",
            assessment_type="quiz",
            due_date=now + timedelta(days=1),
            total_marks=60,
        )
        db.add_all([quiz, project, midterm, weekly])
        db.commit()

        ids = {
            "student": student.id,
            "other": other.id,
            "instructor": instructor.id,
            "admin": admin.id,
            "cs101": cs101.id,
            "ma201": ma201.id,
            "draft": draft.id,
            "quiz": quiz.id,
            "project": project.id,
            "midterm": midterm.id,
            "weekly": weekly.id,
        }
        yield ids
    finally:
        db.close()


@pytest.fixture()
def backend():
    return SqlBackend(TestingSessionLocal)


@pytest.fixture()
def client(seed, backend):
    """Test client that uses the test DB session via dependency override."""
    app.dependency_overrides[get_db] = override_get_db
    previous = app.state.backend
    app.state.backend = backend
    with TestClient(app) as c:
        yield c
    app.state.backend = previous
    app.dependency_overrides.clear()
