import os

TEST_DB_FILE = "test_grading_monitor.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"

# must be set before the app reads its config
os.environ.setdefault("DATABASE_URL", TEST_DB_URL)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.core.deps import get_db  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models.enums import SessionStatus  # noqa: E402
from app.models.grading_session import GradingSession  # noqa: E402
from app.models.student import Student  # noqa: E402
from app.models.user import User  # noqa: E402
from app.schemas.task import GradingTaskResult  # noqa: E402
from app.services.grading_client import get_grading_client  # noqa: E402

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


class FakeGradingClient:
    """Stands in for the grading server. Unknown tasks report PENDING."""

    def __init__(self):
        self.responses = {}
        self.calls = []
        self.uploads = []
        self.upload_response = {"task_id": "task-uploaded", "status": "PENDING"}

    def set(self, task_id, status=None, result=None, error=None):
        self.responses[task_id] = GradingTaskResult(status=status, result=result, error=error)

    def fail(self, task_id, exc):
        self.responses[task_id] = exc

    def fetch_task_status(self, task_id):
        self.calls.append(task_id)
        value = self.responses.get(task_id)
        if isinstance(value, Exception):
            raise value
        if value is None:
            return GradingTaskResult(status="PENDING")
        return value

    def submit_grading(self, pdf_content, filename, content_type, grading_guide_json_str):
        self.uploads.append((filename, pdf_content, content_type, grading_guide_json_str))
        return dict(self.upload_response)


def score_payload(*questions):
    """Flat grading result: questions are (question_id, score, max_score)."""
    return {
        "total_score": sum(q[1] for q in questions),
        "max_score": sum(q[2] for q in questions),
        "feedback": [
            {
                "question_id": qid,
                "score": score,
                "max_score": max_score,
                "feedback": f"Feedback for {qid}",
                "confidence": 0.9,
                "keywords": ["method"],
            }
            for qid, score, max_score in questions
        ],
    }


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


@pytest.fixture(autouse=True)
def clean_tables():
    """Every test starts from empty tables (child -> parent)."""
    db = TestingSessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
        yield
    finally:
        db.close()


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def grading_client():
    return FakeGradingClient()


@pytest.fixture()
def client(grading_client):
    """Test client that uses the test DB session and the fake grading server."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_grading_client] = lambda: grading_client
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_session(db):
    """Factory: a session with one student per status given, task ids t-<session>-<n>."""

    def _make(statuses=(), title="Midterm", with_tasks=True, session_status=SessionStatus.PENDING):
        user = db.query(User).filter(User.email == "default@example.com").first()
        if user is None:
            user = User(email="default@example.com", name="Default User")
            db.add(user)
            db.commit()

        session = GradingSession(
            user_id=user.id,
            title=title,
            subject="Physics",
            exam_year="2024",
            num_students=max(len(statuses), 1),
            grading_rubric='{"q1": 10}',
            status=session_status,
        )
        db.add(session)
        db.commit()

        for i, status in enumerate(statuses):
            db.add(
                Student(
                    grading_session_id=session.id,
                    name=f"Student {i}",
                    task_id=f"t-{session.id}-{i}" if with_tasks else None,
                    status=status,
                )
            )
        db.commit()
        db.refresh(session)
        return session

    return _make

