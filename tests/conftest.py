import os
import tempfile
import time
import uuid

# Must happen before db.py is imported anywhere
_DB_DIR = tempfile.mkdtemp(prefix="studyhall-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_DB_DIR, "test.db")
os.environ["ADMIN_TOKEN"] = "test-admin"
os.environ["STUDYHALL_API_KEY"] = "test-key"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import models  # noqa: E402,F401
from db import Base, engine  # noqa: E402
from helpers import ADMIN, FOUR_QUESTIONS  # noqa: E402
from main import app  # noqa: E402
from sessions import MAX_SESSIONS, MAX_SESSIONS_PER_USER, store  # noqa: E402

Base.metadata.create_all(engine)


@pytest.fixture(autouse=True)
def _fresh_session_store():
    store.clear()
    yield
    store.clear()
    store.clock = time.monotonic
    store.max_sessions = MAX_SESSIONS
    store.max_per_user = MAX_SESSIONS_PER_USER


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def user():
    """Headers for a brand-new user, so tests never see each other's rows."""
    return {"x-user-id": f"user-{uuid.uuid4().hex[:12]}"}


@pytest.fixture
def course_with_quiz(client):
    """A course with two lessons; the first lesson has a 4-question quiz (pass mark 70)."""

    def make(time_limit_seconds=None, passing_score=70):
        r = client.post(
            "/courses", json={"title": "Science basics", "subject": "science"}, headers=ADMIN
        )
        assert r.status_code == 201, r.text
        course = r.json()
        lessons = []
        for order in (1, 2):
            r = client.post(
                "/lessons",
                json={"course_id": course["id"], "title": f"Lesson {order}", "order": order},
                headers=ADMIN,
            )
            assert r.status_code == 201, r.text
            lessons.append(r.json())
        r = client.post(
            "/quizzes",
            json={
                "lesson_id": lessons[0]["id"],
                "title": "Warm-up",
                "questions": FOUR_QUESTIONS,
                "time_limit_seconds": time_limit_seconds,
                "passing_score": passing_score,
            },
            headers=ADMIN,
        )
        assert r.status_code == 201, r.text
        return {"course": course, "lessons": lessons, "quiz": r.json()}

    return make
