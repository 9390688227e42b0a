import json
import os

# Settings are read at import time, so configure the environment first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CLEANUP_INTERVAL_SECONDS"] = "0"
os.environ["AI_BACKOFF_SECONDS"] = "0"
os.environ["GEMINI_API_KEY"] = "test-key"
os.environ["OPENROUTER_API_KEY"] = ""
os.environ["ENVIRONMENT"] = "development"

import pytest
from fastapi.testclient import TestClient

from toefl_quiz.db import Base, SessionLocal, engine
from toefl_quiz.main import app
from toefl_quiz.models import AuthUser
from toefl_quiz.rate_limit import RateLimiter
from toefl_quiz.routers.auth import issue_session_token
from toefl_quiz.routers.quizzes import get_ai_client_factory


def make_questions(count=5, answers=None, question_type="multiple_choice", passage=None):
    answers = answers or ["A", "B", "C", "D"]
    return [
        {
            "question_type": question_type,
            "passage": passage,
            "question_text": f"Question {i + 1}?",
            "options": ["A) one", "B) two", "C) three", "D) four"],
            "correct_answer": answers[i % len(answers)],
            "explanation": f"Explanation {i + 1}.",
        }
        for i in range(count)
    ]


def quiz_json(count=5, **kwargs):
    return json.dumps({"questions": make_questions(count, **kwargs)})


class FakeAIClient:
    """Returns scripted responses in order; an Exception entry is raised."""

    def __init__(self, responses=None, default=None):
        self.responses = list(responses or [])
        self.default = default
        self.calls = []
        self.closed = False

    async def generate(self, prompt, *, system=None, json_mode=False):
        self.calls.append({"prompt": prompt, "system": system, "json_mode": json_mode})
        if self.responses:
            item = self.responses.pop(0)
        elif self.default is not None:
            item = self.default
        else:
            raise RuntimeError("no scripted response left")
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self):
        self.closed = True


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ai():
    return FakeAIClient(default=quiz_json(5))


@pytest.fixture
def client(ai, clock):
    app.state.rate_limiter = RateLimiter(clock=clock)
    app.dependency_overrides[get_ai_client_factory] = lambda: (lambda: ai)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def create_user(username="alice", **fields):
    with SessionLocal() as session:
        session.add(AuthUser(username=username, password_hash="x", email=f"{username}@example.com", **fields))
        session.commit()


def bearer(username):
    with SessionLocal() as session:
        token = issue_session_token(session, username)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def member():
    create_user("alice")
    return bearer("alice")
