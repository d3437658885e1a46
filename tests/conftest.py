"""
Pytest configuration and fixtures for QuickCraft tests.
"""
import sys
import os
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.base import Base
import models.user, models.quiz, models.performance, models.theory  # noqa: E402,F401
from core.exceptions import EvaluationError, StorageError  # noqa: E402
from schemas.quiz import Quiz  # noqa: E402


class FakeJudge:
    """Judge returning queued verdicts; an Exception in the queue is raised instead."""

    def __init__(self, *verdicts):
        self.verdicts = list(verdicts)
        self.calls = []

    async def evaluate(self, question_text, expected_answer, submitted_text):
        self.calls.append((question_text, expected_answer, submitted_text))
        verdict = self.verdicts.pop(0) if self.verdicts else "false"
        if isinstance(verdict, Exception):
            raise verdict
        return verdict


class FakeGateway:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.records = []

    async def record(self, record):
        if self.fail:
            raise StorageError("database is down")
        self.records.append(record)
        return record


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start=datetime(2026, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


@pytest.fixture
def fake_judge():
    return FakeJudge()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def sample_questions():
    """Sample quiz questions for testing: two objective, one theory"""
    return [
        {
            "kind": "objective",
            "text": "What is 2+2?",
            "options": ["3", "4", "5", "6"],
            "correctIndex": 1
        },
        {
            "kind": "objective",
            "text": "What is the capital of Uzbekistan?",
            "options": ["Tashkent", "Samarkand", "Bukhara", "Khiva"],
            "correctIndex": 0
        },
        {
            "kind": "theory",
            "text": "Explain photosynthesis.",
            "expectedAnswer": "Plants turn light, water and CO2 into glucose and oxygen.",
            "mark": 5
        }
    ]


@pytest.fixture
def sample_quiz(sample_questions):
    return Quiz(
        id=1,
        creator_id=1,
        title="Mixed Quiz",
        description="Objective and theory",
        questions=sample_questions
    )


def objective_quiz(count: int, quiz_id: int = 2) -> Quiz:
    return Quiz(
        id=quiz_id,
        title=f"{count} questions",
        description="All objective",
        questions=[
            {"kind": "objective", "text": f"Q{i}", "options": ["a", "b", "c", "d"], "correctIndex": 0}
            for i in range(count)
        ]
    )


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite shared by every session the factory opens."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session
