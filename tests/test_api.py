import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api.main import app, get_registry
from core.exceptions import EvaluationError
from db.session import get_db
from models.quiz import Quiz as QuizRow
from services.evaluation_service import AnswerEvaluator
from services.performance_service import PerformanceGateway
from services.session_registry import SessionRegistry

from conftest import FakeJudge


QUIZ_PAYLOAD = {
    "title": "Mixed Quiz",
    "description": "Objective and theory",
    "timerMode": True,
    "timeLimitMinutes": 10,
    "questions": [
        {"kind": "objective", "text": "What is 2+2?", "options": ["3", "4", "5", "6"], "correctIndex": 1},
        {"kind": "theory", "text": "What is HTTP?", "expectedAnswer": "A protocol", "mark": 2},
    ],
}


@pytest_asyncio.fixture
async def judge():
    return FakeJudge()


@pytest_asyncio.fixture
async def client(session_factory, judge):
    registry = SessionRegistry(AnswerEvaluator(judge), PerformanceGateway(session_factory), tick_seconds=3600)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registry] = lambda: registry
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await registry.close_all()
    app.dependency_overrides.clear()


async def _user_and_quiz(client):
    user = (await client.post("/api/users", json={"username": "alice"})).json()
    quiz = (await client.post("/api/quizzes", json={**QUIZ_PAYLOAD, "creatorId": user["id"]})).json()
    return user, quiz


@pytest.mark.asyncio
async def test_users_find_or_create(client):
    first = await client.post("/api/users", json={"username": "alice"})
    second = await client.post("/api/users", json={"username": " alice "})

    assert first.status_code == 201
    assert second.status_code == 200
    assert first.json()["id"] == second.json()["id"]
    assert "createdAt" in first.json()
    assert (await client.get("/api/users/999")).status_code == 404


@pytest.mark.asyncio
async def test_quiz_crud(client):
    user, quiz = await _user_and_quiz(client)
    assert quiz["questions"][0]["correctIndex"] == 1
    assert quiz["creatorId"] == user["id"]

    listing = (await client.get("/api/quizzes")).json()
    assert listing[0]["questionsCount"] == 2

    updated = await client.put(f"/api/quizzes/{quiz['id']}", json={"title": "Renamed"})
    assert updated.json()["title"] == "Renamed"
    assert len(updated.json()["questions"]) == 2

    bad = {**QUIZ_PAYLOAD, "creatorId": user["id"], "questions": [
        {"kind": "objective", "text": "Q", "options": ["a", "b"], "correctIndex": 0}
    ]}
    assert (await client.post("/api/quizzes", json=bad)).status_code == 422

    assert (await client.delete(f"/api/quizzes/{quiz['id']}")).status_code == 200
    assert (await client.get(f"/api/quizzes/{quiz['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_malformed_stored_quiz_is_rejected(client, session_factory):
    user = (await client.post("/api/users", json={"username": "bob"})).json()
    async with session_factory() as db:
        row = QuizRow(creator_id=user["id"], title="Broken", description="d",
                      questions_json=[{"kind": "essay", "text": "?"}])
        db.add(row)
        await db.commit()
        quiz_id = row.id

    assert (await client.get(f"/api/quizzes/{quiz_id}")).status_code == 400
    response = await client.post("/api/sessions", json={"userId": user["id"], "quizId": quiz_id})
    assert response.status_code == 400
    assert (await client.post("/api/sessions", json={"userId": user["id"], "quizId": 999})).status_code == 404


@pytest.mark.asyncio
async def test_full_session_flow(client, judge):
    user, quiz = await _user_and_quiz(client)
    judge.verdicts.append("True, that is right")

    opened = await client.post("/api/sessions", json={"userId": user["id"], "quizId": quiz["id"]})
    assert opened.status_code == 201
    session_id = opened.json()["sessionId"]
    assert opened.json()["status"] == "setup"

    started = (await client.post(f"/api/sessions/{session_id}/start", json={"timerMinutes": 10})).json()
    assert started["status"] == "active"
    assert started["remainingSeconds"] == 600
    current = started["currentQuestion"]
    assert current["options"] == ["3", "4", "5", "6"]
    assert "correctIndex" not in current

    answered = (await client.post(f"/api/sessions/{session_id}/answer", json={"answer": 1})).json()
    assert answered["readyToAdvance"]
    assert answered["attempts"][0]["isCorrect"]

    repeat = await client.post(f"/api/sessions/{session_id}/answer", json={"answer": 2})
    assert repeat.status_code == 400

    advanced = (await client.post(f"/api/sessions/{session_id}/advance")).json()
    assert advanced["currentQuestion"]["kind"] == "theory"
    assert "expectedAnswer" not in advanced["currentQuestion"]

    await client.post(f"/api/sessions/{session_id}/answer", json={"answer": "Hypertext transfer protocol"})
    finished = (await client.post(f"/api/sessions/{session_id}/advance")).json()
    assert finished["status"] == "completed"
    assert finished["score"] == 100
    assert finished["currentQuestion"] is None
    assert finished["scoreMessage"]

    explanation = await client.post(f"/api/sessions/{session_id}/explain/0")
    assert explanation.json() == {"questionIndex": 0, "explanation": None}
    assert (await client.post(f"/api/sessions/{session_id}/explain/5")).status_code == 404

    summary = (await client.get(f"/api/performance/{user['id']}")).json()
    assert summary["totalQuizzesTaken"] == 1
    assert summary["recentPerformances"][0]["quizTitle"] == "Mixed Quiz"
    assert summary["recentPerformances"][0]["score"] == 100

    assert (await client.delete(f"/api/sessions/{session_id}")).status_code == 200
    assert (await client.get(f"/api/sessions/{session_id}")).status_code == 404


@pytest.mark.asyncio
async def test_judge_failure_maps_to_502_and_allows_retry(client, judge):
    user, quiz = await _user_and_quiz(client)
    judge.verdicts.extend([EvaluationError("judge down"), "false"])

    session_id = (await client.post("/api/sessions", json={"userId": user["id"], "quizId": quiz["id"]})).json()["sessionId"]
    await client.post(f"/api/sessions/{session_id}/start", json={})
    await client.post(f"/api/sessions/{session_id}/answer", json={"answer": 0})
    await client.post(f"/api/sessions/{session_id}/advance")

    failed = await client.post(f"/api/sessions/{session_id}/answer", json={"answer": "No idea"})
    assert failed.status_code == 502

    assert (await client.post(f"/api/sessions/{session_id}/finalize")).status_code == 400
    view = (await client.get(f"/api/sessions/{session_id}")).json()
    assert view["status"] == "active"
    assert len(view["attempts"]) == 1

    retried = (await client.post(f"/api/sessions/{session_id}/answer", json={"answer": "Still no idea"})).json()
    assert len(retried["attempts"]) == 2
    assert retried["attempts"][1]["feedback"] == "Your answer is not correct. Expected answer: A protocol"


@pytest.mark.asyncio
async def test_start_rejects_invalid_timer(client):
    user, quiz = await _user_and_quiz(client)
    session_id = (await client.post("/api/sessions", json={"userId": user["id"], "quizId": quiz["id"]})).json()["sessionId"]

    response = await client.post(f"/api/sessions/{session_id}/start", json={"timerMinutes": 0})
    assert response.status_code == 400
    assert (await client.get(f"/api/sessions/{session_id}")).json()["status"] == "setup"


@pytest.mark.asyncio
async def test_theory_practice_endpoints(client, judge):
    user = (await client.post("/api/users", json={"username": "carol"})).json()
    created = await client.post("/api/theory", json={
        "question": "What is DNS?", "sampleAnswer": "Name resolution", "mark": 3, "creatorId": user["id"]
    })
    assert created.status_code == 201
    question_id = created.json()["id"]

    judge.verdicts.append("true")
    result = await client.post("/api/theory/evaluate", json={
        "userId": user["id"], "questionId": question_id, "userAnswer": "It resolves names"
    })
    assert result.json() == {"isCorrect": True, "feedback": "Good job! Your answer is correct.",
                             "sampleAnswer": None, "score": 3}

    stats = (await client.get(f"/api/theory/performance/{user['id']}")).json()
    assert stats["totalAttempts"] == 1
    assert stats["averageScore"] == 3.0
    assert (await client.get("/api/theory/404")).status_code == 404


@pytest.mark.asyncio
async def test_health_and_info(client):
    assert (await client.get("/api/health")).json() == {"status": "ok"}
    await _user_and_quiz(client)
    assert (await client.get("/api/info")).json() == {"stats": {"users": 1, "quizzes": 1}}
