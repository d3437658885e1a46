from fastapi import FastAPI, Depends, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from contextlib import asynccontextmanager
from typing import List
from db.session import get_db, AsyncSessionLocal
from models.user import User
from schemas.quiz import Quiz, QuizCreate, QuizListItem, QuizUpdate
from schemas.performance import PerformanceRecord, PerformanceSummary
from schemas.session import (
    AnswerSubmit, ExplanationOut, PresentedQuestion, SessionCreate, SessionStart, SessionView
)
from schemas.theory import TheoryEvaluateRequest, TheoryEvaluation, TheoryPerformance, TheoryQuestionCreate, TheoryQuestionOut
from schemas.user import UserCreate, UserOut
from services.ai_service import AIService
from services.evaluation_service import AnswerEvaluator
from services.judge_service import AIJudge
from services.performance_service import PerformanceGateway, PerformanceService
from services.quiz_service import QuizService
from services.score_service import ScoreAggregator
from services.session_registry import SessionRegistry
from services.session_service import SessionController
from services.theory_service import TheoryService
from services.user_service import UserService
from core.config import settings
from core.exceptions import EvaluationError, NotFoundError, StorageError, ValidationError
from core.logger import logger

# API Documentation
API_DESCRIPTION = """
## QuickCraft API

Create quizzes that mix multiple-choice and free-text questions, take them in
timed or untimed sessions, and track results over time.

### Sessions

1. `POST /api/sessions` loads the quiz (fails if it is missing or malformed).
2. `POST /api/sessions/{id}/start` with an optional `timerMinutes` (1-180).
3. `POST /api/sessions/{id}/answer` then `POST /api/sessions/{id}/advance`, per question.
4. The last advance, or the timer running out, stores the final score.

Theory answers are judged by an AI model; if the judge fails the question stays
open and the answer can be submitted again.
"""

TAGS_METADATA = [
    {"name": "users", "description": "Find-or-create users by username."},
    {"name": "quizzes", "description": "Quiz CRUD operations."},
    {"name": "sessions", "description": "Taking a quiz: start, answer, advance, finish."},
    {"name": "theory", "description": "Standalone theory questions and practice attempts."},
    {"name": "performance", "description": "Per-user quiz history."},
    {"name": "info", "description": "Public information endpoints."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    ai_service = AIService()
    app.state.registry = SessionRegistry(
        evaluator=AnswerEvaluator(AIJudge(ai_service)),
        gateway=PerformanceGateway(AsyncSessionLocal),
        explainer=ai_service
    )
    logger.info("API started", env=settings.ENV)
    yield
    await app.state.registry.close_all()
    logger.info("API stopped")


app = FastAPI(
    title="QuickCraft API",
    description=API_DESCRIPTION,
    version="1.0.0",
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# === Error mapping ===

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(EvaluationError)
async def evaluation_handler(request: Request, exc: EvaluationError):
    return JSONResponse(status_code=502, content={"detail": f"Failed to evaluate answer: {exc}"})


@app.exception_handler(StorageError)
async def storage_handler(request: Request, exc: StorageError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def build_session_view(session_id: str, controller: SessionController) -> SessionView:
    state = controller.state
    current = None
    if state.status.value in ("active", "awaiting_evaluation"):
        question = state.current_question
        current = PresentedQuestion(
            index=state.current_index,
            kind=question.kind,
            text=question.text,
            options=getattr(question, "options", None),
            mark=getattr(question, "mark", None)
        )

    return SessionView(
        session_id=session_id,
        quiz_id=state.quiz_id,
        quiz_title=state.quiz.title,
        user_id=state.user_id,
        status=state.status.value,
        current_index=state.current_index,
        total_questions=state.total_questions,
        ready_to_advance=state.ready_to_advance,
        correct_count=state.correct_count,
        deadline=state.deadline,
        remaining_seconds=controller.remaining_seconds,
        expired=state.expired,
        score=state.score,
        score_message=ScoreAggregator.score_message(state.score) if state.score is not None else None,
        current_question=current,
        attempts=list(state.attempts)
    )


# === Users ===

@app.post("/api/users", response_model=UserOut, tags=["users"], summary="Find or create a user")
async def create_user(payload: UserCreate, response: Response, db: AsyncSession = Depends(get_db)):
    user, is_new = await UserService(db).get_or_create_user(payload.username)
    response.status_code = 201 if is_new else 200
    return user


@app.get("/api/users/{user_id}", response_model=UserOut, tags=["users"], summary="Get user")
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    return await UserService(db).get_user(user_id)


# === Quizzes ===

@app.get("/api/quizzes", response_model=List[QuizListItem], tags=["quizzes"], summary="List all quizzes")
async def list_quizzes(db: AsyncSession = Depends(get_db)):
    """All quizzes, newest first."""
    return await QuizService(db).get_quizzes()


@app.get(
    "/api/quizzes/{quiz_id}",
    response_model=Quiz,
    tags=["quizzes"],
    summary="Get quiz details",
    responses={404: {"description": "Quiz not found"}, 400: {"description": "Stored quiz is malformed"}},
)
async def get_quiz(quiz_id: int, db: AsyncSession = Depends(get_db)):
    return await QuizService(db).fetch(quiz_id)


@app.post("/api/quizzes", response_model=Quiz, status_code=201, tags=["quizzes"], summary="Create quiz")
async def create_quiz(payload: QuizCreate, db: AsyncSession = Depends(get_db)):
    service = QuizService(db)
    quiz = await service.save_quiz(payload)
    return await service.fetch(quiz.id)


@app.put("/api/quizzes/{quiz_id}", response_model=Quiz, tags=["quizzes"], summary="Update quiz")
async def update_quiz(quiz_id: int, payload: QuizUpdate, db: AsyncSession = Depends(get_db)):
    """Partial update; fields left out keep their stored value."""
    service = QuizService(db)
    await service.update_quiz(quiz_id, payload)
    return await service.fetch(quiz_id)


@app.delete("/api/quizzes/{quiz_id}", tags=["quizzes"], summary="Delete quiz")
async def delete_quiz(quiz_id: int, db: AsyncSession = Depends(get_db)):
    await QuizService(db).delete_quiz(quiz_id)
    return {"message": "Quiz deleted"}


# === Sessions ===

@app.post("/api/sessions", response_model=SessionView, status_code=201, tags=["sessions"], summary="Open a session")
async def open_session(
    payload: SessionCreate,
    db: AsyncSession = Depends(get_db),
    registry: SessionRegistry = Depends(get_registry)
):
    session_id, controller = await registry.open(QuizService(db), payload.user_id, payload.quiz_id)
    return build_session_view(session_id, controller)


@app.get("/api/sessions/{session_id}", response_model=SessionView, tags=["sessions"], summary="Session state")
async def get_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    return build_session_view(session_id, registry.get(session_id))


@app.post("/api/sessions/{session_id}/start", response_model=SessionView, tags=["sessions"], summary="Start session")
async def start_session(session_id: str, payload: SessionStart, registry: SessionRegistry = Depends(get_registry)):
    controller = registry.get(session_id)
    await controller.start(payload.timer_minutes)
    return build_session_view(session_id, controller)


@app.post("/api/sessions/{session_id}/answer", response_model=SessionView, tags=["sessions"], summary="Submit answer")
async def submit_answer(session_id: str, payload: AnswerSubmit, registry: SessionRegistry = Depends(get_registry)):
    controller = registry.get(session_id)
    await controller.submit_answer(payload.answer)
    return build_session_view(session_id, controller)


@app.post("/api/sessions/{session_id}/advance", response_model=SessionView, tags=["sessions"], summary="Next question")
async def advance_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    controller = registry.get(session_id)
    await controller.advance()
    return build_session_view(session_id, controller)


@app.post("/api/sessions/{session_id}/finalize", response_model=SessionView, tags=["sessions"], summary="Finish the quiz")
async def finalize_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Only once the last question is answered; repeating it is harmless."""
    controller = registry.get(session_id)
    await controller.finalize()
    return build_session_view(session_id, controller)


@app.post(
    "/api/sessions/{session_id}/explain/{question_index}",
    response_model=ExplanationOut,
    tags=["sessions"],
    summary="AI explanation for a graded question",
)
async def explain_answer(session_id: str, question_index: int, registry: SessionRegistry = Depends(get_registry)):
    controller = registry.get(session_id)
    if not 0 <= question_index < controller.state.total_questions:
        raise NotFoundError("Question not found")
    explanation = await controller.explain(question_index)
    return ExplanationOut(question_index=question_index, explanation=explanation)


@app.delete("/api/sessions/{session_id}", tags=["sessions"], summary="Leave session")
async def discard_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Drops the session; unfinished sessions store nothing."""
    await registry.discard(session_id)
    return {"message": "Session discarded"}


# === Theory ===

@app.get("/api/theory", response_model=List[TheoryQuestionOut], tags=["theory"], summary="List theory questions")
async def list_theory_questions(db: AsyncSession = Depends(get_db)):
    return await TheoryService(db).get_questions()


@app.post("/api/theory", response_model=TheoryQuestionOut, status_code=201, tags=["theory"],
          summary="Create theory question")
async def create_theory_question(payload: TheoryQuestionCreate, db: AsyncSession = Depends(get_db)):
    return await TheoryService(db).create_question(payload)


@app.post("/api/theory/evaluate", response_model=TheoryEvaluation, tags=["theory"], summary="Evaluate practice answer")
async def evaluate_theory_answer(
    payload: TheoryEvaluateRequest,
    db: AsyncSession = Depends(get_db),
    registry: SessionRegistry = Depends(get_registry)
):
    return await TheoryService(db).evaluate(
        registry.evaluator.theory, payload.user_id, payload.question_id, payload.user_answer
    )


@app.get("/api/theory/performance/{user_id}", response_model=TheoryPerformance, tags=["theory"],
         summary="Theory practice stats")
async def theory_performance(user_id: int, db: AsyncSession = Depends(get_db)):
    return await TheoryService(db).performance(user_id)


@app.get("/api/theory/{question_id}", response_model=TheoryQuestionOut, tags=["theory"], summary="Get theory question")
async def get_theory_question(question_id: int, db: AsyncSession = Depends(get_db)):
    return await TheoryService(db).get_question(question_id)


# === Performance ===

@app.post("/api/performance", response_model=PerformanceRecord, status_code=201, tags=["performance"],
          summary="Record a result")
async def create_performance(payload: PerformanceRecord, db: AsyncSession = Depends(get_db)):
    return await PerformanceService(db).record(payload)


@app.get("/api/performance/{user_id}", response_model=PerformanceSummary, tags=["performance"],
         summary="User performance summary")
async def get_performance(user_id: int, db: AsyncSession = Depends(get_db)):
    return await PerformanceService(db).summary(user_id)


# === Info ===

@app.get("/api/health", tags=["info"])
async def health():
    return {"status": "ok"}


@app.get("/api/info", tags=["info"], summary="Public statistics")
async def get_info(db: AsyncSession = Depends(get_db)):
    users_count = 0
    quizzes_count = 0
    try:
        users_count = int((await db.execute(select(func.count(User.id)))).scalar() or 0)
        quizzes_count = await QuizService(db).count_quizzes()
    except Exception as e:
        logger.warning("Failed to compute public stats", error=str(e))

    return {"stats": {"users": users_count, "quizzes": quizzes_count}}


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)
