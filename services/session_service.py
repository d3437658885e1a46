from datetime import datetime
from typing import Callable, Optional, Protocol

from core.clock import utcnow
from core.config import settings
from core.exceptions import EvaluationError, SessionStateError, StorageError, ValidationError
from core.logger import logger
from schemas.performance import PerformanceRecord
from schemas.quiz import ObjectiveQuestion, Quiz
from schemas.session import AttemptResult
from services.ai_service import AIService
from services.evaluation_service import AnswerEvaluator
from services.session_state import (
    Advance,
    ArmTimer,
    Effect,
    EvaluationFailed,
    EvaluationSucceeded,
    Event,
    Finalize,
    PersistResult,
    RequestEvaluation,
    SessionState,
    SessionStatus,
    Start,
    StopTimer,
    SubmitAnswer,
    Timeout,
    transition,
)
from services.timer import Timer


class QuizCatalog(Protocol):
    async def fetch(self, quiz_id: int) -> Quiz:
        ...


class ResultGateway(Protocol):
    async def record(self, record: PerformanceRecord) -> PerformanceRecord:
        ...


class SessionController:
    """
    Drives one user through one quiz.

    State lives in an immutable ``SessionState`` replaced by ``transition``;
    this class only performs the effects it asks for. Every transition runs
    synchronously between awaits, so the judge call and timer ticks never
    observe a half-applied change.
    """

    def __init__(
        self,
        quiz: Quiz,
        user_id: int,
        evaluator: AnswerEvaluator,
        gateway: ResultGateway,
        explainer: Optional[AIService] = None,
        clock: Callable[[], datetime] = utcnow,
        tick_seconds: Optional[float] = None,
    ):
        self.evaluator = evaluator
        self.gateway = gateway
        self.explainer = explainer
        self.clock = clock
        self.tick_seconds = settings.TIMER_TICK_SECONDS if tick_seconds is None else tick_seconds
        self.timer: Optional[Timer] = None
        self.persisted: Optional[PerformanceRecord] = None
        self._state = SessionState(quiz=quiz, user_id=user_id)
        self._closed = False

    @classmethod
    async def open(cls, catalog: QuizCatalog, quiz_id: int, user_id: int, evaluator: AnswerEvaluator,
                   gateway: ResultGateway, **kwargs) -> "SessionController":
        """Fetch the quiz and build a session. Catalog errors propagate: no session is created."""
        quiz = await catalog.fetch(quiz_id)
        logger.info("Quiz session created", user_id=user_id, quiz_id=quiz_id, questions=len(quiz.questions))
        return cls(quiz, user_id, evaluator, gateway, **kwargs)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def quiz(self) -> Quiz:
        return self._state.quiz

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def default_timer_minutes(self) -> Optional[int]:
        """Suggested countdown: the quiz's own limit when it runs in timer mode."""
        if self.quiz.timer_mode:
            return self.quiz.time_limit_minutes
        return None

    @property
    def remaining_seconds(self) -> Optional[int]:
        if self.timer is None:
            return None
        return max(self.timer.remaining, 0)

    async def start(self, timer_minutes: Optional[float] = None) -> SessionState:
        await self._dispatch(Start(timer_minutes, self.clock()))
        logger.info("Quiz session started", user_id=self._state.user_id, quiz_id=self._state.quiz_id,
                    timer_minutes=timer_minutes)
        return self._state

    async def submit_answer(self, answer) -> Optional[AttemptResult]:
        """
        Grade the answer to the current question.

        Returns the new attempt, or None if the session ended (timeout) while
        a theory verdict was pending. Raises ValidationError for bad input or
        a wrong state and EvaluationError when the judge fails; in both cases
        the question stays unanswered.
        """
        question_index = self._state.current_index
        await self._dispatch(SubmitAnswer(answer, self.clock()))
        return self._state.attempt_for(question_index)

    async def advance(self) -> SessionState:
        await self._dispatch(Advance(self.clock()))
        return self._state

    async def finalize(self) -> SessionState:
        await self._dispatch(Finalize(self.clock()))
        return self._state

    async def on_timeout(self):
        if self._closed:
            return
        if self._state.status not in (SessionStatus.ACTIVE, SessionStatus.AWAITING_EVALUATION):
            return
        logger.info("Quiz time is up", user_id=self._state.user_id, quiz_id=self._state.quiz_id,
                    answered=len(self._state.attempts), total=self._state.total_questions)
        await self._dispatch(Timeout(self.clock()))

    async def explain(self, question_index: int) -> Optional[str]:
        """Commentary on an already graded question. Never touches session state."""
        attempt = self._state.attempt_for(question_index)
        if attempt is None:
            raise ValidationError("Only answered questions can be explained")
        if self.explainer is None:
            return None

        question = self.quiz.questions[question_index]
        if isinstance(question, ObjectiveQuestion):
            return await self.explainer.explain_answer(
                question.text,
                list(question.options),
                question.options[question.correct_index],
                question.options[attempt.answer],
                attempt.is_correct
            )
        return await self.explainer.explain_answer(
            question.text, None, question.expected_answer, str(attempt.answer), attempt.is_correct
        )

    async def close(self):
        """Tear the session down without persisting anything."""
        if self._closed:
            return
        self._closed = True
        if self.timer is not None:
            self.timer.stop()
        logger.info("Quiz session discarded", user_id=self._state.user_id, quiz_id=self._state.quiz_id,
                    status=self._state.status.value)

    async def _dispatch(self, event: Event):
        if self._closed:
            raise SessionStateError("Session has been closed")

        before = self._state.status
        self._state, effects = transition(self._state, event)
        if self._state.status != before:
            logger.debug("Session status changed", user_id=self._state.user_id,
                         from_status=before.value, to_status=self._state.status.value)

        for effect in effects:
            await self._perform(effect)

    async def _perform(self, effect: Effect):
        if isinstance(effect, ArmTimer):
            self.timer = Timer(effect.seconds, self.on_timeout, self.tick_seconds)
            self.timer.start()
        elif isinstance(effect, StopTimer):
            if self.timer is not None:
                self.timer.stop()
        elif isinstance(effect, RequestEvaluation):
            await self._evaluate(effect)
        elif isinstance(effect, PersistResult):
            await self._persist(effect.record)
        else:
            raise TypeError(f"Unknown session effect: {effect!r}")

    async def _evaluate(self, request: RequestEvaluation):
        try:
            verdict = await self.evaluator.theory.grade(request.question, request.answer)
        except EvaluationError as e:
            logger.warning("Theory evaluation failed", user_id=self._state.user_id,
                           question_index=request.question_index, error=str(e))
            if not self._closed:
                self._state, _ = transition(self._state, EvaluationFailed(request.question_index))
            raise

        if self._closed:
            return
        await self._dispatch(EvaluationSucceeded(request.question_index, request.answer, verdict, self.clock()))

    async def _persist(self, record: PerformanceRecord):
        logger.info("Quiz session completed", user_id=record.user_id, quiz_id=record.quiz_id,
                    score=record.score, expired=self._state.expired)
        try:
            self.persisted = await self.gateway.record(record)
        except StorageError as e:
            logger.error("Failed to save performance", user_id=record.user_id, quiz_id=record.quiz_id,
                         error=str(e))
