"""
Pure transition function for a quiz-taking session.

``transition(state, event)`` returns the next state plus the side effects
the caller has to perform (arm/stop the timer, ask the judge, persist the
result). It never does I/O itself. A rejected event raises and the caller
keeps the old state, so rejections never mutate anything.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from numbers import Real
from typing import List, Optional, Tuple, Union

from core.config import settings
from core.exceptions import InvalidConfigError, SessionStateError, ValidationError
from schemas.performance import PerformanceRecord
from schemas.quiz import ObjectiveQuestion, Question, Quiz, TheoryQuestion
from schemas.session import AttemptResult
from services.evaluation_service import ObjectiveStrategy, Verdict
from services.score_service import ScoreAggregator


class SessionStatus(str, Enum):
    SETUP = "setup"
    ACTIVE = "active"
    AWAITING_EVALUATION = "awaiting_evaluation"
    EXPIRED = "expired"
    COMPLETED = "completed"


LIVE_STATUSES = (SessionStatus.ACTIVE, SessionStatus.AWAITING_EVALUATION)


@dataclass(frozen=True)
class SessionState:
    quiz: Quiz
    user_id: int
    status: SessionStatus = SessionStatus.SETUP
    current_index: int = 0
    deadline: Optional[datetime] = None
    attempts: Tuple[AttemptResult, ...] = ()
    correct_count: int = 0
    ready_to_advance: bool = False
    score: Optional[int] = None
    expired: bool = False

    @property
    def quiz_id(self) -> int:
        return self.quiz.id

    @property
    def total_questions(self) -> int:
        return len(self.quiz.questions)

    @property
    def current_question(self) -> Question:
        return self.quiz.questions[self.current_index]

    def attempt_for(self, question_index: int) -> Optional[AttemptResult]:
        for attempt in self.attempts:
            if attempt.question_index == question_index:
                return attempt
        return None


# Events

@dataclass(frozen=True)
class Start:
    timer_minutes: Optional[float]
    now: datetime


@dataclass(frozen=True)
class SubmitAnswer:
    answer: object
    now: datetime


@dataclass(frozen=True)
class EvaluationSucceeded:
    question_index: int
    answer: str
    verdict: Verdict
    now: datetime


@dataclass(frozen=True)
class EvaluationFailed:
    question_index: int


@dataclass(frozen=True)
class Advance:
    now: datetime


@dataclass(frozen=True)
class Timeout:
    now: datetime


@dataclass(frozen=True)
class Finalize:
    now: datetime


Event = Union[Start, SubmitAnswer, EvaluationSucceeded, EvaluationFailed, Advance, Timeout, Finalize]


# Effects

@dataclass(frozen=True)
class ArmTimer:
    seconds: int


@dataclass(frozen=True)
class StopTimer:
    pass


@dataclass(frozen=True)
class RequestEvaluation:
    question_index: int
    question: TheoryQuestion
    answer: str


@dataclass(frozen=True)
class PersistResult:
    record: PerformanceRecord


Effect = Union[ArmTimer, StopTimer, RequestEvaluation, PersistResult]
Transition = Tuple[SessionState, List[Effect]]


def validate_timer_minutes(timer_minutes) -> None:
    low, high = settings.MIN_TIME_LIMIT_MINUTES, settings.MAX_TIME_LIMIT_MINUTES
    if isinstance(timer_minutes, bool) or not isinstance(timer_minutes, Real):
        raise InvalidConfigError("Timer length must be a number of minutes")
    if not low <= timer_minutes <= high:
        raise InvalidConfigError(f"Time limit must be between {low} and {high} minutes")


def transition(state: SessionState, event: Event) -> Transition:
    if isinstance(event, Start):
        return _start(state, event)
    if isinstance(event, SubmitAnswer):
        return _submit(state, event)
    if isinstance(event, EvaluationSucceeded):
        return _evaluation_succeeded(state, event)
    if isinstance(event, EvaluationFailed):
        return _evaluation_failed(state, event)
    if isinstance(event, Advance):
        return _advance(state, event)
    if isinstance(event, Timeout):
        return _timeout(state, event)
    if isinstance(event, Finalize):
        return _finish(state, event)
    raise TypeError(f"Unknown session event: {event!r}")


def _start(state: SessionState, event: Start) -> Transition:
    if state.status != SessionStatus.SETUP:
        raise SessionStateError("Session has already been started")

    if event.timer_minutes is None:
        return replace(state, status=SessionStatus.ACTIVE), []

    validate_timer_minutes(event.timer_minutes)
    seconds = int(event.timer_minutes * 60)
    started = replace(
        state,
        status=SessionStatus.ACTIVE,
        deadline=event.now + timedelta(seconds=seconds)
    )
    return started, [ArmTimer(seconds)]


def _submit(state: SessionState, event: SubmitAnswer) -> Transition:
    if state.status == SessionStatus.AWAITING_EVALUATION:
        raise SessionStateError("An answer for this question is already being evaluated")
    if state.status != SessionStatus.ACTIVE:
        raise SessionStateError(f"Cannot submit an answer while the session is {state.status.value}")
    if state.ready_to_advance or state.attempt_for(state.current_index) is not None:
        raise SessionStateError("This question has already been answered")

    question = state.current_question
    if isinstance(question, ObjectiveQuestion):
        choice = _parse_choice(event.answer)
        verdict = ObjectiveStrategy.grade(question, choice)
        return _record(state, choice, verdict, event.now), []

    text = _parse_text(event.answer)
    awaiting = replace(state, status=SessionStatus.AWAITING_EVALUATION)
    return awaiting, [RequestEvaluation(state.current_index, question, text)]


def _parse_choice(answer) -> int:
    if isinstance(answer, bool) or not isinstance(answer, int):
        raise ValidationError("Objective answers must be an option index")
    if not 0 <= answer <= 3:
        raise ValidationError("Option index must be between 0 and 3")
    return answer


def _parse_text(answer) -> str:
    if not isinstance(answer, str) or not answer.strip():
        raise ValidationError("Answer text is required")
    return answer.strip()


def _record(state: SessionState, answer, verdict: Verdict, now: datetime) -> SessionState:
    attempt = AttemptResult(
        question_index=state.current_index,
        is_correct=verdict.is_correct,
        awarded_score=verdict.awarded_score,
        feedback=verdict.feedback,
        answer=answer,
        timestamp=now
    )
    return replace(
        state,
        status=SessionStatus.ACTIVE,
        attempts=state.attempts + (attempt,),
        correct_count=state.correct_count + (1 if verdict.is_correct else 0),
        ready_to_advance=True
    )


def _is_pending(state: SessionState, question_index: int) -> bool:
    return (
        state.status == SessionStatus.AWAITING_EVALUATION
        and state.current_index == question_index
    )


def _evaluation_succeeded(state: SessionState, event: EvaluationSucceeded) -> Transition:
    # Verdicts that arrive after the session ended are dropped
    if not _is_pending(state, event.question_index):
        return state, []
    return _record(state, event.answer, event.verdict, event.now), []


def _evaluation_failed(state: SessionState, event: EvaluationFailed) -> Transition:
    if not _is_pending(state, event.question_index):
        return state, []
    return replace(state, status=SessionStatus.ACTIVE), []


def _advance(state: SessionState, event: Advance) -> Transition:
    if state.status != SessionStatus.ACTIVE or not state.ready_to_advance:
        raise SessionStateError("Answer the current question before moving on")

    if state.current_index < state.total_questions - 1:
        return replace(state, current_index=state.current_index + 1, ready_to_advance=False), []
    return _finalize(state, event.now)


def _timeout(state: SessionState, event: Timeout) -> Transition:
    if state.status not in LIVE_STATUSES:
        return state, []
    expired = replace(state, status=SessionStatus.EXPIRED, expired=True, ready_to_advance=False)
    return _finalize(expired, event.now)


def _finish(state: SessionState, event: Finalize) -> Transition:
    # Callers may only end a session on its last answered question or after expiry
    if state.status in (SessionStatus.COMPLETED, SessionStatus.EXPIRED):
        return _finalize(state, event.now)
    on_last = state.current_index == state.total_questions - 1
    if state.status == SessionStatus.ACTIVE and state.ready_to_advance and on_last:
        return _finalize(state, event.now)
    if state.status == SessionStatus.SETUP:
        raise SessionStateError("Session has not been started")
    raise SessionStateError("Answer every question before finishing the quiz")


def _finalize(state: SessionState, now: datetime) -> Transition:
    if state.status == SessionStatus.COMPLETED:
        return state, []
    if state.status == SessionStatus.SETUP:
        raise SessionStateError("Session has not been started")

    score = ScoreAggregator.percentage(state.correct_count, state.total_questions)
    record = PerformanceRecord(
        user_id=state.user_id,
        quiz_id=state.quiz_id,
        quiz_title=state.quiz.title,
        score=score,
        timestamp=now
    )
    completed = replace(state, status=SessionStatus.COMPLETED, score=score, ready_to_advance=False)
    return completed, [StopTimer(), PersistResult(record)]
