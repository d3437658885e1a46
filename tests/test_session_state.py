from datetime import datetime, timedelta

import pytest

from core.exceptions import InvalidConfigError, SessionStateError, ValidationError
from services.evaluation_service import Verdict
from services.session_state import (
    Advance, ArmTimer, EvaluationFailed, EvaluationSucceeded, Finalize, PersistResult, RequestEvaluation,
    SessionState, SessionStatus, Start, StopTimer, SubmitAnswer, Timeout, transition,
)

from conftest import objective_quiz

NOW = datetime(2026, 1, 1, 9, 0, 0)


def started(quiz, minutes=None):
    state, _ = transition(SessionState(quiz=quiz, user_id=7), Start(minutes, NOW))
    return state


def test_start_without_timer(sample_quiz):
    state, effects = transition(SessionState(quiz=sample_quiz, user_id=7), Start(None, NOW))
    assert state.status == SessionStatus.ACTIVE
    assert state.deadline is None
    assert effects == []


def test_start_with_timer_sets_deadline(sample_quiz):
    state, effects = transition(SessionState(quiz=sample_quiz, user_id=7), Start(2, NOW))
    assert state.deadline == NOW + timedelta(minutes=2)
    assert effects == [ArmTimer(120)]


@pytest.mark.parametrize("minutes", [0, 181, -5, "10", True])
def test_start_rejects_bad_timer(sample_quiz, minutes):
    initial = SessionState(quiz=sample_quiz, user_id=7)
    with pytest.raises(InvalidConfigError):
        transition(initial, Start(minutes, NOW))


def test_start_twice_rejected(sample_quiz):
    with pytest.raises(SessionStateError):
        transition(started(sample_quiz), Start(None, NOW))


def test_objective_answer_is_graded_immediately(sample_quiz):
    state, effects = transition(started(sample_quiz), SubmitAnswer(1, NOW))

    assert effects == []
    assert state.status == SessionStatus.ACTIVE
    assert state.ready_to_advance
    assert state.correct_count == 1
    assert state.attempts[0].question_index == 0
    assert state.attempts[0].is_correct


@pytest.mark.parametrize("answer", [4, -1, "1", None, True, 1.0])
def test_objective_answer_validation(sample_quiz, answer):
    state = started(sample_quiz)
    with pytest.raises(ValidationError):
        transition(state, SubmitAnswer(answer, NOW))


def test_answered_question_cannot_be_resubmitted(sample_quiz):
    state, _ = transition(started(sample_quiz), SubmitAnswer(0, NOW))
    with pytest.raises(SessionStateError):
        transition(state, SubmitAnswer(1, NOW))
    assert len(state.attempts) == 1


def test_submit_before_start_rejected(sample_quiz):
    with pytest.raises(SessionStateError):
        transition(SessionState(quiz=sample_quiz, user_id=7), SubmitAnswer(0, NOW))


def _at_theory(quiz):
    state = started(quiz)
    for answer in (1, 0):
        state, _ = transition(state, SubmitAnswer(answer, NOW))
        state, _ = transition(state, Advance(NOW))
    return state


def test_theory_answer_requests_evaluation(sample_quiz):
    state = _at_theory(sample_quiz)
    awaiting, effects = transition(state, SubmitAnswer("  Light to sugar  ", NOW))

    assert awaiting.status == SessionStatus.AWAITING_EVALUATION
    assert effects == [RequestEvaluation(2, sample_quiz.questions[2], "Light to sugar")]
    assert awaiting.attempts == state.attempts

    with pytest.raises(SessionStateError):
        transition(awaiting, SubmitAnswer("again", NOW))


@pytest.mark.parametrize("answer", ["", "   ", 3])
def test_theory_answer_requires_text(sample_quiz, answer):
    with pytest.raises(ValidationError):
        transition(_at_theory(sample_quiz), SubmitAnswer(answer, NOW))


def test_evaluation_failure_reverts_without_attempt(sample_quiz):
    awaiting, _ = transition(_at_theory(sample_quiz), SubmitAnswer("text", NOW))
    state, effects = transition(awaiting, EvaluationFailed(2))

    assert state.status == SessionStatus.ACTIVE
    assert not state.ready_to_advance
    assert state.attempt_for(2) is None
    assert effects == []


def test_evaluation_success_records_mark(sample_quiz):
    awaiting, _ = transition(_at_theory(sample_quiz), SubmitAnswer("text", NOW))
    verdict = Verdict(is_correct=True, awarded_score=5, feedback="ok")
    state, _ = transition(awaiting, EvaluationSucceeded(2, "text", verdict, NOW))

    assert state.attempt_for(2).awarded_score == 5
    assert state.correct_count == 3
    assert state.ready_to_advance


def test_advance_requires_answer(sample_quiz):
    with pytest.raises(SessionStateError):
        transition(started(sample_quiz), Advance(NOW))


def test_last_advance_finalizes():
    state = started(objective_quiz(4))
    for answer in (0, 0, 0, 1):
        state, _ = transition(state, SubmitAnswer(answer, NOW))
        state, effects = transition(state, Advance(NOW))

    assert state.status == SessionStatus.COMPLETED
    assert state.score == 75
    assert effects[0] == StopTimer()
    record = effects[1].record
    assert isinstance(effects[1], PersistResult)
    assert (record.user_id, record.quiz_id, record.score) == (7, 2, 75)


def test_finalize_is_idempotent():
    state = started(objective_quiz(3))
    for answer in (0, 1):
        state, _ = transition(state, SubmitAnswer(answer, NOW))
        state, _ = transition(state, Advance(NOW))
    state, _ = transition(state, SubmitAnswer(0, NOW))
    completed, effects = transition(state, Finalize(NOW))
    assert completed.score == 67
    assert len(effects) == 2

    again, effects = transition(completed, Finalize(NOW))
    assert again is completed
    assert effects == []


def test_finalize_before_start_rejected(sample_quiz):
    with pytest.raises(SessionStateError):
        transition(SessionState(quiz=sample_quiz, user_id=7), Finalize(NOW))


def test_timeout_scores_over_full_quiz():
    state = started(objective_quiz(5), minutes=1)
    for _ in range(2):
        state, _ = transition(state, SubmitAnswer(0, NOW))
        state, _ = transition(state, Advance(NOW))

    state, effects = transition(state, Timeout(NOW))

    assert state.status == SessionStatus.COMPLETED
    assert state.expired
    assert state.score == 40
    assert len(state.attempts) == 2
    assert effects[1].record.score == 40

    again, effects = transition(state, Timeout(NOW))
    assert again is state
    assert effects == []


def test_timeout_before_start_is_noop(sample_quiz):
    initial = SessionState(quiz=sample_quiz, user_id=7)
    state, effects = transition(initial, Timeout(NOW))
    assert state is initial
    assert effects == []


def test_late_verdict_after_timeout_is_dropped(sample_quiz):
    awaiting, _ = transition(_at_theory(sample_quiz), SubmitAnswer("text", NOW))
    expired, _ = transition(awaiting, Timeout(NOW))

    verdict = Verdict(is_correct=True, awarded_score=5)
    state, effects = transition(expired, EvaluationSucceeded(2, "text", verdict, NOW))

    assert state is expired
    assert effects == []
    assert state.correct_count == 2
    assert state.score == 67


def test_unknown_event_rejected(sample_quiz):
    with pytest.raises(TypeError):
        transition(SessionState(quiz=sample_quiz, user_id=7), object())


def test_finalize_mid_quiz_rejected():
    state = started(objective_quiz(3))
    with pytest.raises(SessionStateError):
        transition(state, Finalize(NOW))

    answered, _ = transition(state, SubmitAnswer(0, NOW))
    with pytest.raises(SessionStateError):
        transition(answered, Finalize(NOW))
    assert answered.status == SessionStatus.ACTIVE


def test_finalize_while_awaiting_evaluation_rejected(sample_quiz):
    awaiting, _ = transition(_at_theory(sample_quiz), SubmitAnswer("text", NOW))
    with pytest.raises(SessionStateError):
        transition(awaiting, Finalize(NOW))
    assert awaiting.status == SessionStatus.AWAITING_EVALUATION


def test_finalize_on_unanswered_last_question_rejected():
    state = started(objective_quiz(2))
    state, _ = transition(state, SubmitAnswer(0, NOW))
    state, _ = transition(state, Advance(NOW))
    with pytest.raises(SessionStateError):
        transition(state, Finalize(NOW))
