from dataclasses import dataclass
from typing import Optional

from core.exceptions import EvaluationError
from core.logger import logger
from schemas.quiz import ObjectiveQuestion, TheoryQuestion
from services.judge_service import TheoryJudge

CORRECT_FEEDBACK = "Good job! Your answer is correct."
INCORRECT_FEEDBACK = "Your answer is not correct. Expected answer: {expected}"


@dataclass(frozen=True)
class Verdict:
    is_correct: bool
    awarded_score: int
    feedback: Optional[str] = None
    raw: Optional[str] = None


def classify_verdict(raw: str) -> bool:
    """A verdict counts as correct when it mentions "true" anywhere.

    Deliberately naive: "not true" and "untrue" are also correct.
    """
    return "true" in raw.lower()


class ObjectiveStrategy:
    """Local grading for multiple-choice questions. No I/O, never fails."""

    @staticmethod
    def grade(question: ObjectiveQuestion, choice: int) -> Verdict:
        is_correct = choice == question.correct_index
        return Verdict(is_correct=is_correct, awarded_score=1 if is_correct else 0)


class TheoryStrategy:
    """Delegates free-text answers to the external judge."""

    def __init__(self, judge: TheoryJudge):
        self.judge = judge

    async def grade(self, question: TheoryQuestion, answer: str) -> Verdict:
        try:
            raw = await self.judge.evaluate(question.text, question.expected_answer, answer)
        except EvaluationError:
            raise
        except Exception as e:
            logger.error("Theory judge failed", error=str(e), error_type=type(e).__name__)
            raise EvaluationError(f"Judge failed: {e}") from e

        if not isinstance(raw, str):
            raise EvaluationError("Judge returned a non-text verdict")

        is_correct = classify_verdict(raw)
        if is_correct:
            feedback = CORRECT_FEEDBACK
        else:
            feedback = INCORRECT_FEEDBACK.format(expected=question.expected_answer)
        return Verdict(
            is_correct=is_correct,
            awarded_score=question.mark if is_correct else 0,
            feedback=feedback,
            raw=raw
        )


class AnswerEvaluator:
    """Holds one grading strategy per question kind."""

    def __init__(self, judge: TheoryJudge):
        self.objective = ObjectiveStrategy()
        self.theory = TheoryStrategy(judge)
