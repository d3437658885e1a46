from typing import Iterable, Sequence

from schemas.session import AttemptResult


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounded to nearest, halves rounded up."""
    return (2 * numerator + denominator) // (2 * denominator)


class ScoreAggregator:
    """Turns recorded attempts into the single persisted percentage.

    Every question counts as one unit out of the quiz's total, whatever its
    kind or mark. Unanswered questions are simply missing attempts, so they
    count as wrong without shrinking the denominator.
    """

    @staticmethod
    def percentage(correct_count: int, total_questions: int) -> int:
        if total_questions <= 0:
            raise ValueError("total_questions must be positive")
        if not 0 <= correct_count <= total_questions:
            raise ValueError("correct_count must be between 0 and total_questions")
        return round_half_up(100 * correct_count, total_questions)

    @classmethod
    def aggregate(cls, attempts: Iterable[AttemptResult], total_questions: int) -> int:
        correct = sum(1 for attempt in attempts if attempt.is_correct)
        return cls.percentage(correct, total_questions)

    @staticmethod
    def raw_marks(attempts: Iterable[AttemptResult]) -> int:
        """Sum of awarded scores, for display next to the percentage."""
        return sum(attempt.awarded_score for attempt in attempts)

    @staticmethod
    def average(scores: Sequence[int]) -> int:
        if not scores:
            return 0
        return round_half_up(sum(scores), len(scores))

    @staticmethod
    def score_message(score: int) -> str:
        if score >= 90:
            return "Excellent!"
        if score >= 70:
            return "Good job!"
        if score >= 50:
            return "Not bad!"
        return "Keep practicing!"
