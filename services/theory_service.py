from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.theory import TheoryQuestion as TheoryQuestionRow, TheoryAttempt
from models.user import User
from schemas.quiz import TheoryQuestion
from schemas.theory import TheoryQuestionCreate, TheoryEvaluation, TheoryAttemptOut, TheoryPerformance
from services.evaluation_service import TheoryStrategy
from services.score_service import round_half_up
from core.exceptions import NotFoundError, ValidationError
from core.logger import logger


class TheoryService:
    """Standalone theory questions and the practice attempts made on them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_question(self, payload: TheoryQuestionCreate) -> TheoryQuestionRow:
        creator = await self.db.get(User, payload.creator_id)
        if creator is None:
            raise NotFoundError("Creator not found")

        question = TheoryQuestionRow(
            creator_id=payload.creator_id,
            question=payload.question.strip(),
            sample_answer=payload.sample_answer.strip(),
            mark=payload.mark
        )
        self.db.add(question)
        await self.db.commit()
        await self.db.refresh(question)
        logger.info("Theory question saved", question_id=question.id, creator_id=payload.creator_id)
        return question

    async def get_questions(self) -> List[TheoryQuestionRow]:
        result = await self.db.execute(
            select(TheoryQuestionRow).order_by(TheoryQuestionRow.created_at.desc(), TheoryQuestionRow.id.desc())
        )
        return list(result.scalars().all())

    async def get_question(self, question_id: int) -> TheoryQuestionRow:
        question = await self.db.get(TheoryQuestionRow, question_id)
        if question is None:
            raise NotFoundError(f"Theory question {question_id} not found")
        return question

    async def evaluate(self, strategy: TheoryStrategy, user_id: int, question_id: int,
                       user_answer: str) -> TheoryEvaluation:
        """Judge a practice answer and log the attempt. EvaluationError propagates unlogged."""
        if not user_answer or not user_answer.strip():
            raise ValidationError("Answer text is required")

        row = await self.get_question(question_id)
        # Read-only snapshot; grading never writes back to the stored question
        question = TheoryQuestion(text=row.question, expected_answer=row.sample_answer, mark=row.mark)
        verdict = await strategy.grade(question, user_answer.strip())

        attempt = TheoryAttempt(
            user_id=user_id,
            question_id=row.id,
            user_answer=user_answer.strip(),
            score=verdict.awarded_score,
            feedback=verdict.feedback,
            is_correct=verdict.is_correct
        )
        self.db.add(attempt)
        await self.db.commit()
        logger.info("Theory attempt recorded", user_id=user_id, question_id=row.id, is_correct=verdict.is_correct)

        return TheoryEvaluation(
            is_correct=verdict.is_correct,
            feedback=verdict.feedback,
            sample_answer=None if verdict.is_correct else row.sample_answer,
            score=verdict.awarded_score
        )

    async def performance(self, user_id: int) -> TheoryPerformance:
        result = await self.db.execute(
            select(TheoryAttempt)
            .filter(TheoryAttempt.user_id == user_id)
            .order_by(TheoryAttempt.created_at.desc(), TheoryAttempt.id.desc())
        )
        attempts = [TheoryAttemptOut.model_validate(a) for a in result.scalars().all()]
        if not attempts:
            return TheoryPerformance()

        # One decimal, halves rounded up
        total = sum(a.score for a in attempts)
        return TheoryPerformance(
            attempts=attempts,
            total_attempts=len(attempts),
            average_score=round_half_up(10 * total, len(attempts)) / 10
        )
