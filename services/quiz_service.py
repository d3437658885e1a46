from typing import List, Optional
from pydantic import ValidationError as SchemaError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from models.quiz import Quiz as QuizRow
from models.theory import TheoryQuestion as TheoryQuestionRow
from models.user import User
from schemas.quiz import Quiz, QuizCreate, QuizListItem, QuizUpdate, TheoryQuestion
from core.exceptions import NotFoundError, ValidationError
from core.logger import logger


def _dump_questions(questions) -> list:
    return [q.model_dump(mode="json") for q in questions]


class QuizService:
    """Quiz CRUD plus the read-only catalog used by sessions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_quiz(self, payload: QuizCreate) -> QuizRow:
        creator = await self.db.get(User, payload.creator_id)
        if creator is None:
            raise NotFoundError("Creator not found")

        quiz = QuizRow(
            creator_id=payload.creator_id,
            title=payload.title,
            description=payload.description,
            timer_mode=payload.timer_mode,
            time_limit_minutes=payload.time_limit_minutes if payload.timer_mode else None,
            questions_json=_dump_questions(payload.questions)
        )
        self.db.add(quiz)

        # Theory questions also live on their own as independent copies
        for question in payload.questions:
            if isinstance(question, TheoryQuestion):
                self.db.add(TheoryQuestionRow(
                    creator_id=payload.creator_id,
                    question=question.text,
                    sample_answer=question.expected_answer,
                    mark=question.mark
                ))

        await self.db.commit()
        await self.db.refresh(quiz)
        logger.info("Quiz saved", creator_id=payload.creator_id, quiz_id=quiz.id, title=quiz.title)
        return quiz

    async def get_quizzes(self) -> List[QuizListItem]:
        result = await self.db.execute(select(QuizRow).order_by(QuizRow.created_at.desc(), QuizRow.id.desc()))
        return [
            QuizListItem(
                id=q.id,
                title=q.title,
                description=q.description,
                timer_mode=q.timer_mode,
                questions_count=len(q.questions_json or []),
                created_at=q.created_at
            )
            for q in result.scalars().all()
        ]

    async def get_quiz_row(self, quiz_id: int) -> Optional[QuizRow]:
        result = await self.db.execute(select(QuizRow).filter(QuizRow.id == quiz_id))
        return result.scalar_one_or_none()

    async def fetch(self, quiz_id: int) -> Quiz:
        """Load an immutable, validated quiz. Malformed stored data is rejected outright."""
        row = await self.get_quiz_row(quiz_id)
        if row is None:
            raise NotFoundError(f"Quiz {quiz_id} not found")
        try:
            return Quiz(
                id=row.id,
                creator_id=row.creator_id,
                title=row.title,
                description=row.description,
                timer_mode=row.timer_mode,
                time_limit_minutes=row.time_limit_minutes,
                questions=row.questions_json or []
            )
        except SchemaError as e:
            logger.error("Stored quiz is malformed", quiz_id=quiz_id, errors=e.error_count())
            raise ValidationError(f"Quiz {quiz_id} is malformed: {e.errors()[0]['msg']}") from e

    async def update_quiz(self, quiz_id: int, payload: QuizUpdate) -> QuizRow:
        quiz = await self.get_quiz_row(quiz_id)
        if quiz is None:
            raise NotFoundError(f"Quiz {quiz_id} not found")

        if payload.title is not None:
            quiz.title = payload.title
        if payload.description is not None:
            quiz.description = payload.description
        if payload.timer_mode is not None:
            quiz.timer_mode = payload.timer_mode
        if payload.time_limit_minutes is not None:
            quiz.time_limit_minutes = payload.time_limit_minutes
        if payload.questions is not None:
            quiz.questions_json = _dump_questions(payload.questions)

        if quiz.timer_mode and quiz.time_limit_minutes is None:
            await self.db.rollback()
            raise ValidationError("timeLimitMinutes is required when timerMode is enabled")

        await self.db.commit()
        await self.db.refresh(quiz)
        logger.info("Quiz updated", quiz_id=quiz_id)
        return quiz

    async def delete_quiz(self, quiz_id: int) -> bool:
        quiz = await self.get_quiz_row(quiz_id)
        if quiz is None:
            raise NotFoundError(f"Quiz {quiz_id} not found")
        await self.db.delete(quiz)
        await self.db.commit()
        logger.info("Quiz deleted", quiz_id=quiz_id)
        return True

    async def count_quizzes(self) -> int:
        result = await self.db.execute(select(func.count(QuizRow.id)))
        return result.scalar()
