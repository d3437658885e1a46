from typing import List
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select
from models.performance import Performance
from schemas.performance import PerformanceRecord, PerformanceSummary
from services.score_service import ScoreAggregator
from core.config import settings
from core.exceptions import StorageError
from core.logger import logger


class PerformanceService:
    """Append-only store of finished sessions, bound to one database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(self, record: PerformanceRecord) -> PerformanceRecord:
        row = Performance(
            user_id=record.user_id,
            quiz_id=record.quiz_id,
            quiz_title=record.quiz_title,
            score=record.score,
            timestamp=record.timestamp
        )
        try:
            self.db.add(row)
            await self.db.commit()
            await self.db.refresh(row)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Performance insert failed", user_id=record.user_id, quiz_id=record.quiz_id, error=str(e))
            raise StorageError("Could not save performance record") from e

        logger.info("Performance recorded", user_id=record.user_id, quiz_id=record.quiz_id, score=record.score)
        return PerformanceRecord.model_validate(row)

    async def history(self, user_id: int) -> List[PerformanceRecord]:
        """All records of a user, newest first."""
        try:
            result = await self.db.execute(
                select(Performance)
                .filter(Performance.user_id == user_id)
                .order_by(Performance.timestamp.desc(), Performance.id.desc())
            )
        except SQLAlchemyError as e:
            logger.error("Performance query failed", user_id=user_id, error=str(e))
            raise StorageError("Could not load performance history") from e
        return [PerformanceRecord.model_validate(row) for row in result.scalars().all()]

    async def summary(self, user_id: int) -> PerformanceSummary:
        performances = await self.history(user_id)
        if not performances:
            return PerformanceSummary()

        return PerformanceSummary(
            total_quizzes_taken=len(performances),
            overall_average=ScoreAggregator.average([p.score for p in performances]),
            recent_performances=performances[:settings.RECENT_PERFORMANCE_LIMIT],
            all_performances=performances
        )


class PerformanceGateway:
    """
    Persistence gateway for sessions.

    A session outlives the request that started it, so every call opens its
    own database session from the factory.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def record(self, record: PerformanceRecord) -> PerformanceRecord:
        async with self.session_factory() as db:
            return await PerformanceService(db).record(record)

    async def history(self, user_id: int) -> List[PerformanceRecord]:
        async with self.session_factory() as db:
            return await PerformanceService(db).history(user_id)
