from datetime import datetime
from typing import List

from pydantic import Field

from core.clock import utcnow
from schemas.base import CamelModel, FrozenCamelModel


class PerformanceRecord(FrozenCamelModel):
    """Persisted summary of one finished session."""
    user_id: int
    quiz_id: int
    quiz_title: str = Field(..., min_length=1)
    score: int = Field(..., ge=0, le=100)
    timestamp: datetime = Field(default_factory=utcnow)


class PerformanceSummary(CamelModel):
    total_quizzes_taken: int = 0
    overall_average: int = 0
    recent_performances: List[PerformanceRecord] = []
    all_performances: List[PerformanceRecord] = []
