from datetime import datetime
from typing import List, Optional

from pydantic import Field

from schemas.base import CamelModel


class TheoryQuestionCreate(CamelModel):
    question: str = Field(..., min_length=1)
    sample_answer: str = Field(..., min_length=1)
    mark: int = Field(1, ge=1, le=10)
    creator_id: int


class TheoryQuestionOut(CamelModel):
    id: int
    question: str
    sample_answer: str
    mark: int
    creator_id: int
    created_at: datetime


class TheoryEvaluateRequest(CamelModel):
    user_id: int
    question_id: int
    user_answer: str = Field(..., min_length=1)


class TheoryEvaluation(CamelModel):
    is_correct: bool
    feedback: str
    sample_answer: Optional[str] = None
    score: int


class TheoryAttemptOut(CamelModel):
    id: int
    question_id: int
    user_answer: str
    score: int
    feedback: str
    is_correct: bool
    created_at: datetime


class TheoryPerformance(CamelModel):
    attempts: List[TheoryAttemptOut] = []
    total_attempts: int = 0
    average_score: float = 0.0
