from datetime import datetime
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import Field, model_validator

from schemas.base import CamelModel, FrozenCamelModel


class ObjectiveQuestion(FrozenCamelModel):
    """Multiple-choice question with exactly four options."""
    kind: Literal["objective"] = "objective"
    text: str = Field(..., min_length=1, description="The question text")
    options: Tuple[str, ...] = Field(..., min_length=4, max_length=4, description="Exactly 4 answer options")
    correct_index: int = Field(..., ge=0, le=3, description="Index of the correct option (0-based)")


class TheoryQuestion(FrozenCamelModel):
    """Free-text question judged against an expected answer."""
    kind: Literal["theory"] = "theory"
    text: str = Field(..., min_length=1, description="The question text")
    expected_answer: str = Field(..., min_length=1, description="Reference answer given to the judge")
    mark: int = Field(..., ge=1, le=10, description="Raw marks awarded when correct")


Question = Annotated[Union[ObjectiveQuestion, TheoryQuestion], Field(discriminator="kind")]


class QuizBase(FrozenCamelModel):
    title: str = Field(..., min_length=1, max_length=255, examples=["Geography Quiz"])
    description: str = Field(..., min_length=1)
    timer_mode: bool = False
    time_limit_minutes: Optional[int] = Field(None, ge=1, le=180, description="Required when timerMode is on")
    questions: Tuple[Question, ...] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_time_limit(self):
        if self.timer_mode and self.time_limit_minutes is None:
            raise ValueError("timeLimitMinutes is required when timerMode is enabled")
        return self


class QuizCreate(QuizBase):
    """Request body for creating a quiz."""
    creator_id: int


class QuizUpdate(CamelModel):
    """Partial update: omitted fields keep their stored value."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    timer_mode: Optional[bool] = None
    time_limit_minutes: Optional[int] = Field(None, ge=1, le=180)
    questions: Optional[List[Question]] = Field(None, min_length=1)


class Quiz(QuizBase):
    """Immutable quiz as handed to a session."""
    id: int
    creator_id: Optional[int] = None

    @property
    def total_questions(self) -> int:
        return len(self.questions)


class QuizListItem(CamelModel):
    id: int
    title: str
    description: str
    timer_mode: bool
    questions_count: int
    created_at: datetime
