from datetime import datetime
from typing import List, Literal, Optional, Tuple, Union

from pydantic import Field, StrictInt

from schemas.base import CamelModel, FrozenCamelModel


class AttemptResult(FrozenCamelModel):
    """One graded answer. Never changes once appended to a session."""
    question_index: int = Field(..., ge=0)
    is_correct: bool
    awarded_score: int = Field(..., ge=0)
    feedback: Optional[str] = None
    answer: Union[StrictInt, str]
    timestamp: datetime


class PresentedQuestion(CamelModel):
    """The current question without its answer key."""
    index: int
    kind: Literal["objective", "theory"]
    text: str
    options: Optional[Tuple[str, ...]] = None
    mark: Optional[int] = None


class SessionView(CamelModel):
    session_id: str
    quiz_id: int
    quiz_title: str
    user_id: int
    status: str
    current_index: int
    total_questions: int
    ready_to_advance: bool
    correct_count: int
    deadline: Optional[datetime] = None
    remaining_seconds: Optional[int] = None
    expired: bool = False
    score: Optional[int] = None
    score_message: Optional[str] = None
    current_question: Optional[PresentedQuestion] = None
    attempts: List[AttemptResult] = []


class SessionCreate(CamelModel):
    user_id: int
    quiz_id: int


class SessionStart(CamelModel):
    timer_minutes: Optional[float] = Field(None, description="Countdown length; null for no timer")


class AnswerSubmit(CamelModel):
    answer: Union[StrictInt, str] = Field(..., description="Option index for objective questions, text for theory")


class ExplanationOut(CamelModel):
    question_index: int
    explanation: Optional[str] = None
