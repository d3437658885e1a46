from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, TimestampMixin

class TheoryQuestion(Base, TimestampMixin):
    """Standalone copy of a theory question, reusable outside its quiz."""
    __tablename__ = "theory_questions"

    id = Column(Integer, primary_key=True, index=True)
    creator_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    question = Column(Text, nullable=False)
    sample_answer = Column(Text, nullable=False)
    mark = Column(Integer, default=1, nullable=False)

    creator = relationship("User")


class TheoryAttempt(Base, TimestampMixin):
    __tablename__ = "theory_attempts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    question_id = Column(Integer, ForeignKey("theory_questions.id"), index=True, nullable=False)
    user_answer = Column(Text, nullable=False)
    score = Column(Integer, nullable=False)
    feedback = Column(String(500), nullable=False)
    is_correct = Column(Boolean, nullable=False)

    question = relationship("TheoryQuestion")
