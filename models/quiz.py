from sqlalchemy import Column, Integer, String, Text, JSON, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, TimestampMixin

class Quiz(Base, TimestampMixin):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    creator_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    timer_mode = Column(Boolean, default=False, nullable=False)
    time_limit_minutes = Column(Integer, nullable=True)
    # Ordered list of question dicts, each tagged with "kind"
    questions_json = Column(JSON, nullable=False)

    creator = relationship("User", backref="quizzes")
