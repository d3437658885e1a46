from core.clock import utcnow
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from models.base import Base

class Performance(Base):
    """Append-only result of one finished quiz session."""
    __tablename__ = "performances"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    # Plain column: history outlives the quiz it refers to
    quiz_id = Column(Integer, nullable=False)
    quiz_title = Column(String(255), nullable=False)
    score = Column(Integer, nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

Index("idx_performance_user_timestamp", Performance.user_id, Performance.timestamp)
