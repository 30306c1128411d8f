"""CheckEvent model - up/down transitions of a check."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Index

from ..database import Base


class CheckEvent(Base):
    """A check went down, or came back up after ``downtime`` ms."""

    __tablename__ = "check_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)
    check_id = Column(Integer, nullable=False)
    message = Column(String, nullable=False)  # up, down
    downtime = Column(Integer, nullable=True)

    __table_args__ = (
        Index("idx_check_events_timestamp", "timestamp"),
    )
