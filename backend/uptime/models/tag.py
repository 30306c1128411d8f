"""Tag model - live QoS for groups of checks sharing a tag."""
from sqlalchemy import Column, String, DateTime, JSON

from ..database import Base


class Tag(Base):
    """A tag, created the first time a sample carrying it is aggregated."""

    __tablename__ = "tags"

    name = Column(String, primary_key=True)
    qos = Column(JSON, nullable=True)  # Last 24 hours aggregate
    last_updated = Column(DateTime, nullable=True)
