"""Sample models - one poll outcome per row, one table per protocol."""
from datetime import datetime
from typing import Dict, Type

from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, Index
from sqlalchemy.orm import declared_attr

from ..database import Base


class SampleMixin:
    """Columns shared by every protocol's sample table."""

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)
    is_up = Column(Boolean, nullable=False)  # False if the probe failed or timed out
    is_responsive = Column(Boolean, nullable=False)  # Up and faster than the check max time
    time = Column(Integer, nullable=True)  # Latency in ms
    check_id = Column(Integer, nullable=False)
    tags = Column(JSON, default=list)  # Check tags when the sample was taken
    monitor_name = Column(String, nullable=True)
    # Down samples only
    downtime = Column(Integer, nullable=True)  # ms, the check interval
    error = Column(String, nullable=True)

    @declared_attr
    def __table_args__(cls):
        return (
            Index(f"idx_{cls.__tablename__}_timestamp", "timestamp"),
            Index(f"idx_{cls.__tablename__}_check", "check_id", "timestamp"),
        )


class HttpSample(SampleMixin, Base):
    __tablename__ = "samples_http"


class HttpsSample(SampleMixin, Base):
    __tablename__ = "samples_https"


class TcpSample(SampleMixin, Base):
    __tablename__ = "samples_tcp"


class PingSample(SampleMixin, Base):
    __tablename__ = "samples_ping"


SAMPLE_MODELS: Dict[str, Type[SampleMixin]] = {
    "http": HttpSample,
    "https": HttpsSample,
    "tcp": TcpSample,
    "ping": PingSample,
}


def sample_model_for(check_type: str) -> Type[SampleMixin]:
    """Sample table for a check type, falling back to the http table."""
    return SAMPLE_MODELS.get(check_type or "http", HttpSample)
