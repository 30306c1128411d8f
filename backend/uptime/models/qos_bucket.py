"""QosBucket model - precomputed QoS per entity and aligned period."""
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint, Index

from ..database import Base


class QosBucket(Base):
    """Hourly, daily or monthly QoS rollup for a check or a tag."""

    __tablename__ = "qos_buckets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String, nullable=False)  # check, tag
    entity_ref = Column(String, nullable=False)  # check id or tag name
    grain = Column(String, nullable=False)  # hour, day, month
    timestamp = Column(DateTime, nullable=False)  # period start
    count = Column(Integer, nullable=False, default=0)
    ups = Column(Integer, nullable=False, default=0)
    responsives = Column(Integer, nullable=False, default=0)
    time = Column(Integer, nullable=True)
    downtime = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("kind", "entity_ref", "grain", "timestamp", name="uq_qos_bucket"),
        Index("idx_qos_bucket_lookup", "kind", "entity_ref", "grain", "timestamp"),
    )
