"""Tag and QoS bucket schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from .check import QosSnapshot


class TagResponse(BaseModel):
    name: str
    qos: Optional[QosSnapshot] = None
    last_updated: Optional[datetime] = None

    class Config:
        from_attributes = True


class QosBucketResponse(QosSnapshot):
    """One rollup bucket."""
    timestamp: datetime
    grain: str

    class Config:
        from_attributes = True
