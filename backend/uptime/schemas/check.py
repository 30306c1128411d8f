"""Check schemas for API."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator


class QosSnapshot(BaseModel):
    """Aggregated QoS counters over a period."""
    count: int = 0
    ups: int = 0
    responsives: int = 0
    time: Optional[int] = None  # Latency of the last aggregated sample
    downtime: int = 0

    @property
    def availability(self) -> Optional[float]:
        if not self.count:
            return None
        return self.ups / self.count


def _split_tags(value):
    if isinstance(value, str):
        value = value.split(",")
    return value


class CheckCreate(BaseModel):
    """Schema for creating a new check."""
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1)
    type: Optional[str] = Field(None, pattern="^(http|https|tcp|ping)$")  # Guessed from URL if omitted
    interval_ms: int = Field(default=60000, ge=1000)
    timeout_ms: Optional[int] = Field(None, ge=100)
    max_time_ms: int = Field(default=1500, ge=1)
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value):
        return _split_tags(value)


class CheckUpdate(BaseModel):
    """Schema for updating a check."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    url: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = Field(None, pattern="^(http|https|tcp|ping)$")
    interval_ms: Optional[int] = Field(None, ge=1000)
    timeout_ms: Optional[int] = Field(None, ge=100)
    max_time_ms: Optional[int] = Field(None, ge=1)
    tags: Optional[List[str]] = None

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value):
        return _split_tags(value)


class CheckSummary(BaseModel):
    """What a poller needs to know about a check."""
    id: int
    url: str
    type: str = "http"
    interval_ms: Optional[int] = None
    timeout_ms: Optional[int] = None
    max_time_ms: Optional[int] = None

    class Config:
        from_attributes = True


class CheckResponse(CheckSummary):
    """Schema for check in API responses."""
    name: str
    tags: List[str] = Field(default_factory=list)
    is_paused: bool = False
    needs_poll: bool = True
    is_up: Optional[bool] = None
    last_tested: Optional[datetime] = None
    last_changed: Optional[datetime] = None
    qos: Optional[QosSnapshot] = None
    created_at: Optional[datetime] = None
