"""Pydantic schemas for API request/response models."""
from .check import (
    QosSnapshot,
    CheckCreate,
    CheckUpdate,
    CheckSummary,
    CheckResponse,
)
from .sample import (
    SampleCreate,
    SampleResponse,
    CheckEventResponse,
    EventsByDay,
)
from .tag import (
    TagResponse,
    QosBucketResponse,
)

__all__ = [
    "QosSnapshot",
    "CheckCreate",
    "CheckUpdate",
    "CheckSummary",
    "CheckResponse",
    "SampleCreate",
    "SampleResponse",
    "CheckEventResponse",
    "EventsByDay",
    "TagResponse",
    "QosBucketResponse",
]
