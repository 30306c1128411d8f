"""Sample and check event schemas."""
from datetime import datetime
from typing import Dict, Optional, List
from pydantic import BaseModel, Field


class SampleCreate(BaseModel):
    """Poll result posted by a monitor."""
    check_id: int
    status: bool
    time: int = Field(default=0, ge=0)
    name: Optional[str] = None  # Monitor name
    error: Optional[str] = None


class SampleResponse(BaseModel):
    id: int
    timestamp: datetime
    is_up: bool
    is_responsive: bool
    time: Optional[int] = None
    check_id: int
    tags: List[str] = Field(default_factory=list)
    monitor_name: Optional[str] = None
    downtime: Optional[int] = None
    error: Optional[str] = None

    class Config:
        from_attributes = True


class CheckEventResponse(BaseModel):
    id: int
    timestamp: datetime
    check_id: int
    message: str
    downtime: Optional[int] = None

    class Config:
        from_attributes = True


EventsByDay = Dict[str, List[CheckEventResponse]]
