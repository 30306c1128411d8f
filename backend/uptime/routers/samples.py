"""Sample API endpoints - poll results in, recent history out."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..exceptions import CheckNotFound, PollNotExpected
from ..models import Check
from ..schemas.sample import SampleCreate, SampleResponse, EventsByDay
from ..services.reporting import recent_samples, recent_events
from ..services.sampler import sampler_service

router = APIRouter(prefix="/api/samples", tags=["samples"])


@router.post("", response_model=SampleResponse)
async def create_sample(data: SampleCreate, db: AsyncSession = Depends(get_db)):
    """Record the result of a poll started from /api/checks/needing-poll."""
    try:
        return await sampler_service.create_sample(
            db, data.check_id, data.status, data.time, data.name, data.error
        )
    except CheckNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PollNotExpected as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.get("/events", response_model=EventsByDay)
async def get_events(days: int = Query(7, ge=1, le=366), db: AsyncSession = Depends(get_db)):
    """Up/down events of all checks, grouped by day, newest first."""
    return await recent_events(db, days)


@router.get("/check/{check_id}", response_model=List[SampleResponse])
async def get_check_samples(check_id: int, page: int = Query(1, ge=1), db: AsyncSession = Depends(get_db)):
    """Samples of a check, 50 per page, newest first."""
    check = await db.get(Check, check_id)
    if not check:
        raise HTTPException(status_code=404, detail="Check not found")
    return await recent_samples(db, check.type, check_id, page)
