"""Check CRUD API endpoints."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..models import Check, CheckEvent, QosBucket, SAMPLE_MODELS
from ..schemas.check import CheckCreate, CheckUpdate, CheckResponse, CheckSummary
from ..schemas.tag import QosBucketResponse
from ..services.check_source import claim_checks_needing_poll
from ..services.reporting import qos_buckets
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/checks", tags=["checks"])


async def _get_check_or_404(db: AsyncSession, check_id: int) -> Check:
    check = await db.get(Check, check_id)
    if not check:
        raise HTTPException(status_code=404, detail="Check not found")
    return check


@router.get("", response_model=List[CheckResponse])
async def list_checks(db: AsyncSession = Depends(get_db)):
    """List all checks with their last result and 24h QoS."""
    result = await db.execute(select(Check).order_by(Check.name))
    return result.scalars().all()


@router.get("/needing-poll", response_model=List[CheckSummary])
async def checks_needing_poll(db: AsyncSession = Depends(get_db)):
    """Claim the checks due for polling.

    Each claimed check is handed out to a single caller until it reports a
    sample or the claim expires.
    """
    return await claim_checks_needing_poll(db, settings.poll_claim_ttl_ms)


@router.post("", response_model=CheckResponse, status_code=201)
async def create_check(data: CheckCreate, db: AsyncSession = Depends(get_db)):
    """Create a new check."""
    check = Check(
        name=data.name,
        url=data.url,
        type=data.type or Check.guess_type(data.url),
        interval_ms=data.interval_ms,
        timeout_ms=data.timeout_ms,
        max_time_ms=data.max_time_ms,
        tags=Check.convert_tags(data.tags),
        needs_poll=True,
    )
    db.add(check)
    await retry_on_lock(db.commit)
    await db.refresh(check)
    logger.info(f"Check created: {check.name} ({check.url})")
    return check


@router.get("/{check_id}", response_model=CheckResponse)
async def get_check(check_id: int, db: AsyncSession = Depends(get_db)):
    return await _get_check_or_404(db, check_id)


@router.put("/{check_id}", response_model=CheckResponse)
async def update_check(check_id: int, update: CheckUpdate, db: AsyncSession = Depends(get_db)):
    """Update a check. Existing samples keep the tags they were taken with."""
    check = await _get_check_or_404(db, check_id)

    if update.name is not None:
        check.name = update.name
    if update.url is not None:
        check.url = update.url
        if update.type is None:
            check.type = Check.guess_type(update.url)
    if update.type is not None:
        check.type = update.type
    if update.interval_ms is not None:
        check.interval_ms = update.interval_ms
    if update.timeout_ms is not None:
        check.timeout_ms = update.timeout_ms
    if update.max_time_ms is not None:
        check.max_time_ms = update.max_time_ms
    if update.tags is not None:
        check.tags = Check.convert_tags(update.tags)

    await retry_on_lock(db.commit)
    await db.refresh(check)
    return check


@router.post("/{check_id}/pause", response_model=CheckResponse)
async def toggle_pause(check_id: int, db: AsyncSession = Depends(get_db)):
    """Pause or resume polling of a check."""
    check = await _get_check_or_404(db, check_id)
    check.is_paused = not check.is_paused
    await retry_on_lock(db.commit)
    await db.refresh(check)
    return check


@router.delete("/{check_id}", status_code=204)
async def delete_check(check_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a check with its samples, events and QoS buckets."""
    check = await _get_check_or_404(db, check_id)

    for model in SAMPLE_MODELS.values():
        await db.execute(delete(model).where(model.check_id == check_id))
    await db.execute(delete(CheckEvent).where(CheckEvent.check_id == check_id))
    await db.execute(
        delete(QosBucket).where(QosBucket.kind == "check", QosBucket.entity_ref == str(check_id))
    )
    await db.delete(check)
    await retry_on_lock(db.commit)
    logger.info(f"Check deleted: {check_id}")


@router.get("/{check_id}/stats", response_model=List[QosBucketResponse])
async def get_check_stats(
    check_id: int,
    grain: str = Query("hour", pattern="^(hour|day|month)$"),
    period: str = Query("1d"),
    page: int = Query(1, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """QoS buckets of a check over a lookback period (1h, 6h, 1d, 7d, MTD, 1m, ...)."""
    await _get_check_or_404(db, check_id)
    try:
        return await qos_buckets(db, "check", str(check_id), grain, period, page)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
