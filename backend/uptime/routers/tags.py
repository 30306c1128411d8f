"""Tag API endpoints."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import Tag
from ..schemas.tag import TagResponse, QosBucketResponse
from ..services.reporting import qos_buckets

router = APIRouter(prefix="/api/tags", tags=["tags"])


@router.get("", response_model=List[TagResponse])
async def list_tags(db: AsyncSession = Depends(get_db)):
    """List all tags with their 24h QoS."""
    result = await db.execute(select(Tag).order_by(Tag.name))
    return result.scalars().all()


@router.get("/{name}", response_model=TagResponse)
async def get_tag(name: str, db: AsyncSession = Depends(get_db)):
    tag = await db.get(Tag, name)
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    return tag


@router.get("/{name}/stats", response_model=List[QosBucketResponse])
async def get_tag_stats(
    name: str,
    grain: str = Query("hour", pattern="^(hour|day|month)$"),
    period: str = Query("1d"),
    page: int = Query(1, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """QoS buckets of a tag over a lookback period."""
    try:
        return await qos_buckets(db, "tag", name, grain, period, page)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
