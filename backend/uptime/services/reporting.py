"""Read-only queries behind the dashboard and API."""
from collections import OrderedDict
from datetime import timedelta
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import CheckEvent, QosBucket, sample_model_for
from ..utils.time_window import utc_now, page_window

SAMPLES_PER_PAGE = 50


async def recent_samples(session: AsyncSession, check_type: str, check_id: int, page: int = 1) -> List:
    """Samples of a check, newest first, SAMPLES_PER_PAGE per page."""
    model = sample_model_for(check_type)
    result = await session.execute(
        select(model)
        .where(model.check_id == check_id)
        .order_by(model.timestamp.desc(), model.id.desc())
        .limit(SAMPLES_PER_PAGE)
        .offset((max(page, 1) - 1) * SAMPLES_PER_PAGE)
    )
    return list(result.scalars().all())


def aggregate_events_by_day(events: List[CheckEvent]) -> Dict[str, List[CheckEvent]]:
    """Group events by UTC day, keeping the order they come in."""
    days: Dict[str, List[CheckEvent]] = OrderedDict()
    for event in events:
        days.setdefault(event.timestamp.strftime("%Y-%m-%d"), []).append(event)
    return days


async def recent_events(session: AsyncSession, days: int = 7) -> Dict[str, List[CheckEvent]]:
    since = utc_now() - timedelta(days=days)
    result = await session.execute(
        select(CheckEvent)
        .where(CheckEvent.timestamp >= since)
        .order_by(CheckEvent.timestamp.desc())
    )
    return aggregate_events_by_day(list(result.scalars().all()))


async def qos_buckets(
    session: AsyncSession,
    kind: str,
    entity_ref: str,
    grain: str = "hour",
    period: str = "1d",
    page: int = 1,
) -> List[QosBucket]:
    """Buckets of one entity within page ``page`` of the ``period`` lookback."""
    bounds = page_window(period, page)
    result = await session.execute(
        select(QosBucket)
        .where(
            QosBucket.kind == kind,
            QosBucket.entity_ref == entity_ref,
            QosBucket.grain == grain,
            QosBucket.timestamp >= bounds.start,
            QosBucket.timestamp <= bounds.end if page == 1 else QosBucket.timestamp < bounds.end,
        )
        .order_by(QosBucket.timestamp)
    )
    return list(result.scalars().all())
