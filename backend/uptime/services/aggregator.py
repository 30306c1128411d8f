"""Aggregation service - rolls samples up into QoS buckets and snapshots.

Every pass is a batch job over a closed time window. Samples are grouped by
check and by tag, reduced into QosStat counters and upserted keyed by
(entity, grain, period start), so any pass can be re-run safely.

Cascades only read the level below: hourly buckets come from samples, daily
buckets from hourly buckets, monthly buckets from daily buckets.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..exceptions import AggregationWriteError
from ..models import Check, CheckEvent, QosBucket, Tag, SAMPLE_MODELS
from ..utils.db_utils import retry_on_lock
from ..utils.time_window import utc_now, window, next_start, iter_periods

logger = logging.getLogger(__name__)

# Summarize an hour only once the scheduler had time to land its samples
LAST_HOUR_LAG = timedelta(minutes=6)
LAST_24_HOURS = timedelta(hours=24)

CASCADE = {"day": "hour", "month": "day"}


@dataclass(frozen=True)
class CheckKey:
    check_id: int

    kind = "check"

    @property
    def ref(self) -> str:
        return str(self.check_id)


@dataclass(frozen=True)
class TagKey:
    name: str

    kind = "tag"

    @property
    def ref(self) -> str:
        return self.name


QosKey = Union[CheckKey, TagKey]


def key_for(kind: str, ref: str) -> QosKey:
    """Rebuild an aggregation key from a stored bucket."""
    if kind == CheckKey.kind:
        return CheckKey(int(ref))
    return TagKey(ref)


@dataclass
class QosStat:
    count: int = 0
    ups: int = 0
    responsives: int = 0
    time: Optional[int] = None
    downtime: int = 0

    def add(self, other: "QosStat") -> None:
        """Sum counters; latency keeps the most recent contribution."""
        self.count += other.count
        self.ups += other.ups
        self.responsives += other.responsives
        self.downtime += other.downtime
        self.time = other.time

    def as_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_bucket(cls, bucket: QosBucket) -> "QosStat":
        return cls(
            count=bucket.count,
            ups=bucket.ups,
            responsives=bucket.responsives,
            time=bucket.time,
            downtime=bucket.downtime,
        )


def map_sample(sample) -> Iterator[Tuple[QosKey, QosStat]]:
    """Emit one contribution for the sample's check and one per tag."""
    def contribution() -> QosStat:
        return QosStat(
            count=1,
            ups=1 if sample.is_up else 0,
            responsives=1 if sample.is_responsive else 0,
            time=sample.time,
            downtime=sample.downtime or 0,
        )

    yield CheckKey(sample.check_id), contribution()
    for tag in sample.tags or []:
        yield TagKey(tag), contribution()


def reduce_stats(pairs: Iterable[Tuple[QosKey, QosStat]]) -> Dict[QosKey, QosStat]:
    results: Dict[QosKey, QosStat] = {}
    for key, stat in pairs:
        results.setdefault(key, QosStat()).add(stat)
    return results


def reduce_samples(samples: Iterable) -> Dict[QosKey, QosStat]:
    """Group and reduce samples, which must be sorted oldest first."""
    return reduce_stats(pair for sample in samples for pair in map_sample(sample))


class AggregationEngine:
    """Computes hourly/daily/monthly buckets, live QoS and retention."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def _samples_between(
        self, session: AsyncSession, start: datetime, end: datetime, include_end: bool = False
    ) -> List:
        samples = []
        for model in SAMPLE_MODELS.values():
            upper = model.timestamp <= end if include_end else model.timestamp < end
            result = await session.execute(select(model).where(model.timestamp >= start, upper))
            samples.extend(result.scalars().all())
        samples.sort(key=lambda s: (s.timestamp, s.id))
        return samples

    async def get_qos_for_period(
        self, session: AsyncSession, start: datetime, end: datetime, include_end: bool = False
    ) -> Dict[QosKey, QosStat]:
        """QoS per check and per tag for samples in [start, end), or [start, end] with ``include_end``."""
        return reduce_samples(await self._samples_between(session, start, end, include_end))

    async def _store_all(self, session: AsyncSession, results: Dict[QosKey, QosStat], write) -> int:
        """Write each key in its own transaction; failures are logged and skipped."""
        stored = 0
        for key, stat in results.items():
            try:
                await write(session, key, stat)
                await retry_on_lock(session.commit)
                stored += 1
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(str(AggregationWriteError(key, e)))
        return stored

    @staticmethod
    async def upsert_bucket(
        session: AsyncSession, key: QosKey, grain: str, period_start: datetime, stat: QosStat
    ) -> QosBucket:
        result = await session.execute(
            select(QosBucket).where(
                QosBucket.kind == key.kind,
                QosBucket.entity_ref == key.ref,
                QosBucket.grain == grain,
                QosBucket.timestamp == period_start,
            )
        )
        bucket = result.scalar_one_or_none()
        if bucket is None:
            bucket = QosBucket(kind=key.kind, entity_ref=key.ref, grain=grain, timestamp=period_start)
            session.add(bucket)
        bucket.count = stat.count
        bucket.ups = stat.ups
        bucket.responsives = stat.responsives
        bucket.time = stat.time
        bucket.downtime = stat.downtime
        return bucket

    async def update_hourly_qos(self, now: datetime) -> int:
        """Aggregate the samples of the hour containing ``now``."""
        period = window(now, "hour")
        async with self.session_factory() as session:
            results = await self.get_qos_for_period(session, period.start, next_start(period.start, "hour"))

            async def write(session, key, stat):
                await self.upsert_bucket(session, key, "hour", period.start, stat)

            stored = await self._store_all(session, results, write)
        logger.debug(f"Hourly QoS for {period.start:%Y-%m-%d %H:00}: {stored}/{len(results)} keys")
        return stored

    async def update_last_hour_qos(self, now: Optional[datetime] = None) -> int:
        return await self.update_hourly_qos((now or utc_now()) - LAST_HOUR_LAG)

    async def update_last_24h_qos(self, now: Optional[datetime] = None) -> int:
        """Refresh the live ``qos`` snapshot of checks and tags."""
        end = now or utc_now()
        start = end - LAST_24_HOURS
        async with self.session_factory() as session:
            results = await self.get_qos_for_period(session, start, end, include_end=True)

            async def write(session, key, stat):
                if isinstance(key, CheckKey):
                    check = await session.get(Check, key.check_id)
                    if check is None:
                        return  # Deleted since the sample was taken
                    check.qos = stat.as_dict()
                else:
                    tag = await session.get(Tag, key.name)
                    if tag is None:
                        tag = Tag(name=key.name)
                        session.add(tag)
                    tag.qos = stat.as_dict()
                    tag.last_updated = end

            return await self._store_all(session, results, write)

    async def update_recent_qos(self, now: Optional[datetime] = None) -> None:
        """Short-horizon pass: last 24 hours snapshots, then the last hour bucket."""
        now = now or utc_now()
        await self.update_last_24h_qos(now)
        await self.update_last_hour_qos(now)

    async def _cascade(self, now: datetime, grain: str) -> int:
        """Reduce the lower grain buckets of the period containing ``now``."""
        source_grain = CASCADE[grain]
        period = window(now, grain)
        async with self.session_factory() as session:
            result = await session.execute(
                select(QosBucket)
                .where(
                    QosBucket.grain == source_grain,
                    QosBucket.timestamp >= period.start,
                    QosBucket.timestamp < next_start(period.start, grain),
                )
                .order_by(QosBucket.timestamp, QosBucket.id)
            )
            results = reduce_stats(
                (key_for(b.kind, b.entity_ref), QosStat.from_bucket(b)) for b in result.scalars().all()
            )

            async def write(session, key, stat):
                await self.upsert_bucket(session, key, grain, period.start, stat)

            return await self._store_all(session, results, write)

    async def update_daily_qos(self, now: datetime) -> int:
        return await self._cascade(now, "day")

    async def update_monthly_qos(self, now: datetime) -> int:
        return await self._cascade(now, "month")

    async def rollup(self, now: Optional[datetime] = None, lookback: timedelta = timedelta(hours=1)) -> None:
        """Recompute every hour, day and month touched by the last ``lookback``.

        The window ends LAST_HOUR_LAG before ``now`` and is extended by the
        same lag backwards, so an hour closed between two passes is always
        covered by the later one.
        """
        end = (now or utc_now()) - LAST_HOUR_LAG
        start = end - lookback - LAST_HOUR_LAG
        for hour in iter_periods(start, end, "hour"):
            await self.update_hourly_qos(hour)
        for day in iter_periods(start, end, "day"):
            await self.update_daily_qos(day)
        for month in iter_periods(start, end, "month"):
            await self.update_monthly_qos(month)

    async def prune(self, older_than: datetime) -> Dict[str, int]:
        """Delete samples and check events strictly older than ``older_than``."""
        deleted = {}
        async with self.session_factory() as session:
            for model in list(SAMPLE_MODELS.values()) + [CheckEvent]:
                result = await session.execute(delete(model).where(model.timestamp < older_than))
                deleted[model.__tablename__] = result.rowcount
            await retry_on_lock(session.commit)
        logger.info(f"Pruned history older than {older_than:%Y-%m-%d %H:%M}: {deleted}")
        return deleted

    async def aggregate(
        self,
        now: Optional[datetime] = None,
        lookback: timedelta = timedelta(hours=1),
        retention: timedelta = timedelta(days=93),
    ) -> None:
        """Long-horizon pass: rollups first, retention only afterwards."""
        now = now or utc_now()
        await self.rollup(now, lookback)
        await self.prune(now - retention)
