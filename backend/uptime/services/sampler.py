"""Sampler service - turns poll results into samples and check state."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import CheckNotFound, PollNotExpected
from ..models import Check, CheckEvent, sample_model_for
from ..models.check import DEFAULT_INTERVAL_MS
from ..models.sample import SampleMixin
from ..utils.db_utils import retry_on_lock
from ..utils.time_window import utc_now
from .prober import PollOutcome

logger = logging.getLogger(__name__)

DEFAULT_DOWN_ERROR = "Down"


def build_sample(
    check: Check,
    status: bool,
    time: Optional[int],
    monitor_name: Optional[str],
    error: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> SampleMixin:
    """Build (without saving) the sample for one poll of ``check``."""
    model = sample_model_for(check.type)
    sample = model(
        timestamp=timestamp or utc_now(),
        is_up=status,
        is_responsive=bool(status and check.max_time_ms and time is not None and time < check.max_time_ms),
        time=time,
        check_id=check.id,
        tags=list(check.tags or []),
        monitor_name=monitor_name,
    )
    if not status:
        # The check was down for at most one interval
        sample.downtime = check.interval_ms or DEFAULT_INTERVAL_MS
        sample.error = error or DEFAULT_DOWN_ERROR
    return sample


class SamplerService:
    """Records exactly one sample per expected poll."""

    async def create_sample(
        self,
        session: AsyncSession,
        check_id: int,
        status: bool,
        time: Optional[int],
        monitor_name: Optional[str],
        error: Optional[str] = None,
    ) -> SampleMixin:
        """Record a poll result reported for ``check_id``.

        Raises:
            CheckNotFound: no such check
            PollNotExpected: the check is not waiting for a result
        """
        check = await session.get(Check, check_id)
        if check is None:
            raise CheckNotFound(check_id)
        if not check.needs_poll:
            raise PollNotExpected(check_id)
        return await self.record(session, check, status, time, monitor_name, error)

    async def record_outcome(
        self,
        session: AsyncSession,
        check: Check,
        outcome: PollOutcome,
        monitor_name: Optional[str],
    ) -> SampleMixin:
        return await self.record(
            session, check, outcome.succeeded, outcome.time, monitor_name, outcome.error_message
        )

    async def record(
        self,
        session: AsyncSession,
        check: Check,
        status: bool,
        time: Optional[int],
        monitor_name: Optional[str],
        error: Optional[str] = None,
    ) -> SampleMixin:
        """Persist the sample, then update the check's last test fields.

        The two writes are committed separately: if the second one fails the
        sample stays and the check catches up on its next poll.
        """
        timestamp = utc_now()
        sample = build_sample(check, status, time, monitor_name, error, timestamp)
        session.add(sample)
        await retry_on_lock(session.commit)
        # Samples are immutable; keep it loaded whatever happens to the check write
        session.expunge(sample)

        try:
            previous_change = check.last_changed
            transition = check.set_last_test(status, timestamp)
            if transition:
                event = CheckEvent(timestamp=timestamp, check_id=check.id, message=transition)
                if transition == "up" and previous_change:
                    event.downtime = int((timestamp - previous_change).total_seconds() * 1000)
                session.add(event)
                logger.info(f"Check {check.id} ({check.url}) is {transition}")
            await retry_on_lock(session.commit)
        except Exception as e:
            await session.rollback()
            logger.error(f"Sample saved but failed to update check {check.id}: {e}")

        return sample


sampler_service = SamplerService()
