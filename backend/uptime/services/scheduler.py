"""Scheduler service - drives polling, QoS refresh and aggregation.

Three independent interval jobs, each run once immediately on start:
- poll: fetch the checks needing poll and probe each of them
- update: refresh last hour buckets and last 24 hours snapshots
- aggregate: cascade hour/day/month buckets, then apply retention

Poll ticks fire on the wall clock even if a previous tick is still probing
slow checks. Aggregation ticks never overlap. No job error stops the
scheduler; only stop() does.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import Settings
from ..exceptions import SourceUnavailable, RejectionError
from ..schemas.check import CheckSummary
from .aggregator import AggregationEngine
from .prober import ProberService

logger = logging.getLogger(__name__)

# Poll ticks allowed to run at the same time before APScheduler skips one
MAX_OVERLAPPING_POLL_TICKS = 5


@dataclass
class SchedulerConfig:
    """Intervals and limits for the scheduler, all durations in ms."""
    polling_interval_ms: int = 10 * 1000
    update_interval_ms: int = 60 * 1000
    aggregation_interval_ms: int = 60 * 60 * 1000
    timeout_ms: int = 5 * 1000
    retention_ms: int = 3 * 31 * 24 * 60 * 60 * 1000
    max_concurrent_polls: int = 10
    monitor_name: str = "monitor"

    @classmethod
    def from_settings(cls, settings: Settings) -> "SchedulerConfig":
        return cls(
            polling_interval_ms=settings.polling_interval_ms,
            update_interval_ms=settings.update_interval_ms,
            aggregation_interval_ms=settings.aggregation_interval_ms,
            timeout_ms=settings.timeout_ms,
            retention_ms=settings.retention_ms,
            max_concurrent_polls=settings.max_concurrent_polls,
            monitor_name=settings.monitor_name,
        )


class SchedulerService:
    """Owns the interval jobs of one monitoring process.

    ``source`` provides checks needing poll and accepts samples; it is a
    DatabaseCheckSource in server mode and an ApiCheckSource in agent mode.
    Without an ``aggregator`` only the poll job is scheduled.
    """

    def __init__(
        self,
        config: SchedulerConfig,
        source,
        prober: Optional[ProberService] = None,
        aggregator: Optional[AggregationEngine] = None,
    ):
        self.config = config
        self.source = source
        self.prober = prober or ProberService(timeout_ms=config.timeout_ms)
        self.aggregator = aggregator
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def _add_job(self, func, interval_ms: int, job_id: str, max_instances: int = 1):
        self.scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=interval_ms / 1000),
            id=job_id,
            replace_existing=True,
            max_instances=max_instances,
            next_run_time=datetime.now(),  # Run right away, then on the interval
        )

    def start(self):
        """Start the scheduler. Must be called with a running event loop."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler()
        self._add_job(
            self.poll_tick,
            self.config.polling_interval_ms,
            "poll",
            max_instances=MAX_OVERLAPPING_POLL_TICKS,
        )
        if self.aggregator is not None:
            self._add_job(self.update_tick, self.config.update_interval_ms, "update_qos")
            self._add_job(self.aggregate_tick, self.config.aggregation_interval_ms, "aggregate_qos")

        self.scheduler.start()
        self._running = True
        logger.info(
            f"Monitor {self.config.monitor_name} started "
            f"(poll={self.config.polling_interval_ms}ms, update={self.config.update_interval_ms}ms, "
            f"aggregation={self.config.aggregation_interval_ms}ms)"
        )

    def stop(self):
        """Cancel future ticks; running ones are left to finish."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info(f"Monitor {self.config.monitor_name} stopped")

    async def poll_tick(self) -> None:
        """Poll every check needing poll, each independently of the others."""
        try:
            checks = await self.source.checks_needing_poll()
        except SourceUnavailable as e:
            logger.error(f"Skipping poll tick: {e}")
            return
        except Exception as e:
            logger.error(f"Error fetching checks needing poll: {e}")
            return

        if not checks:
            return

        logger.debug(f"Polling {len(checks)} checks")
        semaphore = asyncio.Semaphore(self.config.max_concurrent_polls)

        async def poll_with_limit(check: CheckSummary):
            async with semaphore:
                await self.poll_check(check)

        await asyncio.gather(*[poll_with_limit(check) for check in checks])

    async def poll_check(self, check: CheckSummary) -> None:
        """Probe one check and report the result; never raises."""
        try:
            outcome = await self.prober.poll(check.type, check.url, check.timeout_ms or self.config.timeout_ms)
            await self.source.create_sample(check, outcome, self.config.monitor_name)
            if not outcome.succeeded:
                logger.warning(f"Check {check.id} ({check.url}) failed: {outcome.error_message}")
        except RejectionError as e:
            logger.info(f"Sample rejected for check {check.id}: {e}")
        except SourceUnavailable as e:
            logger.error(f"Could not record sample for check {check.id}: {e}")
        except Exception as e:
            logger.error(f"Error polling check {check.id}: {e}")

    async def update_tick(self) -> None:
        try:
            await self.aggregator.update_recent_qos()
        except Exception as e:
            logger.error(f"Error updating recent QoS: {e}")

    async def aggregate_tick(self) -> None:
        """Roll up buckets, then prune history past retention."""
        try:
            await self.aggregator.aggregate(
                lookback=timedelta(milliseconds=self.config.aggregation_interval_ms),
                retention=timedelta(milliseconds=self.config.retention_ms),
            )
        except Exception as e:
            logger.error(f"Error aggregating QoS: {e}")
