"""Check sources - where pollers get due checks and send their results.

``DatabaseCheckSource`` works directly against the database (server mode).
``ApiCheckSource`` talks to a remote server over HTTP (agent mode).
"""
import logging
from datetime import timedelta
from typing import List, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..exceptions import SourceUnavailable, CheckNotFound, PollNotExpected
from ..models import Check
from ..schemas.check import CheckSummary
from ..utils.db_utils import retry_on_lock
from ..utils.time_window import utc_now
from .prober import PollOutcome
from .sampler import SamplerService, sampler_service

logger = logging.getLogger(__name__)


async def claim_checks_needing_poll(session: AsyncSession, claim_ttl_ms: int = 60000) -> List[Check]:
    """Open the polling gate of due checks and claim those nobody is polling.

    Runs in the caller's transaction; rows are locked on PostgreSQL so that
    concurrent agents never claim the same check.
    """
    now = utc_now()
    lease_cutoff = now - timedelta(milliseconds=claim_ttl_ms)
    result = await session.execute(
        select(Check)
        .where(Check.is_paused.is_not(True))
        .order_by(Check.id)
        .with_for_update(skip_locked=True)
    )
    claimed = []
    for check in result.scalars().all():
        if check.is_due(now):
            check.needs_poll = True
        if not check.needs_poll:
            continue
        if check.poll_claimed_at is not None and check.poll_claimed_at > lease_cutoff:
            continue  # Another poll is in flight
        check.poll_claimed_at = now
        claimed.append(check)
    await retry_on_lock(session.commit)
    return claimed


class DatabaseCheckSource:
    """Check source backed by the local database."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        sampler: SamplerService = sampler_service,
        claim_ttl_ms: int = 60000,
    ):
        self.session_factory = session_factory
        self.sampler = sampler
        self.claim_ttl_ms = claim_ttl_ms

    async def checks_needing_poll(self) -> List[CheckSummary]:
        try:
            async with self.session_factory() as session:
                checks = await claim_checks_needing_poll(session, self.claim_ttl_ms)
                return [CheckSummary.model_validate(check) for check in checks]
        except SQLAlchemyError as e:
            raise SourceUnavailable(f"Checks needing poll query failed: {e}") from e

    async def create_sample(self, check: CheckSummary, outcome: PollOutcome, monitor_name: str):
        try:
            async with self.session_factory() as session:
                return await self.sampler.create_sample(
                    session,
                    check.id,
                    outcome.succeeded,
                    outcome.time,
                    monitor_name,
                    outcome.error_message,
                )
        except SQLAlchemyError as e:
            raise SourceUnavailable(f"Sample creation failed: {e}") from e


class ApiCheckSource:
    """Check source backed by a remote server's API."""

    def __init__(self, server_url: str, timeout: float = 30, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.server_url, timeout=self.timeout, transport=self.transport)

    async def checks_needing_poll(self) -> List[CheckSummary]:
        try:
            async with self._client() as client:
                response = await client.get("/api/checks/needing-poll")
        except httpx.HTTPError as e:
            raise SourceUnavailable(f"{self.server_url}/api/checks/needing-poll not available: {e}") from e
        if response.status_code != 200:
            raise SourceUnavailable(
                f"{self.server_url}/api/checks/needing-poll responded with error code: {response.status_code}"
            )
        return [CheckSummary.model_validate(item) for item in response.json()]

    async def create_sample(self, check: CheckSummary, outcome: PollOutcome, monitor_name: str) -> dict:
        payload = {
            "check_id": check.id,
            "status": outcome.succeeded,
            "time": outcome.time,
            "name": monitor_name,
            "error": outcome.error_message,
        }
        try:
            async with self._client() as client:
                response = await client.post("/api/samples", json=payload)
        except httpx.HTTPError as e:
            raise SourceUnavailable(f"{self.server_url}/api/samples not available: {e}") from e
        if response.status_code == 404:
            raise CheckNotFound(check.id)
        if response.status_code == 403:
            raise PollNotExpected(check.id)
        if response.status_code not in (200, 201):
            raise SourceUnavailable(f"{self.server_url}/api/samples responded with error code: {response.status_code}")
        return response.json()
