"""Check model - endpoints being monitored."""
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlparse

from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON

from ..database import Base

DEFAULT_INTERVAL_MS = 60 * 1000
DEFAULT_MAX_TIME_MS = 1500

KNOWN_TYPES = ("http", "https", "tcp", "ping")


class Check(Base):
    """A monitored endpoint with its polling policy and cached last result."""

    __tablename__ = "checks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False)
    type = Column(String, nullable=False, default="http")  # http, https, tcp, ping
    interval_ms = Column(Integer, default=DEFAULT_INTERVAL_MS)
    timeout_ms = Column(Integer, nullable=True)  # NULL = scheduler default
    max_time_ms = Column(Integer, default=DEFAULT_MAX_TIME_MS)
    tags = Column(JSON, default=list)
    is_paused = Column(Boolean, default=False)

    # Polling gate: True while a result is expected for this check
    needs_poll = Column(Boolean, default=True)
    poll_claimed_at = Column(DateTime, nullable=True)

    is_up = Column(Boolean, nullable=True)  # NULL = never tested
    first_tested = Column(DateTime, nullable=True)
    last_tested = Column(DateTime, nullable=True)
    last_changed = Column(DateTime, nullable=True)

    qos = Column(JSON, nullable=True)  # Last 24 hours aggregate
    created_at = Column(DateTime, default=datetime.utcnow)

    @staticmethod
    def guess_type(url: str) -> str:
        """Guess the protocol from the URL scheme, defaulting to http."""
        scheme = urlparse(url).scheme.lower()
        return scheme if scheme in KNOWN_TYPES else "http"

    @staticmethod
    def convert_tags(tags) -> list:
        """Normalize a comma-separated string or list into unique tag names."""
        if isinstance(tags, str):
            tags = tags.split(",")
        result = []
        for tag in tags or []:
            tag = tag.strip()
            if tag and tag not in result:
                result.append(tag)
        return result

    def is_due(self, now: datetime) -> bool:
        """True if the poll interval has elapsed since the last test."""
        if self.is_paused:
            return False
        if self.last_tested is None:
            return True
        interval = timedelta(milliseconds=self.interval_ms or DEFAULT_INTERVAL_MS)
        return self.last_tested + interval <= now

    def set_last_test(self, status: bool, timestamp: datetime) -> Optional[str]:
        """Store the last poll result and close the polling gate.

        Returns "up" or "down" when the status changed, None otherwise.
        """
        transition = None
        if self.is_up is None:
            # First sample only counts as an event if the check starts down
            transition = None if status else "down"
            self.first_tested = timestamp
            self.last_changed = timestamp
        elif self.is_up != status:
            transition = "up" if status else "down"
            self.last_changed = timestamp
        self.is_up = status
        self.last_tested = timestamp
        self.needs_poll = False
        self.poll_claimed_at = None
        return transition
