"""Prober service - measures the latency of a single poll per protocol."""
import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Dict, Optional, Type
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)


class ProbeError(Exception):
    """A poll that did not succeed."""


class ProbeTimeout(ProbeError):
    def __init__(self):
        super().__init__("Timeout")


class ConnectionFailed(ProbeError):
    pass


class BadStatus(ProbeError):
    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


@dataclass
class PollOutcome:
    """Result of one poll: latency in ms, and the error if it failed."""
    time: int
    error: Optional[ProbeError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return str(self.error) or type(self.error).__name__


class Prober:
    """Base class for protocol probers.

    ``poll`` returns the latency in ms or raises ProbeError. Probers keep no
    state between calls and never retry.
    """

    async def poll(self, url: str, timeout: float) -> int:
        raise NotImplementedError


PROBERS: Dict[str, Type[Prober]] = {}

DEFAULT_PROBER = "http"


def register_prober(name: str):
    """Class decorator adding a prober to the lookup table."""
    def decorator(cls: Type[Prober]) -> Type[Prober]:
        PROBERS[name] = cls
        return cls
    return decorator


def get_prober(check_type: Optional[str]) -> Prober:
    """Instantiate the prober for a check type, falling back to http."""
    cls = PROBERS.get(check_type or DEFAULT_PROBER)
    if cls is None:
        logger.warning(f"Unknown check type {check_type!r}, using {DEFAULT_PROBER} prober")
        cls = PROBERS[DEFAULT_PROBER]
    return cls()


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


@register_prober("http")
class HttpProber(Prober):
    """GET the URL; any 2xx or 3xx response counts as up."""

    scheme = "http"

    async def poll(self, url: str, timeout: float) -> int:
        if "://" not in url:
            url = f"{self.scheme}://{url}"
        start = time.perf_counter()
        try:
            # Disable SSL verification to handle self-signed certificates
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, verify=False) as client:
                response = await client.get(url)
        except httpx.TimeoutException:
            raise ProbeTimeout()
        except httpx.InvalidURL as e:
            raise ConnectionFailed(f"Invalid target: {e}")
        except httpx.HTTPError as e:
            raise ConnectionFailed(f"Connection error: {e}")
        elapsed = _elapsed_ms(start)
        if not (200 <= response.status_code < 400):
            raise BadStatus(response.status_code)
        return elapsed


@register_prober("https")
class HttpsProber(HttpProber):
    scheme = "https"


@register_prober("tcp")
class TcpProber(Prober):
    """Open a TCP connection to host:port (tcp://host:port)."""

    default_port = 80

    async def poll(self, url: str, timeout: float) -> int:
        try:
            parsed = urlparse(url if "://" in url else f"tcp://{url}")
            host = parsed.hostname
            port = parsed.port or self.default_port
        except ValueError as e:
            raise ConnectionFailed(f"Invalid target: {e}")
        if not host:
            raise ConnectionFailed(f"Invalid target: {url}")
        start = time.perf_counter()
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
        except asyncio.TimeoutError:
            raise ProbeTimeout()
        except OSError as e:
            raise ConnectionFailed(f"Connection error: {e}")
        elapsed = _elapsed_ms(start)
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return elapsed


# Example line: "64 bytes from 8.8.8.8: icmp_seq=1 ttl=117 time=14.2 ms"
PING_TIME = re.compile(r'time=(\d+\.?\d*)\s*ms')


@register_prober("ping")
class PingProber(Prober):
    """Send a single ICMP echo with the system ping command."""

    async def poll(self, url: str, timeout: float) -> int:
        try:
            host = urlparse(url).hostname if "://" in url else url
        except ValueError as e:
            raise ConnectionFailed(f"Invalid target: {e}")
        if not host:
            raise ConnectionFailed(f"Invalid target: {url}")
        wait = str(max(1, int(timeout)))
        try:
            proc = await asyncio.create_subprocess_exec(
                "ping", "-c", "1", "-W", wait, host,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ConnectionFailed(f"ping unavailable: {e}")
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            raise ProbeTimeout()
        match = PING_TIME.search(stdout.decode())
        if proc.returncode != 0 or not match:
            raise ConnectionFailed("No response")
        return int(float(match.group(1)))


class ProberService:
    """Dispatches polls to the prober matching each check's type."""

    def __init__(self, timeout_ms: int = 5000):
        self.timeout_ms = timeout_ms

    async def poll(self, check_type: Optional[str], url: str, timeout_ms: Optional[int] = None) -> PollOutcome:
        """Poll once and report the outcome; ProbeErrors become failed outcomes."""
        timeout = (timeout_ms or self.timeout_ms) / 1000
        prober = get_prober(check_type)
        start = time.perf_counter()
        try:
            latency = await asyncio.wait_for(prober.poll(url, timeout), timeout=timeout)
        except asyncio.TimeoutError:
            return PollOutcome(time=_elapsed_ms(start), error=ProbeTimeout())
        except ProbeError as e:
            logger.debug(f"Poll of {url} failed: {e}")
            return PollOutcome(time=_elapsed_ms(start), error=e)
        return PollOutcome(time=latency)


prober_service = ProberService()
