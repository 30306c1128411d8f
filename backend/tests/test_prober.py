"""Tests for protocol probers and the prober service."""
import asyncio

import pytest

from uptime.services.prober import (
    PROBERS,
    BadStatus,
    ConnectionFailed,
    HttpProber,
    HttpsProber,
    PingProber,
    PollOutcome,
    ProbeError,
    ProbeTimeout,
    Prober,
    ProberService,
    TcpProber,
    get_prober,
)


class SlowProber(Prober):
    async def poll(self, url: str, timeout: float) -> int:
        await asyncio.sleep(10)
        return 0


class FixedProber(Prober):
    async def poll(self, url: str, timeout: float) -> int:
        return 42


class RefusingProber(Prober):
    async def poll(self, url: str, timeout: float) -> int:
        raise ConnectionFailed("Connection refused")


async def _start_server(handler):
    server = await asyncio.start_server(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    return server, port


def _http_handler(status_line: str):
    async def handler(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        await reader.readuntil(b"\r\n\r\n")
        writer.write(f"HTTP/1.1 {status_line}\r\nContent-Length: 2\r\nConnection: close\r\n\r\nok".encode())
        await writer.drain()
        writer.close()

    return handler


class TestProberRegistry:

    def test_all_protocols_registered(self) -> None:
        assert PROBERS["http"] is HttpProber
        assert PROBERS["https"] is HttpsProber
        assert PROBERS["tcp"] is TcpProber
        assert PROBERS["ping"] is PingProber

    def test_unknown_type_falls_back_to_http(self) -> None:
        assert type(get_prober("gopher")) is HttpProber
        assert type(get_prober(None)) is HttpProber

    def test_https_prober_defaults_scheme(self) -> None:
        assert HttpsProber.scheme == "https"


class TestProbeErrors:

    def test_timeout_message(self) -> None:
        assert str(ProbeTimeout()) == "Timeout"

    def test_bad_status_message(self) -> None:
        error = BadStatus(503)
        assert error.status_code == 503
        assert str(error) == "HTTP 503"

    def test_outcome_properties(self) -> None:
        assert PollOutcome(time=10).succeeded
        failed = PollOutcome(time=10, error=ProbeTimeout())
        assert not failed.succeeded
        assert failed.error_message == "Timeout"


class TestProberService:

    async def test_successful_poll_reports_latency(self, monkeypatch) -> None:
        monkeypatch.setitem(PROBERS, "fixed", FixedProber)
        outcome = await ProberService().poll("fixed", "fixed://target")
        assert outcome == PollOutcome(time=42)

    async def test_slow_poll_times_out(self, monkeypatch) -> None:
        monkeypatch.setitem(PROBERS, "slow", SlowProber)
        outcome = await ProberService(timeout_ms=5000).poll("slow", "slow://target", timeout_ms=100)
        assert not outcome.succeeded
        assert isinstance(outcome.error, ProbeTimeout)
        assert outcome.error_message == "Timeout"

    async def test_probe_error_becomes_failed_outcome(self, monkeypatch) -> None:
        monkeypatch.setitem(PROBERS, "refusing", RefusingProber)
        outcome = await ProberService().poll("refusing", "refusing://target")
        assert isinstance(outcome.error, ProbeError)
        assert outcome.error_message == "Connection refused"

    @pytest.mark.parametrize(
        "check_type, url",
        [
            ("tcp", "tcp://example.com:99999"),
            ("tcp", "tcp://example.com:abc"),
            ("ping", "ping://"),
            ("http", "http://example.com:abc/"),
        ],
    )
    async def test_malformed_target_is_a_failed_outcome(self, check_type, url) -> None:
        outcome = await ProberService().poll(check_type, url, timeout_ms=1000)
        assert isinstance(outcome.error, ConnectionFailed)
        assert outcome.error_message.startswith("Invalid target")


class TestTcpProber:

    async def test_open_port(self) -> None:
        async def handler(reader, writer):
            writer.close()

        server, port = await _start_server(handler)
        async with server:
            latency = await TcpProber().poll(f"tcp://127.0.0.1:{port}", timeout=2)
        assert latency >= 0

    async def test_closed_port(self) -> None:
        server, port = await _start_server(lambda r, w: None)
        server.close()
        await server.wait_closed()
        with pytest.raises(ConnectionFailed):
            await TcpProber().poll(f"tcp://127.0.0.1:{port}", timeout=2)

    async def test_invalid_target(self) -> None:
        with pytest.raises(ConnectionFailed):
            await TcpProber().poll("tcp://", timeout=1)


class TestHttpProber:

    async def test_ok_response(self) -> None:
        server, port = await _start_server(_http_handler("200 OK"))
        async with server:
            latency = await HttpProber().poll(f"http://127.0.0.1:{port}/", timeout=2)
        assert latency >= 0

    async def test_error_status_is_bad_status(self) -> None:
        server, port = await _start_server(_http_handler("500 Internal Server Error"))
        async with server:
            with pytest.raises(BadStatus) as excinfo:
                await HttpProber().poll(f"http://127.0.0.1:{port}/", timeout=2)
        assert excinfo.value.status_code == 500
