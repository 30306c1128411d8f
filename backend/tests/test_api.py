"""Tests for the HTTP API."""
from datetime import timedelta

import httpx
import pytest

from uptime.database import get_db
from uptime.main import create_app
from uptime.models import QosBucket, Tag
from uptime.utils.time_window import reset_hour, utc_now


@pytest.fixture
def app(session_factory):
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _create_check(client, **fields):
    payload = {"name": "example", "url": "https://example.com", "tags": "web,prod"}
    payload.update(fields)
    response = await client.post("/api/checks", json=payload)
    assert response.status_code == 201
    return response.json()


class TestHealth:

    async def test_health(self, client) -> None:
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["scheduler_running"] is False


class TestChecks:

    async def test_create_guesses_type_and_splits_tags(self, client) -> None:
        check = await _create_check(client)
        assert check["type"] == "https"
        assert check["tags"] == ["web", "prod"]
        assert check["needs_poll"] is True
        assert check["interval_ms"] == 60000

    async def test_list_and_get(self, client) -> None:
        check = await _create_check(client)
        listed = (await client.get("/api/checks")).json()
        assert [c["id"] for c in listed] == [check["id"]]
        assert (await client.get(f"/api/checks/{check['id']}")).json()["url"] == "https://example.com"

    async def test_get_unknown_check(self, client) -> None:
        assert (await client.get("/api/checks/999")).status_code == 404

    async def test_update_url_guesses_type_again(self, client) -> None:
        check = await _create_check(client)
        response = await client.put(f"/api/checks/{check['id']}", json={"url": "tcp://db.internal:5432", "tags": "db"})
        assert response.json()["type"] == "tcp"
        assert response.json()["tags"] == ["db"]

    async def test_pause_toggles(self, client) -> None:
        check = await _create_check(client)
        assert (await client.post(f"/api/checks/{check['id']}/pause")).json()["is_paused"] is True
        assert (await client.post(f"/api/checks/{check['id']}/pause")).json()["is_paused"] is False

    async def test_needing_poll_claims_once(self, client) -> None:
        check = await _create_check(client)
        first = (await client.get("/api/checks/needing-poll")).json()
        second = (await client.get("/api/checks/needing-poll")).json()
        assert [c["id"] for c in first] == [check["id"]]
        assert first[0]["type"] == "https"
        assert second == []

    async def test_delete_removes_history(self, client) -> None:
        check = await _create_check(client)
        await client.post("/api/samples", json={"check_id": check["id"], "status": False, "time": 0})

        response = await client.delete(f"/api/checks/{check['id']}")

        assert response.status_code == 204
        assert (await client.get(f"/api/checks/{check['id']}")).status_code == 404
        assert (await client.get("/api/samples/events")).json() == {}


class TestSamples:

    async def test_post_sample(self, client) -> None:
        check = await _create_check(client)
        response = await client.post(
            "/api/samples",
            json={"check_id": check["id"], "status": True, "time": 120, "name": "eu-1"},
        )
        assert response.status_code == 200
        sample = response.json()
        assert sample["is_up"] is True
        assert sample["monitor_name"] == "eu-1"
        assert sample["tags"] == ["web", "prod"]

        updated = (await client.get(f"/api/checks/{check['id']}")).json()
        assert updated["needs_poll"] is False
        assert updated["is_up"] is True

    async def test_second_result_is_forbidden(self, client) -> None:
        check = await _create_check(client)
        payload = {"check_id": check["id"], "status": True, "time": 120}
        await client.post("/api/samples", json=payload)
        response = await client.post("/api/samples", json=payload)
        assert response.status_code == 403
        assert "already polled" in response.json()["detail"]

    async def test_unknown_check_is_not_found(self, client) -> None:
        response = await client.post("/api/samples", json={"check_id": 999, "status": True, "time": 1})
        assert response.status_code == 404

    async def test_recent_samples_paged(self, client) -> None:
        check = await _create_check(client, max_time_ms=200)
        await client.post("/api/samples", json={"check_id": check["id"], "status": True, "time": 300})

        samples = (await client.get(f"/api/samples/check/{check['id']}")).json()

        assert len(samples) == 1
        assert samples[0]["is_responsive"] is False
        assert (await client.get(f"/api/samples/check/{check['id']}?page=2")).json() == []

    async def test_events_grouped_by_day(self, client) -> None:
        check = await _create_check(client)
        await client.post(
            "/api/samples",
            json={"check_id": check["id"], "status": False, "time": 0, "error": "Timeout"},
        )

        events = (await client.get("/api/samples/events")).json()

        [day] = events.keys()
        assert day == utc_now().strftime("%Y-%m-%d")
        assert [e["message"] for e in events[day]] == ["down"]


class TestStats:

    async def _store_bucket(self, session_factory, kind, ref, timestamp):
        async with session_factory() as session:
            session.add(QosBucket(
                kind=kind, entity_ref=ref, grain="hour", timestamp=timestamp,
                count=4, ups=3, responsives=2, time=80, downtime=10000,
            ))
            await session.commit()

    async def test_check_stats_by_page(self, client, session_factory) -> None:
        check = await _create_check(client)
        current = reset_hour(utc_now())
        ref = str(check["id"])
        await self._store_bucket(session_factory, "check", ref, current - timedelta(hours=2))
        await self._store_bucket(session_factory, "check", ref, current - timedelta(days=1, hours=2))

        first = (await client.get(f"/api/checks/{ref}/stats?period=1d")).json()
        second = (await client.get(f"/api/checks/{ref}/stats?period=1d&page=2")).json()

        assert len(first) == 1
        assert (first[0]["count"], first[0]["ups"], first[0]["downtime"]) == (4, 3, 10000)
        assert len(second) == 1

    async def test_unknown_period_is_bad_request(self, client) -> None:
        check = await _create_check(client)
        response = await client.get(f"/api/checks/{check['id']}/stats?period=2w")
        assert response.status_code == 400

    async def test_tag_stats(self, client, session_factory) -> None:
        await self._store_bucket(session_factory, "tag", "web", reset_hour(utc_now()) - timedelta(hours=1))
        stats = (await client.get("/api/tags/web/stats?period=6h")).json()
        assert [b["grain"] for b in stats] == ["hour"]


class TestTags:

    async def test_list_and_get(self, client, session_factory) -> None:
        async with session_factory() as session:
            session.add(Tag(name="web", qos={"count": 2, "ups": 2, "responsives": 1, "time": 40, "downtime": 0}))
            await session.commit()

        listed = (await client.get("/api/tags")).json()
        assert [t["name"] for t in listed] == ["web"]
        tag = (await client.get("/api/tags/web")).json()
        assert tag["qos"]["ups"] == 2

    async def test_unknown_tag(self, client) -> None:
        assert (await client.get("/api/tags/nope")).status_code == 404
