"""HTTP API tests — health, dashboard stats, watcher management."""

import json

import pytest
from bson import ObjectId

from evcharge import __version__


@pytest.mark.asyncio
async def test_health_degraded_before_watchers_open(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["server"] == "ok"
    assert data["version"] == __version__
    assert data["mongodb"] == "ok"
    assert data["redis"] == "ok"
    assert data["watchers"] == "degraded"
    assert data["status"] == "degraded"
    assert data["collections"]["stations"]["state"] == "pending"


@pytest.mark.asyncio
async def test_health_ok_when_everything_is_up(client, ctx):
    await ctx.capture.initialize()

    data = (await client.get("/api/v1/health")).json()

    assert data["status"] == "healthy"
    assert data["watchers"] == "ok"


@pytest.mark.asyncio
async def test_health_reports_broker_and_store_problems(client, ctx, broker, db):
    await ctx.capture.initialize()
    broker.available = False
    db.ping_error = RuntimeError("no primary")

    data = (await client.get("/api/v1/health")).json()

    assert data["status"] == "degraded"
    assert data["redis"] == "unavailable"
    assert data["mongodb"].startswith("error")


@pytest.mark.asyncio
async def test_dashboard_stats_prefers_cache(client, broker):
    cached = [
        {"id": "1", "name": "Users", "value": 10, "change": 0,
         "color": "from-[#8B5CF6] to-[#10B981]", "icon": "user-group"},
    ]
    broker.cache["dashboard_stats"] = json.dumps(cached)

    resp = await client.get("/api/v1/dashboard/stats")

    assert resp.status_code == 200
    assert resp.json() == cached
    assert broker.published == []


@pytest.mark.asyncio
async def test_dashboard_stats_recomputes_on_miss(client, broker, db):
    db["clients"].docs[ObjectId()] = {"name": "Asha"}

    resp = await client.get("/api/v1/dashboard/stats")

    assert resp.status_code == 200
    assert resp.json()[0]["value"] == 1
    assert "dashboard_stats" in broker.cache


@pytest.mark.asyncio
async def test_dashboard_stats_error_when_store_down(client, db):
    db["clients"].read_error = RuntimeError("connect ECONNREFUSED")
    resp = await client.get("/api/v1/dashboard/stats")
    assert resp.status_code == 500


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["GET", "POST"])
async def test_update_stats_trigger(client, broker, method):
    resp = await client.request(method, "/api/v1/update-stats")

    assert resp.status_code == 200
    data = resp.json()
    assert data["message"] == "Stats updated successfully"
    assert [m["name"] for m in data["stats"]] == ["Users", "Stations", "Locations", "Revenue"]
    assert broker.envelopes()[-1]["event"] == "stats-changed"


@pytest.mark.asyncio
async def test_update_stats_failure_is_503(client, db, broker):
    broker.cache["dashboard_stats"] = "old"
    db["payments"].read_error = RuntimeError("timeout")

    resp = await client.post("/api/v1/update-stats")

    assert resp.status_code == 503
    assert broker.cache["dashboard_stats"] == "old"


@pytest.mark.asyncio
async def test_list_watchers(client, ctx):
    await ctx.capture.initialize()

    data = (await client.get("/api/v1/realtime/watchers")).json()

    assert data["broker_available"] is True
    assert set(data["collections"]) == {
        "clients", "stations", "charging_sessions", "payments", "eco_stats",
    }
    assert data["stats_job"]["state"] == "idle"
    assert data["pipeline"]["errors"] == 0


@pytest.mark.asyncio
async def test_restart_watcher(client, ctx, db):
    db["payments"].watch_error = RuntimeError("auth failed")
    await ctx.capture.initialize()
    db["payments"].watch_error = None

    resp = await client.post("/api/v1/realtime/watchers/payments/restart")

    assert resp.status_code == 200
    assert resp.json()["restarted"] is True
    assert resp.json()["state"] == "open"


@pytest.mark.asyncio
async def test_restart_unknown_watcher_404(client):
    resp = await client.post("/api/v1/realtime/watchers/bookings/restart")
    assert resp.status_code == 404
