"""Health endpoint + middleware tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from clinicpush.main import app


@pytest.mark.asyncio
async def test_health_returns_ok(client):
    """Health endpoint should return server status, Redis status and version."""
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["server"] == "ok"
    assert data["redis"] == "ok"
    assert data["realtime_enabled"] is False
    assert "version" in data


@pytest.mark.asyncio
async def test_health_degraded_when_redis_down(client, broken_redis):
    app.state.redis = broken_redis
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["redis"].startswith("error")


@pytest.mark.asyncio
async def test_request_id_generated(client):
    """Each request gets a unique X-Request-ID header."""
    r1 = await client.get("/api/v1/health")
    r2 = await client.get("/api/v1/health")
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    r = await client.get("/api/v1/health", headers={"X-Request-ID": "trace-123"})
    assert r.headers["X-Request-ID"] == "trace-123"


@pytest.mark.asyncio
async def test_gateway_request_id_propagated(client):
    r = await client.post(
        "/realtime/default",
        json={"requestContext": {"connectionId": "c1"}},
        headers={"X-Amzn-RequestId": "gw-req-9"},
    )
    assert r.headers["X-Request-ID"] == "gw-req-9"


@pytest.mark.asyncio
async def test_security_headers_on_health(client):
    r = await client.get("/api/v1/health")
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["Referrer-Policy"] == "no-referrer"
    assert r.headers["X-XSS-Protection"] == "0"
    assert r.headers["Cache-Control"] == "no-store"


@pytest.mark.asyncio
async def test_security_headers_on_gateway_routes(client):
    r = await client.post(
        "/realtime/default",
        json={"requestContext": {"connectionId": "c1"}},
    )
    assert r.headers["X-Frame-Options"] == "DENY"


@pytest.mark.asyncio
async def test_no_hsts_on_http(client):
    """HSTS is only sent over HTTPS."""
    r = await client.get("/api/v1/health")
    assert "Strict-Transport-Security" not in r.headers


@pytest.mark.asyncio
async def test_hsts_on_https(client):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        r = await ac.post("/realtime/default", json={"requestContext": {"connectionId": "c1"}})
    assert r.headers["Strict-Transport-Security"].startswith("max-age=")
