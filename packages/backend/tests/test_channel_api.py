"""Gateway integration route tests — the HTTP face of the handlers.

Learn: These POST the same event bodies the push gateway sends, so they
cover the request parsing (token from query or header) on top of the
handler behaviour tested in test_handlers.py.
"""

import pytest

from clinicpush.config import settings


def _event(connection_id: str, route_key: str, **extra) -> dict:
    return {
        "requestContext": {"connectionId": connection_id, "routeKey": route_key},
        **extra,
    }


@pytest.mark.asyncio
async def test_connect_with_query_token(client, store, reception_token):
    r = await client.post(
        "/realtime/connect",
        json=_event("conn-1", "$connect", queryStringParameters={"token": reception_token}),
    )
    assert r.status_code == 200
    assert r.json() == {"statusCode": 200, "body": "Connected"}
    assert [rec.connection_id for rec in await store.list_all()] == ["conn-1"]


@pytest.mark.asyncio
async def test_connect_with_bearer_header(client, store, doctor_token):
    r = await client.post(
        "/realtime/connect",
        json=_event("conn-1", "$connect", headers={"authorization": f"Bearer {doctor_token}"}),
    )
    assert r.status_code == 200
    assert (await store.get("conn-1")).scope == "doctor:D1"


@pytest.mark.asyncio
async def test_connect_without_token_refused(client, store):
    r = await client.post("/realtime/connect", json=_event("conn-1", "$connect"))
    assert r.status_code == 401
    assert r.json()["body"] == "Missing token"
    assert await store.list_all() == []


@pytest.mark.asyncio
async def test_connect_malformed_event_is_422(client):
    r = await client.post("/realtime/connect", json={"requestContext": {}})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_disconnect_route(client, store, reception_token):
    await client.post(
        "/realtime/connect",
        json=_event("conn-1", "$connect", queryStringParameters={"token": reception_token}),
    )
    r = await client.post("/realtime/disconnect", json=_event("conn-1", "$disconnect"))
    assert r.status_code == 200
    assert await store.get("conn-1") is None


@pytest.mark.asyncio
async def test_default_route_acknowledges_ping(client):
    r = await client.post(
        "/realtime/default",
        json=_event("conn-1", "$default", body='{"type":"ping"}'),
    )
    assert r.status_code == 200
    assert r.json()["body"] == "OK"


@pytest.mark.asyncio
async def test_integration_secret_enforced_when_configured(client, monkeypatch, reception_token):
    monkeypatch.setattr(settings, "gateway_integration_secret", "s3cret")
    body = _event("conn-1", "$connect", queryStringParameters={"token": reception_token})

    r = await client.post("/realtime/connect", json=body)
    assert r.status_code == 403

    r = await client.post("/realtime/connect", json=body, headers={"X-Gateway-Secret": "wrong"})
    assert r.status_code == 403

    r = await client.post("/realtime/connect", json=body, headers={"X-Gateway-Secret": "s3cret"})
    assert r.status_code == 200
