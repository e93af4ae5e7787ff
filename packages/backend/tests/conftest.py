"""Test fixtures — in-memory Redis, a scripted fake gateway, an ASGI client.

Learn: The store runs against fakeredis (real Redis semantics: pipelines,
SCAN, key expiry) so no server is needed. The push gateway is replaced
by FakeGateway, which records every delivery and fails on demand:

    gateway.gone.add("conn-x")      # next delivery → 410 Gone
    gateway.failing.add("conn-y")   # next delivery → 500

The ASGI client doesn't run the app lifespan, so the fixture wires
app.state by hand, same as the lifespan would.
"""

import fakeredis
import fakeredis.aioredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from clinicpush.auth.jwt import create_access_token
from clinicpush.main import app
from clinicpush.realtime.connection_store import ConnectionStore
from clinicpush.realtime.gateway import ConnectionGoneError, DeliveryError, PushGateway
from clinicpush.realtime.publisher import Publisher


class FakeGateway(PushGateway):
    """Deliver-to-connection stand-in with scripted failures."""

    def __init__(self):
        self.attempts: list[str] = []
        self.delivered: list[tuple[str, bytes]] = []
        self.gone: set[str] = set()
        self.failing: set[str] = set()
        self.closed = False

    async def deliver(self, connection_id: str, data: bytes) -> None:
        self.attempts.append(connection_id)
        if connection_id in self.gone:
            raise ConnectionGoneError(f"{connection_id} gone", status_code=410)
        if connection_id in self.failing:
            raise DeliveryError("gateway exploded", status_code=500)
        self.delivered.append((connection_id, data))

    async def close(self) -> None:
        self.closed = True

    def delivered_to(self) -> list[str]:
        return [cid for cid, _ in self.delivered]


@pytest_asyncio.fixture()
async def redis():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest_asyncio.fixture()
async def broken_redis():
    """A Redis client whose server is down — every command raises ConnectionError."""
    server = fakeredis.FakeServer()
    server.connected = False
    client = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture()
def store(redis):
    return ConnectionStore(redis, key_prefix="test", ttl_seconds=600)


@pytest.fixture()
def broken_store(broken_redis):
    return ConnectionStore(broken_redis, key_prefix="test", ttl_seconds=600)


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def publisher(store, gateway):
    return Publisher(store, gateway)


@pytest_asyncio.fixture()
async def client(redis, store, publisher):
    """HTTP client with app.state wired to fakeredis and the fake gateway."""
    app.state.redis = redis
    app.state.store = store
    app.state.publisher = publisher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.redis = None
    app.state.store = None
    app.state.publisher = None


# ─── Tokens ──────────────────────────────────────────────


@pytest.fixture()
def reception_token():
    return create_access_token("frontdesk-1", "RECEPTION")


@pytest.fixture()
def doctor_token():
    return create_access_token("user-doc-1", "DOCTOR", doctor_id="D1")


@pytest.fixture()
def admin_token():
    return create_access_token("admin-1", "ADMIN")