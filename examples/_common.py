"""
Shared helpers for clinicpush examples.

Handles the health check and dev-token minting so each example can
focus on its specific flow.
"""

import sys

import httpx

from clinicpush.auth.jwt import create_access_token

BASE = "http://localhost:8000"


def check_backend() -> None:
    """Verify the server is reachable and Redis is connected."""
    try:
        resp = httpx.get(f"{BASE}/api/v1/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Server not reachable at {BASE}")
        print("Start it with:  uvicorn clinicpush.main:app --reload --port 8000")
        sys.exit(1)

    health = resp.json()
    print("Server health:")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗'}")
    print(f"  Realtime: {'enabled' if health['realtime_enabled'] else 'disabled (no gateway endpoint)'}")

    if health["redis"] != "ok":
        print("\nERROR: Redis is not connected. Start it with: docker run -p 6379:6379 redis")
        sys.exit(1)


def token_for(user_id: str, role: str, doctor_id: str | None = None) -> str:
    """Mint a dev token. Must run with the same CLINICPUSH_JWT_SECRET as the server."""
    return create_access_token(user_id, role, doctor_id=doctor_id)


def gateway_event(connection_id: str, route_key: str, **extra) -> dict:
    """Body the push gateway POSTs to the integration routes."""
    return {
        "requestContext": {"connectionId": connection_id, "routeKey": route_key},
        **extra,
    }
