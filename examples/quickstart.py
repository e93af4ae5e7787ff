#!/usr/bin/env python3
"""
clinicpush Quickstart — a channel's whole life in one script.

Plays the push gateway: opens a front-desk and a doctor channel, fires a
queue change, lists the registry, then closes both channels.
Run with: python examples/quickstart.py

Requires: pip install -e .
Server must be running: http://localhost:8000
"""

import httpx

from _common import BASE, check_backend, gateway_event, token_for


def main():
    check_backend()
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Handshakes (what the gateway does on $connect) ────────────
    print("\n1. Opening channels...")
    channels = {
        "desk-demo": token_for("frontdesk-1", "RECEPTION"),
        "doctor-demo": token_for("doc-1", "DOCTOR", doctor_id="D1"),
    }
    for connection_id, token in channels.items():
        resp = client.post(
            "/realtime/connect",
            json=gateway_event(connection_id, "$connect", queryStringParameters={"token": token}),
        )
        print(f"   {connection_id}: {resp.json()['body']}")

    # ── Rejected handshake ────────────────────────────────────────
    resp = client.post("/realtime/connect", json=gateway_event("intruder", "$connect"))
    print(f"   intruder (no token): {resp.status_code} {resp.json()['body']}")

    # ── Heartbeat ─────────────────────────────────────────────────
    client.post("/realtime/default", json=gateway_event("desk-demo", "$default", body='{"type":"ping"}'))

    # ── Visit changed → publish ───────────────────────────────────
    print("\n2. Visit for doctor D1 changed, publishing...")
    reception = {"Authorization": f"Bearer {channels['desk-demo']}"}
    resp = client.post(
        "/api/v1/realtime/queue-changed",
        json={"doctorId": "D1", "visitDate": "2024-05-01"},
        headers=reception,
    )
    for report in resp.json()["reports"]:
        print(f"   {report}")

    # ── Registry snapshot ─────────────────────────────────────────
    print("\n3. Open channels:")
    admin = {"Authorization": f"Bearer {token_for('admin-1', 'ADMIN')}"}
    resp = client.get("/api/v1/realtime/connections", headers=admin)
    for conn in resp.json()["connections"]:
        print(f"   {conn['connectionId']:14s} scope={conn['scope'] or 'clinic'}")

    # ── Teardown ($disconnect) ────────────────────────────────────
    print("\n4. Closing channels...")
    for connection_id in channels:
        client.post("/realtime/disconnect", json=gateway_event(connection_id, "$disconnect"))
    resp = client.get("/api/v1/realtime/connections", headers=admin)
    print(f"   Remaining: {resp.json()['count']}")


if __name__ == "__main__":
    main()
