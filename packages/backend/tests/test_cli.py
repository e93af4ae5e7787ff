"""CLI tests — token minting and HTTP-backed commands.

Learn: HTTP commands are pointed at an httpx.MockTransport by patching
_client, so no server is needed.
"""

import json

import httpx
from click.testing import CliRunner

from clinicpush.auth.jwt import verify_token
from clinicpush.cli import main as cli


def _mock_client(handler):
    def factory(token=None):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        return httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            base_url="http://test",
            headers=headers,
        )
    return factory


def test_token_command_mints_verifiable_token():
    result = CliRunner().invoke(cli.main, ["token", "doc-7", "--role", "DOCTOR"])
    assert result.exit_code == 0
    payload = verify_token(result.output.strip())
    assert payload["sub"] == "doc-7"
    assert payload["role"] == "DOCTOR"


def test_token_command_rejects_unknown_role():
    result = CliRunner().invoke(cli.main, ["token", "u1", "--role", "PATIENT"])
    assert result.exit_code != 0


def test_publish_requires_token(monkeypatch):
    monkeypatch.delenv("CLINICPUSH_TOKEN", raising=False)
    result = CliRunner().invoke(cli.main, ["publish", "clinic", "2024-05-01"])
    assert result.exit_code == 1
    assert "--token required" in result.output


def test_publish_doctor_sends_envelope(monkeypatch):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202, json={
            "type": "DoctorQueueUpdated", "targeted": 2, "delivered": 1,
            "pruned": 1, "failed": 0, "skipped": False,
        })

    monkeypatch.setattr(cli, "_client", _mock_client(handler))
    result = CliRunner().invoke(
        cli.main, ["publish", "doctor", "D1", "2024-05-01", "--token", "tok"]
    )

    assert result.exit_code == 0, result.output
    assert "delivered=1 pruned=1" in result.output
    req = seen[0]
    assert req.url.path == "/api/v1/realtime/events"
    assert req.headers["Authorization"] == "Bearer tok"
    assert json.loads(req.read()) == {
        "type": "DoctorQueueUpdated",
        "payload": {"doctorId": "D1", "visitDate": "2024-05-01"},
    }


def test_connections_lists_records(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "count": 1,
            "connections": [{
                "connectionId": "abc", "role": "DOCTOR", "scope": "doctor:D1",
                "establishedAt": "2024-05-01T08:00:00+00:00", "userId": "u1",
                "expiresAt": None,
            }],
        })

    monkeypatch.setattr(cli, "_client", _mock_client(handler))
    monkeypatch.setenv("CLINICPUSH_TOKEN", "admin-tok")
    result = CliRunner().invoke(cli.main, ["connections"])

    assert result.exit_code == 0, result.output
    assert "abc" in result.output
    assert "scope=doctor:D1" in result.output


def test_http_error_exits_nonzero(monkeypatch):
    monkeypatch.setattr(
        cli, "_client",
        _mock_client(lambda request: httpx.Response(403, json={"detail": "Forbidden"})),
    )
    result = CliRunner().invoke(cli.main, ["connections", "--token", "tok"])
    assert result.exit_code == 1
