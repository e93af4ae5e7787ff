"""clinicpush CLI — mint dev tokens, inspect channels, fire test events.

Usage:
    clinicpush serve                                # Run the API server
    clinicpush token u1 --role DOCTOR               # Dev access token (local, no API call)
    clinicpush health                               # Server + Redis status
    clinicpush connections                          # Open channels (admin token)
    clinicpush publish clinic 2024-05-01            # ClinicQueueUpdated
    clinicpush publish doctor d1 2024-05-01         # DoctorQueueUpdated
    clinicpush queue-changed d1 2024-05-01          # Both, like a visit mutation
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from clinicpush import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("CLINICPUSH_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the clinicpush server."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0, headers=headers)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Handles nested event loops (e.g. when invoked via CliRunner inside an
    existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _token_from_ctx(token: Optional[str]) -> str:
    """Resolve the bearer token from --token or CLINICPUSH_TOKEN."""
    tok = token or os.environ.get("CLINICPUSH_TOKEN")
    if not tok:
        click.secho(
            "Error: --token required (or set CLINICPUSH_TOKEN env var)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return tok


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _check(r: httpx.Response) -> dict:
    if r.status_code >= 400:
        click.secho(f"Error {r.status_code}: {r.text}", fg="red", err=True)
        sys.exit(1)
    return r.json()


def _print_report(report: Optional[dict]) -> None:
    if report is None:
        click.secho("  publish failed (see server logs)", fg="red")
        return
    if report["skipped"]:
        click.secho(f"  {report['type']}: skipped (no gateway configured)", fg="yellow")
        return
    color = "green" if report["failed"] == 0 else "yellow"
    click.secho(
        f"  {report['type']}: targeted={report['targeted']} "
        f"delivered={report['delivered']} pruned={report['pruned']} "
        f"failed={report['failed']}",
        fg=color,
    )


_token_option = click.option(
    "--token", "-k", help="Bearer token (or set CLINICPUSH_TOKEN)"
)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="clinicpush")
def main():
    """clinicpush — real-time queue notifications for clinic screens."""


@main.command()
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(reload: bool):
    """Run the API server on CLINICPUSH_HOST:CLINICPUSH_PORT."""
    import uvicorn

    from clinicpush.config import settings

    uvicorn.run("clinicpush.main:app", host=settings.host, port=settings.port, reload=reload)


@main.command()
@click.argument("user_id")
@click.option(
    "--role", "-r",
    type=click.Choice(["RECEPTION", "DOCTOR", "ADMIN"]),
    default="RECEPTION",
    show_default=True,
)
@click.option("--doctor-id", help="Doctor id claim (defaults to USER_ID for doctors)")
@click.option("--minutes", "-m", type=int, help="Lifetime in minutes")
def token(user_id: str, role: str, doctor_id: Optional[str], minutes: Optional[int]):
    """Mint a development access token signed with CLINICPUSH_JWT_SECRET."""
    from clinicpush.auth.jwt import create_access_token

    click.echo(create_access_token(user_id, role, doctor_id=doctor_id, expires_minutes=minutes))


@main.command()
def health():
    """Show server and Redis status."""
    _run(_health_impl())


async def _health_impl():
    async with _client() as c:
        try:
            r = await c.get("/api/v1/health")
        except httpx.ConnectError:
            click.secho(f"Server not reachable at {_api_url()}", fg="red", err=True)
            sys.exit(1)
        data = _check(r)
    color = "green" if data["status"] == "healthy" else "yellow"
    click.secho(f"Status: {data['status']}", fg=color, bold=True)
    click.echo(f"  Redis:    {data['redis']}")
    click.echo(f"  Realtime: {'enabled' if data['realtime_enabled'] else 'disabled'}")
    click.echo(f"  Version:  {data['version']}")


@main.command()
@_token_option
@click.option("--json", "as_json", is_flag=True, help="Raw JSON output")
def connections(token: Optional[str], as_json: bool):
    """List open channels (requires an ADMIN token)."""
    _run(_connections_impl(_token_from_ctx(token), as_json))


async def _connections_impl(token: str, as_json: bool):
    async with _client(token) as c:
        data = _check(await c.get("/api/v1/realtime/connections"))

    if as_json:
        click.echo(_pretty_json(data))
        return

    if not data["connections"]:
        click.echo("No open connections.")
        return

    click.secho(f"Connections ({data['count']}):", bold=True)
    for conn in data["connections"]:
        click.echo(
            f"  {conn['connectionId']:24s}  {conn['role'] or '—':10s}  "
            f"scope={conn['scope'] or 'clinic'}  since={conn['establishedAt']}"
        )


@main.group()
def publish():
    """Publish a single event."""


@publish.command("clinic")
@click.argument("visit_date")
@_token_option
def publish_clinic(visit_date: str, token: Optional[str]):
    """Send ClinicQueueUpdated for VISIT_DATE (YYYY-MM-DD)."""
    _run(_publish_impl(
        _token_from_ctx(token),
        {"type": "ClinicQueueUpdated", "payload": {"visitDate": visit_date}},
    ))


@publish.command("doctor")
@click.argument("doctor_id")
@click.argument("visit_date")
@_token_option
def publish_doctor(doctor_id: str, visit_date: str, token: Optional[str]):
    """Send DoctorQueueUpdated for DOCTOR_ID on VISIT_DATE (YYYY-MM-DD)."""
    _run(_publish_impl(
        _token_from_ctx(token),
        {
            "type": "DoctorQueueUpdated",
            "payload": {"doctorId": doctor_id, "visitDate": visit_date},
        },
    ))


async def _publish_impl(token: str, envelope: dict):
    async with _client(token) as c:
        report = _check(await c.post("/api/v1/realtime/events", json=envelope))
    click.secho("Published:", bold=True)
    _print_report(report)


@main.command("queue-changed")
@click.argument("doctor_id")
@click.argument("visit_date")
@_token_option
def queue_changed(doctor_id: str, visit_date: str, token: Optional[str]):
    """Notify DOCTOR_ID's screens and the front desk, as a visit update would."""
    _run(_queue_changed_impl(_token_from_ctx(token), doctor_id, visit_date))


async def _queue_changed_impl(token: str, doctor_id: str, visit_date: str):
    async with _client(token) as c:
        data = _check(await c.post(
            "/api/v1/realtime/queue-changed",
            json={"doctorId": doctor_id, "visitDate": visit_date},
        ))
    click.secho("Published:", bold=True)
    for report in data["reports"]:
        _print_report(report)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
