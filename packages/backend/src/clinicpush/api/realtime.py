"""Realtime API — publish events and inspect the connection registry.

Learn: The clinic CRUD service runs elsewhere, so it reaches publish()
over HTTP. It calls POST /realtime/queue-changed after creating or
updating a visit, or POST /realtime/events for a specific event type.
Publish failures come back as HTTP errors here; the CRUD service must
treat them as "nobody was notified this time" and carry on.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from clinicpush.api.deps import get_publisher, get_store
from clinicpush.auth.dependencies import CurrentIdentity, require_role
from clinicpush.auth.jwt import ROLE_ADMIN, ROLES
from clinicpush.realtime.connection_store import ConnectionStore, StoreError
from clinicpush.realtime.events import parse_event
from clinicpush.realtime.publisher import Publisher

router = APIRouter(prefix="/realtime")

_any_role = require_role(*ROLES)
_admin = require_role(ROLE_ADMIN)


# ─── Schemas ─────────────────────────────────────────────


class EventEnvelope(BaseModel):
    type: str
    payload: dict = Field(default_factory=dict)


class QueueChanged(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    doctor_id: str = Field(min_length=1)
    visit_date: date


# ─── Routes ──────────────────────────────────────────────


@router.post("/events", status_code=202)
async def publish_event(
    body: EventEnvelope,
    publisher: Publisher = Depends(get_publisher),
    identity: CurrentIdentity = Depends(_any_role),
):
    """Broadcast one typed event and report how delivery went."""
    try:
        event = parse_event(body.type, body.payload)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        report = await publisher.publish(event)
    except StoreError as e:
        raise HTTPException(status_code=503, detail=f"Connection store unavailable: {e}")
    return report.as_dict()


@router.post("/queue-changed", status_code=202)
async def queue_changed(
    body: QueueChanged,
    publisher: Publisher = Depends(get_publisher),
    identity: CurrentIdentity = Depends(_any_role),
):
    """Notify the doctor's screens and the front desk that a queue changed."""
    reports = await publisher.publish_queue_changed(body.doctor_id, body.visit_date)
    return {"reports": [r.as_dict() if r else None for r in reports]}


@router.get("/connections")
async def list_connections(
    store: ConnectionStore = Depends(get_store),
    identity: CurrentIdentity = Depends(_admin),
):
    """Snapshot of open channels (admin only)."""
    try:
        records = await store.list_all()
    except StoreError as e:
        raise HTTPException(status_code=503, detail=f"Connection store unavailable: {e}")
    return {
        "count": len(records),
        "connections": [r.as_dict() for r in records],
    }
