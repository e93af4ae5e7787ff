"""Realtime event types — the server→client push envelope.

Learn: Every push is {"type": <string>, "payload": <object>}. Clients
parse it as a discriminated union on "type" and treat each event as a
"something changed, refetch if relevant" hint. There is no sequence
number; events may arrive out of order or not at all.

New event types subclass RealtimeEvent, set `type`, and register in
EVENT_TYPES. Payload keys are camelCase on the wire.
"""

import json
from datetime import date
from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from clinicpush.realtime.records import CLINIC_WIDE, doctor_scope

CLINIC_QUEUE_UPDATED = "ClinicQueueUpdated"
DOCTOR_QUEUE_UPDATED = "DoctorQueueUpdated"


class UnknownEventTypeError(ValueError):
    """Raised when an envelope names a type we don't publish."""


class RealtimeEvent(BaseModel):
    """Base class for push events. Subclass fields become the payload."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    type: ClassVar[str]

    @property
    def scope(self) -> Optional[str]:
        """Routing scope of the event. None means every connection."""
        return CLINIC_WIDE

    def payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    def envelope(self) -> dict:
        return {"type": self.type, "payload": self.payload()}

    def to_bytes(self) -> bytes:
        """Compact JSON encoding, computed once per publish."""
        return json.dumps(self.envelope(), separators=(",", ":")).encode("utf-8")


class ClinicQueueUpdated(RealtimeEvent):
    """The clinic-wide visit queue for a day changed."""

    type: ClassVar[str] = CLINIC_QUEUE_UPDATED

    visit_date: date


class DoctorQueueUpdated(RealtimeEvent):
    """One doctor's visit queue for a day changed."""

    type: ClassVar[str] = DOCTOR_QUEUE_UPDATED

    doctor_id: str = Field(min_length=1)
    visit_date: date

    @property
    def scope(self) -> Optional[str]:
        return doctor_scope(self.doctor_id)


EVENT_TYPES: dict[str, type[RealtimeEvent]] = {
    CLINIC_QUEUE_UPDATED: ClinicQueueUpdated,
    DOCTOR_QUEUE_UPDATED: DoctorQueueUpdated,
}


def parse_event(event_type: str, payload: dict) -> RealtimeEvent:
    """Build a typed event from an envelope's parts.

    Raises UnknownEventTypeError or pydantic.ValidationError (both ValueError).
    """
    cls = EVENT_TYPES.get(event_type)
    if cls is None:
        raise UnknownEventTypeError(f"Unknown event type: {event_type}")
    return cls.model_validate(payload)
