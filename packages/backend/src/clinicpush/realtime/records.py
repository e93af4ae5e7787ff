"""ConnectionRecord — one row per open push channel.

Learn: A record is written at handshake and removed on disconnect, on a
"gone" delivery failure, or by Redis key expiry when a disconnect
notification never arrives. The scope is an open string so new routing
targets don't need a schema change.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

# Records without a scope only receive clinic-wide events
CLINIC_WIDE: Optional[str] = None

DOCTOR_SCOPE_PREFIX = "doctor:"


def doctor_scope(doctor_id: str) -> str:
    """Scope for connections that follow a single doctor's queue."""
    return f"{DOCTOR_SCOPE_PREFIX}{doctor_id}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConnectionRecord:
    """Metadata for a live channel, keyed by the gateway's connection id."""

    connection_id: str
    established_at: datetime = field(default_factory=utcnow)
    scope: Optional[str] = CLINIC_WIDE
    user_id: Optional[str] = None
    role: Optional[str] = None
    expires_at: Optional[datetime] = None  # filled from the key TTL on read

    def to_hash(self) -> dict[str, str]:
        """Flatten to a Redis hash. Absent optionals are omitted, not stored empty."""
        data = {
            "connection_id": self.connection_id,
            "established_at": self.established_at.isoformat(),
        }
        if self.scope is not None:
            data["scope"] = self.scope
        if self.user_id is not None:
            data["user_id"] = self.user_id
        if self.role is not None:
            data["role"] = self.role
        return data

    @classmethod
    def from_hash(
        cls,
        data: dict[str, str],
        expires_at: Optional[datetime] = None,
    ) -> "ConnectionRecord":
        return cls(
            connection_id=data["connection_id"],
            established_at=datetime.fromisoformat(data["established_at"]),
            scope=data.get("scope"),
            user_id=data.get("user_id"),
            role=data.get("role"),
            expires_at=expires_at,
        )

    def as_dict(self) -> dict:
        """JSON-friendly view for the inspection API."""
        return {
            "connectionId": self.connection_id,
            "establishedAt": self.established_at.isoformat(),
            "scope": self.scope,
            "userId": self.user_id,
            "role": self.role,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
        }
