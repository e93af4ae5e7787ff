"""Channel lifecycle handlers — $connect, $disconnect, $default.

Learn: The push gateway calls these on channel events. Each call is an
independent invocation with no memory of earlier ones; all state goes
through the ConnectionStore.

Responses mirror what the gateway expects from an integration:
{"statusCode": ..., "body": ...}. A non-200 on $connect refuses the
channel, so the handshake is the one place we enforce auth. After
that the channel bypasses per-request auth for as long as it stays open.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import structlog

from clinicpush.auth.dependencies import CurrentIdentity, identity_from_token
from clinicpush.auth.jwt import TokenError
from clinicpush.realtime.connection_store import ConnectionStore, StoreError
from clinicpush.realtime.records import CLINIC_WIDE, ConnectionRecord, doctor_scope, utcnow

logger = structlog.get_logger()


@dataclass
class HandlerResponse:
    status_code: int
    body: str = ""

    def as_dict(self) -> dict:
        return {"statusCode": self.status_code, "body": self.body}


def derive_scope(identity: CurrentIdentity) -> Optional[str]:
    """Doctors follow their own queue; everyone else gets clinic-wide events."""
    if identity.is_doctor and identity.doctor_id:
        return doctor_scope(identity.doctor_id)
    return CLINIC_WIDE


async def handle_connect(
    store: ConnectionStore,
    connection_id: str,
    token: Optional[str],
    now: Optional[datetime] = None,
) -> HandlerResponse:
    """Authenticate the handshake and register the connection."""
    log = logger.bind(connection_id=connection_id)
    log.info("realtime.connect", has_token=bool(token))

    if not connection_id:
        return HandlerResponse(400, "Missing connectionId")
    if not token:
        return HandlerResponse(401, "Missing token")

    try:
        identity = identity_from_token(token)
    except TokenError as e:
        log.warning("realtime.connect.rejected", reason=str(e))
        return HandlerResponse(401, "Unauthorized")

    now = now or utcnow()
    record = ConnectionRecord(
        connection_id=connection_id,
        established_at=now,
        scope=derive_scope(identity),
        user_id=identity.user_id,
        role=identity.role,
        expires_at=now + timedelta(seconds=store.ttl_seconds),
    )
    try:
        await store.put(record)
    except StoreError as e:
        log.error("realtime.connect.failed", error=str(e))
        return HandlerResponse(500, "Internal error")

    log.info("realtime.connect.accepted", role=identity.role, scope=record.scope)
    return HandlerResponse(200, "Connected")


async def handle_disconnect(
    store: ConnectionStore,
    connection_id: str,
) -> HandlerResponse:
    """Forget the connection. Always 200 so gateway teardown is never blocked."""
    try:
        await store.delete(connection_id)
    except StoreError as e:
        # The key TTL cleans up whatever we failed to delete here
        logger.error(
            "realtime.disconnect.failed",
            connection_id=connection_id,
            error=str(e),
        )
    else:
        logger.info("realtime.disconnect", connection_id=connection_id)
    return HandlerResponse(200, "Disconnected")


async def handle_default(
    store: ConnectionStore,
    connection_id: str,
    body: Optional[str],
) -> HandlerResponse:
    """Acknowledge a client frame.

    Learn: Clients send {"type": "ping"} as a heartbeat so intermediaries
    don't idle the socket out. A ping also extends the record's TTL, so a
    healthy channel outliving connection_ttl_seconds keeps receiving
    broadcasts. Anything else (including garbage) is acknowledged as-is.
    This is where client-initiated subscription changes would go.
    """
    if not body:
        return HandlerResponse(200, "OK")

    try:
        msg = json.loads(body)
    except ValueError:
        return HandlerResponse(200, "OK")

    if isinstance(msg, dict) and msg.get("type") == "ping":
        try:
            alive = await store.touch(connection_id)
        except StoreError as e:
            logger.error("realtime.ping.touch_failed", connection_id=connection_id, error=str(e))
        else:
            if not alive:
                logger.info("realtime.ping.unknown_connection", connection_id=connection_id)

    return HandlerResponse(200, "OK")
