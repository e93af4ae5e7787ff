"""Event publisher — resolve targets, fan out, prune dead channels.

Learn: publish() is the only thing business code needs:

    await publisher.publish(DoctorQueueUpdated(doctor_id="d1", visit_date=day))

1. Read the target set from the store (never from memory)
2. Empty → return without touching the gateway
3. Serialize once
4. Deliver to every target concurrently; each attempt catches its own error
5. Gone → delete the record. Anything else → log, keep the record

The next organic publish is the only retry. Clients treat every event as
a refetch hint, so a missed push just means slightly stale data.

publish() raises StoreError if targets can't be resolved. Request
handlers that mutate visits should use publish_safely() or
publish_nowait(), which log instead of raising: a broadcast must never
fail the mutation that triggered it.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Union

import structlog

from clinicpush.realtime.connection_store import ConnectionStore, StoreError
from clinicpush.realtime.events import (
    ClinicQueueUpdated,
    DoctorQueueUpdated,
    RealtimeEvent,
)
from clinicpush.realtime.gateway import (
    DeliveryOutcome,
    PushGateway,
    classify_delivery_error,
)
from clinicpush.realtime.records import ConnectionRecord

logger = structlog.get_logger()

DELIVERED = "delivered"
PRUNED = "pruned"
FAILED = "failed"


@dataclass
class PublishReport:
    """What happened to one publish, per connection id."""

    event_type: str
    targeted: int = 0
    delivered: list[str] = field(default_factory=list)
    pruned: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: bool = False  # delivery disabled (no gateway configured)

    def as_dict(self) -> dict:
        return {
            "type": self.event_type,
            "targeted": self.targeted,
            "delivered": len(self.delivered),
            "pruned": len(self.pruned),
            "failed": len(self.failed),
            "skipped": self.skipped,
        }


class Publisher:
    """Fan-out broadcaster.

    Learn: The gateway is injected (built once per process in the app
    lifespan). None means realtime is disabled; publishes are skipped
    with a warning, matching environments without a gateway endpoint.
    """

    def __init__(
        self,
        store: ConnectionStore,
        gateway: Optional[PushGateway],
        doctor_scoped_routing: bool = True,
    ):
        self.store = store
        self.gateway = gateway
        self.doctor_scoped_routing = doctor_scoped_routing
        self._pending: set[asyncio.Task] = set()

    async def resolve_targets(self, event: RealtimeEvent) -> list[ConnectionRecord]:
        scope = event.scope
        if scope is None or not self.doctor_scoped_routing:
            return await self.store.list_all()
        return await self.store.list_by_scope(scope)

    async def publish(self, event: RealtimeEvent) -> PublishReport:
        """Broadcast one event. Returns after every delivery attempt settles."""
        report = PublishReport(event_type=event.type)

        if self.gateway is None:
            logger.warning("realtime.publish_skipped", event_type=event.type)
            report.skipped = True
            return report

        targets = await self.resolve_targets(event)
        report.targeted = len(targets)
        if not targets:
            return report

        data = event.to_bytes()
        ids = [t.connection_id for t in targets]
        outcomes = await asyncio.gather(
            *(self._deliver_one(cid, data) for cid in ids)
        )

        buckets = {DELIVERED: report.delivered, PRUNED: report.pruned, FAILED: report.failed}
        for cid, outcome in zip(ids, outcomes):
            buckets[outcome].append(cid)

        logger.info(
            "realtime.published",
            event_type=event.type,
            targeted=report.targeted,
            delivered=len(report.delivered),
            pruned=len(report.pruned),
            failed=len(report.failed),
        )
        return report

    async def _deliver_one(self, connection_id: str, data: bytes) -> str:
        """Deliver to a single connection. Never raises."""
        try:
            await self.gateway.deliver(connection_id, data)
            return DELIVERED
        except Exception as e:
            outcome = classify_delivery_error(e)
            if outcome is DeliveryOutcome.GONE:
                return await self._prune(connection_id)
            logger.error(
                "realtime.post_failed",
                connection_id=connection_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return FAILED

    async def _prune(self, connection_id: str) -> str:
        try:
            await self.store.delete(connection_id)
        except StoreError as e:
            logger.error(
                "realtime.prune_failed",
                connection_id=connection_id,
                error=str(e),
            )
            return FAILED
        logger.info("realtime.connection_gone", connection_id=connection_id)
        return PRUNED

    # ─── Caller-isolated variants ─────────────────────────

    async def publish_safely(self, event: RealtimeEvent) -> Optional[PublishReport]:
        """publish() that logs failures instead of raising. None on failure."""
        try:
            return await self.publish(event)
        except Exception:
            logger.exception("realtime.publish_failed", event_type=event.type)
            return None

    def publish_nowait(self, event: RealtimeEvent) -> asyncio.Task:
        """Schedule a publish in the background and return immediately.

        Learn: Must be called with a running event loop (from a request
        handler or other coroutine); without one asyncio.create_task raises
        RuntimeError. The task is held in _pending until it finishes so it
        can't be garbage-collected mid-flight; drain() awaits what's left.
        """
        task = asyncio.create_task(self.publish_safely(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for background publishes to settle (used at shutdown)."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def publish_queue_changed(
        self,
        doctor_id: str,
        visit_date: Union[date, str],
    ) -> list[Optional[PublishReport]]:
        """Visit mutation hook: notify the doctor's screens and the front desk.

        Never raises. Bad arguments are logged and yield [None, None].
        """
        try:
            events = [
                DoctorQueueUpdated(doctor_id=doctor_id, visit_date=visit_date),
                ClinicQueueUpdated(visit_date=visit_date),
            ]
        except ValueError:
            logger.exception(
                "realtime.publish_failed",
                doctor_id=doctor_id,
                visit_date=str(visit_date),
            )
            return [None, None]
        return list(await asyncio.gather(*(self.publish_safely(e) for e in events)))
