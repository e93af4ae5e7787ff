"""Connection store — Redis-backed registry of open push channels.

Learn: The gateway owns the sockets, we only remember who is listening.
Each channel is a Redis hash at {prefix}:conn:{connection_id} with a
native key expiry, so a record whose disconnect notification got lost
disappears on its own after connection_ttl_seconds.

There is no secondary index. Broadcast targeting SCANs the key prefix
and filters in Python, which keeps every write a single atomic
MULTI/EXEC and means an expired key can never leave a dangling index
entry behind.

The price: every publish, scoped or not, costs O(all connections), a
full SCAN plus one HGETALL per record. list_by_scope is a filter, not an
indexed lookup. That is fine for one clinic's few dozen screens.

Errors from Redis are wrapped in StoreError and propagate. Callers decide
whether that fails their operation (handshake) or just gets logged
(disconnect, publish_safely).
"""

from datetime import timedelta
from typing import Optional

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from clinicpush.realtime.records import ConnectionRecord, utcnow

logger = structlog.get_logger()

DEFAULT_TTL_SECONDS = 3 * 60 * 60


class StoreError(Exception):
    """Raised when the connection store can't be read or written."""


def create_redis(url: str) -> aioredis.Redis:
    """Build the process-wide Redis client (lazy — connects on first command)."""
    return aioredis.from_url(url, encoding="utf-8", decode_responses=True)


class ConnectionStore:
    """Durable connection registry.

    Learn: The client must be created with decode_responses=True; records
    are read back as str hashes.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        key_prefix: str = "clinicpush",
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self.redis = redis
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds

    def _key(self, connection_id: str) -> str:
        return f"{self.key_prefix}:conn:{connection_id}"

    @property
    def _match(self) -> str:
        return f"{self.key_prefix}:conn:*"

    def _expiry_seconds(self, record: ConnectionRecord) -> int:
        if record.expires_at is None:
            return self.ttl_seconds
        remaining = int((record.expires_at - utcnow()).total_seconds())
        return max(remaining, 1)

    # ─── Writes ────────────────────────────────────────────

    async def put(self, record: ConnectionRecord) -> None:
        """Insert or fully replace the record for record.connection_id."""
        key = self._key(record.connection_id)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                # Replace, don't merge: a re-put without scope clears the old scope
                pipe.delete(key)
                pipe.hset(key, mapping=record.to_hash())
                pipe.expire(key, self._expiry_seconds(record))
                await pipe.execute()
        except RedisError as e:
            raise StoreError(f"put {record.connection_id} failed: {e}") from e

    async def delete(self, connection_id: str) -> None:
        """Remove a record. Deleting an unknown id is not an error."""
        try:
            await self.redis.delete(self._key(connection_id))
        except RedisError as e:
            raise StoreError(f"delete {connection_id} failed: {e}") from e

    async def touch(self, connection_id: str) -> bool:
        """Push the record's expiry out by a full TTL window.

        Returns False when no record exists. A single EXPIRE never creates
        the key, so a touch racing a disconnect can't resurrect a record.
        """
        try:
            return bool(
                await self.redis.expire(self._key(connection_id), self.ttl_seconds)
            )
        except RedisError as e:
            raise StoreError(f"touch {connection_id} failed: {e}") from e

    # ─── Reads ─────────────────────────────────────────────

    async def get(self, connection_id: str) -> Optional[ConnectionRecord]:
        records = await self._load([self._key(connection_id)])
        return records[0] if records else None

    async def list_all(self) -> list[ConnectionRecord]:
        """Snapshot of every live record, read from Redis every time."""
        try:
            keys = [key async for key in self.redis.scan_iter(match=self._match, count=500)]
        except RedisError as e:
            raise StoreError(f"scan failed: {e}") from e
        return await self._load(sorted(keys))

    async def list_by_scope(self, scope: Optional[str]) -> list[ConnectionRecord]:
        """Records whose scope equals `scope` (None selects unscoped records).

        Filters a full list_all() snapshot: O(all connections), not an index.
        """
        return [r for r in await self.list_all() if r.scope == scope]

    async def _load(self, keys: list[str]) -> list[ConnectionRecord]:
        if not keys:
            return []
        try:
            async with self.redis.pipeline(transaction=False) as pipe:
                for key in keys:
                    pipe.hgetall(key)
                    pipe.ttl(key)
                results = await pipe.execute()
        except RedisError as e:
            raise StoreError(f"load failed: {e}") from e

        now = utcnow()
        records = []
        for data, ttl in zip(results[0::2], results[1::2]):
            # Expired between SCAN and HGETALL
            if not data:
                continue
            expires_at = now + timedelta(seconds=ttl) if ttl and ttl > 0 else None
            try:
                records.append(ConnectionRecord.from_hash(data, expires_at=expires_at))
            except (KeyError, ValueError):
                logger.warning("realtime.store.malformed_record", fields=sorted(data))
        return records
