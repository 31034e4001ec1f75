"""
Presence Registry

In-memory registry of online clients keyed by client id.
Supports upsert-on-heartbeat, consistent snapshots and expiry sweeps.

All state lives in a single dict guarded by one asyncio lock; every
operation is pure in-memory work, so the critical sections are short.
Nothing is persisted: a restart starts from an empty registry.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from flowclient_api.presence.record import (
    DEFAULT_CLIENT_TAG,
    DEFAULT_CLIENT_VERSION,
    PresenceRecord,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of a heartbeat upsert."""
    was_new: bool
    total: int


class PresenceRegistry:
    """
    Tracks which clients are currently online.

    Thread-safe for async operations using an asyncio lock. Reads return
    copies of the stored records, never the records themselves.
    """

    def __init__(self):
        # client_id -> PresenceRecord
        self._records: dict[str, PresenceRecord] = {}

        # Lock for thread-safe operations
        self._lock = asyncio.Lock()

    async def upsert(
        self,
        client_id: str,
        display_name: str,
        client_tag: str | None = None,
        client_version: str | None = None,
        now: datetime | None = None,
    ) -> UpsertResult:
        """
        Insert or refresh the record for a client.

        Args:
            client_id: Validated client identifier
            display_name: Validated display name
            client_tag: Client software name (defaults to FlowClient)
            client_version: Client version (defaults to 1.8.9)
            now: Heartbeat time; the current UTC time when omitted

        Returns:
            UpsertResult with whether the id was absent before and the new total
        """
        async with self._lock:
            seen_at = now or utcnow()
            existing = self._records.get(client_id)

            self._records[client_id] = PresenceRecord(
                client_id=client_id,
                display_name=display_name,
                client_tag=client_tag or DEFAULT_CLIENT_TAG,
                client_version=client_version or DEFAULT_CLIENT_VERSION,
                last_seen=seen_at,
                first_seen=existing.first_seen if existing else seen_at,
            )
            total = len(self._records)

            if existing is None:
                logger.info(f"[Join] {display_name} ({client_id}) - Total: {total}")

            return UpsertResult(was_new=existing is None, total=total)

    async def snapshot(self) -> list[PresenceRecord]:
        """Copies of every record, taken at one instant."""
        async with self._lock:
            return [record.model_copy() for record in self._records.values()]

    async def get(self, client_id: str) -> PresenceRecord | None:
        """Copy of a single record, or None if the client is offline."""
        async with self._lock:
            record = self._records.get(client_id)
            return record.model_copy() if record else None

    async def size(self) -> int:
        """Number of online clients, read under the lock."""
        async with self._lock:
            return len(self._records)

    async def version_counts(self) -> dict[str, int]:
        """Number of online clients per reported client version."""
        counts: dict[str, int] = {}
        for record in await self.snapshot():
            counts[record.client_version] = counts.get(record.client_version, 0) + 1
        return counts

    async def sweep(self, now: datetime, timeout_seconds: float) -> int:
        """
        Remove every record whose last heartbeat is older than the timeout.

        Args:
            now: Reference time for the whole pass
            timeout_seconds: Maximum allowed heartbeat age

        Returns:
            Number of records removed
        """
        async with self._lock:
            stale_ids = [
                client_id
                for client_id, record in self._records.items()
                if record.is_stale(timeout_seconds, now)
            ]
            for client_id in stale_ids:
                record = self._records.pop(client_id)
                logger.debug(
                    f"Client {record.display_name} ({client_id}) expired "
                    f"(last seen: {record.last_seen}, online since: {record.first_seen})"
                )
            return len(stale_ids)

    async def clear(self) -> int:
        """Drop all records. Returns how many were removed."""
        async with self._lock:
            removed = len(self._records)
            self._records.clear()
            return removed

    @property
    def count(self) -> int:
        """Number of online clients."""
        return len(self._records)
