"""In-memory stand-ins for the asyncpg repositories.

They honour the same unique keys and orderings as the SQL, and yield to
the event loop on every call so concurrent callers actually interleave.
"""

import asyncio
import itertools
from dataclasses import replace
from datetime import datetime

import asyncpg

from src.alerts.schemas import DeliveryReceipt, Subscriber, SubscriberKind
from src.claims.schemas import Claim, ClaimState
from src.reconcile.schemas import (
    INCIDENT_RESOLVED,
    MAINTENANCE_COMPLETED,
    ComponentStatusSample,
    IncidentNote,
    MaintenanceWindow,
    MetricSample,
    StatusSnapshot,
    TrackedIncident,
)
from src.runtime_config.repository import parse_int
from src.storage.errors import StorageError, UniqueViolation


async def _yield() -> None:
    await asyncio.sleep(0)


class FakeClaimRepository:
    def __init__(self) -> None:
        self.rows: dict[int, Claim] = {}
        self._ids = itertools.count(1)

    async def insert(self, claim: Claim) -> Claim:
        await _yield()
        stored = replace(claim, id=next(self._ids))
        self.rows[stored.id] = stored
        await _yield()
        return stored

    async def get_by_id(self, claim_id: int) -> Claim | None:
        await _yield()
        return self.rows.get(claim_id)

    def _active(self, actor_id: str, since: datetime) -> list[Claim]:
        return sorted(
            (
                c
                for c in self.rows.values()
                if c.actor_id == actor_id
                and c.state == ClaimState.ACTIVE.value
                and c.created_at > since
            ),
            key=lambda c: (c.created_at, c.id),
        )

    async def find_latest_active(self, actor_id: str, since: datetime) -> Claim | None:
        await _yield()
        active = self._active(actor_id, since)
        return active[-1] if active else None

    async def find_active_since(self, actor_id: str, since: datetime) -> list[Claim]:
        await _yield()
        return self._active(actor_id, since)

    async def delete_by_id(self, claim_id: int) -> bool:
        await _yield()
        return self.rows.pop(claim_id, None) is not None

    def _in_window(self, category: str, since: datetime) -> list[Claim]:
        return [
            c
            for c in self.rows.values()
            if c.category == category
            and c.state == ClaimState.ACTIVE.value
            and c.created_at > since
        ]

    async def count_distinct_actors(
        self, category: str, since: datetime, exclude_actor: str | None = None
    ) -> int:
        await _yield()
        return len(
            {c.actor_id for c in self._in_window(category, since) if c.actor_id != exclude_actor}
        )

    async def recent_timestamps(
        self, category: str, since: datetime, limit: int = 5
    ) -> list[datetime]:
        await _yield()
        rows = sorted(self._in_window(category, since), key=lambda c: (c.created_at, c.id))
        return [c.created_at for c in reversed(rows)][:limit]


class FakeReceiptRepository:
    """Receipts keyed by (kind, id, category, dedup_reference).

    ``fail_reserve`` makes every reservation raise StorageError.
    """

    def __init__(self) -> None:
        self.rows: dict[int, DeliveryReceipt] = {}
        self._ids = itertools.count(1)
        self.fail_reserve = False
        self.fail_delete = False

    @staticmethod
    def _key(r: DeliveryReceipt) -> tuple:
        return (r.subscriber_kind, r.subscriber_id, r.category, r.dedup_reference)

    async def reserve(self, receipt: DeliveryReceipt) -> int:
        await _yield()
        if self.fail_reserve:
            raise StorageError("store unavailable")
        if any(self._key(r) == self._key(receipt) for r in self.rows.values()):
            raise UniqueViolation("duplicate receipt")
        receipt_id = next(self._ids)
        self.rows[receipt_id] = replace(receipt, id=receipt_id)
        return receipt_id

    async def delete_by_id(self, receipt_id: int) -> bool:
        await _yield()
        if self.fail_delete:
            raise StorageError("store unavailable")
        return self.rows.pop(receipt_id, None) is not None

    async def exists(
        self, subscriber_kind: str, subscriber_id: str, category: str, dedup_reference: str
    ) -> bool:
        await _yield()
        key = (subscriber_kind, subscriber_id, category, dedup_reference)
        return any(self._key(r) == key for r in self.rows.values())

    async def count_for_reference(self, category: str, dedup_reference: str) -> int:
        await _yield()
        return sum(
            1
            for r in self.rows.values()
            if r.category == category and r.dedup_reference == dedup_reference
        )


class FakeSubscriberRepository:
    def __init__(
        self,
        guilds: dict[str, str | None] | None = None,
        users: list[str] | None = None,
    ) -> None:
        # guild_id -> channel_id
        self.guilds: dict[str, str | None] = dict(guilds or {})
        self.users: set[str] = set(users or [])
        self.disabled: set[tuple[SubscriberKind, str]] = set()

    async def list_alert_targets(self) -> list[Subscriber]:
        await _yield()
        targets = [
            Subscriber(SubscriberKind.GUILD, gid, channel)
            for gid, channel in sorted(self.guilds.items())
            if channel is not None and (SubscriberKind.GUILD, gid) not in self.disabled
        ]
        targets.extend(
            Subscriber(SubscriberKind.USER, uid)
            for uid in sorted(self.users)
            if (SubscriberKind.USER, uid) not in self.disabled
        )
        return targets

    async def is_enabled(self, kind: SubscriberKind, subscriber_id: str) -> bool:
        await _yield()
        known = self.guilds if kind == SubscriberKind.GUILD else self.users
        return subscriber_id in known and (kind, subscriber_id) not in self.disabled


class FakeConfigRepository:
    def __init__(self, values: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(values or {})
        self.fail_set = False

    async def get(self, key: str) -> str | None:
        await _yield()
        return self.values.get(key)

    async def get_many(self, keys: list[str]) -> dict[str, str]:
        await _yield()
        return {k: self.values[k] for k in keys if k in self.values}

    async def get_int(self, key: str) -> int:
        return parse_int(key, await self.get(key))

    async def set(self, key: str, value: str) -> None:
        await _yield()
        if self.fail_set:
            raise asyncpg.InterfaceError("connection is closed")
        self.values[key] = value


class FakeIncidentRepository:
    def __init__(self) -> None:
        self.rows: dict[str, TrackedIncident] = {}
        self.notes: dict[str, IncidentNote] = {}
        self.writes = 0

    async def get_by_id(self, incident_id: str) -> TrackedIncident | None:
        await _yield()
        return self.rows.get(incident_id)

    async def get_unresolved(self) -> list[TrackedIncident]:
        await _yield()
        return [i for i in self.rows.values() if i.status != INCIDENT_RESOLVED]

    async def insert(self, incident: TrackedIncident) -> None:
        await _yield()
        if incident.id in self.rows:
            raise UniqueViolation(f"incident {incident.id} exists")
        self.rows[incident.id] = incident
        self.writes += 1

    async def update(self, incident: TrackedIncident) -> bool:
        await _yield()
        if incident.id not in self.rows:
            return False
        self.rows[incident.id] = incident
        self.writes += 1
        return True

    async def mark_resolved(self, incident_id: str, now: datetime) -> bool:
        await _yield()
        row = self.rows.get(incident_id)
        if row is None or row.status == INCIDENT_RESOLVED:
            return False
        self.rows[incident_id] = replace(
            row, status=INCIDENT_RESOLVED, resolved_at=now, updated_at=now
        )
        self.writes += 1
        return True

    async def insert_note_if_absent(self, note: IncidentNote) -> bool:
        await _yield()
        if note.id in self.notes:
            return False
        self.notes[note.id] = note
        self.writes += 1
        return True


class FakeMaintenanceRepository:
    def __init__(self) -> None:
        self.rows: dict[str, MaintenanceWindow] = {}
        self.writes = 0

    async def get_by_id(self, maintenance_id: str) -> MaintenanceWindow | None:
        await _yield()
        return self.rows.get(maintenance_id)

    async def get_non_terminal(self) -> list[MaintenanceWindow]:
        await _yield()
        return [m for m in self.rows.values() if m.status != MAINTENANCE_COMPLETED]

    async def insert(self, window: MaintenanceWindow) -> None:
        await _yield()
        if window.id in self.rows:
            raise UniqueViolation(f"maintenance {window.id} exists")
        self.rows[window.id] = window
        self.writes += 1

    async def update(self, window: MaintenanceWindow) -> bool:
        await _yield()
        self.rows[window.id] = window
        self.writes += 1
        return True

    async def mark_completed(self, maintenance_id: str, now: datetime) -> bool:
        await _yield()
        row = self.rows.get(maintenance_id)
        if row is None or row.status == MAINTENANCE_COMPLETED:
            return False
        self.rows[maintenance_id] = replace(row, status=MAINTENANCE_COMPLETED, updated_at=now)
        self.writes += 1
        return True


class FakeStatusLogRepository:
    def __init__(self) -> None:
        self.snapshots: dict[datetime, StatusSnapshot] = {}
        self.components: dict[tuple[str, datetime], ComponentStatusSample] = {}

    async def insert_snapshot_if_absent(self, snapshot: StatusSnapshot) -> bool:
        await _yield()
        if snapshot.source_timestamp in self.snapshots:
            return False
        self.snapshots[snapshot.source_timestamp] = snapshot
        return True

    async def insert_component_if_absent(self, sample: ComponentStatusSample) -> bool:
        await _yield()
        key = (sample.component_id, sample.source_timestamp)
        if key in self.components:
            return False
        self.components[key] = sample
        return True


class FakeMetricRepository:
    def __init__(self) -> None:
        self.rows: dict[tuple[str, datetime], MetricSample] = {}

    async def insert_if_absent(self, sample: MetricSample) -> bool:
        await _yield()
        key = (sample.metric_name, sample.timestamp)
        if key in self.rows:
            return False
        self.rows[key] = sample
        return True

    async def count(self, metric_name: str) -> int:
        await _yield()
        return sum(1 for name, _ in self.rows if name == metric_name)
