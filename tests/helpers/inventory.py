"""Reusable fakes and builders for inventory reconciliation tests."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Literal

from stockrecon.domain.model import (
    Bucket,
    CanonicalItem,
    ChangeEvent,
    ConflictGroup,
    ConflictStatus,
    FeedKind,
    Scope,
    SourceRecord,
)
from stockrecon.domain.ports.unit_of_work import InventoryRepositories
from stockrecon.domain.reconciliation import AuditAppendError, RunContext, StoreWriteError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from types import TracebackType
    from uuid import UUID

DEFAULT_SCOPE = Scope("tenant-a", "store-1")
T0 = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)

FEED_BUCKETS: dict[str, str | None] = {
    FeedKind.FINISHED_GOODS: Bucket.FG,
    FeedKind.RETURNS: Bucket.ASIS,
    FeedKind.INBOUND: Bucket.INBOUND,
    FeedKind.BACKHAUL: Bucket.BACKHAUL,
    FeedKind.STAGING: Bucket.STA,
}


def make_source(
    identifier: str = "SN100",
    *,
    source_type: str = FeedKind.FINISHED_GOODS,
    scope: Scope = DEFAULT_SCOPE,
    last_seen_at: datetime | None = T0,
    **attributes: Any,
) -> SourceRecord:
    """Create a source record with feed-typical defaults."""

    attributes.setdefault("bucket", FEED_BUCKETS.get(source_type))
    attributes.setdefault("model", "GTE18GMNRWW")
    attributes.setdefault("quantity", 1)
    return SourceRecord(
        tenant_id=scope.tenant_id,
        location_id=scope.location_id,
        source_type=source_type,
        identifier=identifier,
        last_seen_at=last_seen_at,
        **attributes,
    )


class FixedClock:
    """Clock returning a fixed instant that tests can advance."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> None:
        self.current = self.current + timedelta(**delta)


def make_context(scope: Scope = DEFAULT_SCOPE, *, clock: FixedClock | None = None) -> RunContext:
    return RunContext(scope=scope, clock=clock or FixedClock())


def _in_scope(record: SourceRecord | CanonicalItem | ConflictGroup, scope: Scope) -> bool:
    return record.tenant_id == scope.tenant_id and record.location_id == scope.location_id


class FakeSourceRecordRepository:
    def __init__(self) -> None:
        self.rows: dict[tuple[str, str, str, str], SourceRecord] = {}

    def for_identifiers(self, scope: Scope, identifiers: Sequence[str]) -> list[SourceRecord]:
        wanted = set(identifiers)
        return [
            replace(row)
            for row in self.rows.values()
            if _in_scope(row, scope) and row.identifier in wanted
        ]

    def identifiers_for_feed(self, scope: Scope, source_type: str) -> set[str]:
        return {
            row.identifier
            for row in self.rows.values()
            if _in_scope(row, scope) and row.source_type == source_type
        }

    def upsert(self, records: Sequence[SourceRecord]) -> int:
        for record in records:
            key = (record.tenant_id, record.location_id, record.source_type, record.identifier)
            existing = self.rows.get(key)
            self.rows[key] = replace(record, id=existing.id if existing else record.id)
        return len(records)

    def delete_for_feed(self, scope: Scope, source_type: str, identifiers: Sequence[str]) -> int:
        keys = [
            (scope.tenant_id, scope.location_id, source_type, identifier)
            for identifier in identifiers
        ]
        return sum(1 for key in keys if self.rows.pop(key, None) is not None)


class FakeCanonicalItemRepository:
    def __init__(self) -> None:
        self.items: dict[UUID, CanonicalItem] = {}
        # writes beyond this many calls raise StoreWriteError
        self.fail_after: int | None = None
        self.calls: list[str] = []

    def for_identifiers(self, scope: Scope, identifiers: Sequence[str]) -> list[CanonicalItem]:
        wanted = set(identifiers)
        return [
            replace(item)
            for item in self.items.values()
            if _in_scope(item, scope) and item.identifier in wanted
        ]

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail_after is not None and len(self.calls) > self.fail_after:
            raise StoreWriteError(f"{operation} failed")

    def upsert_by_natural_key(self, items: Sequence[CanonicalItem], *, now: datetime) -> int:
        self._check("upsert_by_natural_key")
        for item in items:
            existing = next(
                (
                    stored
                    for stored in self.items.values()
                    if stored.tenant_id == item.tenant_id
                    and stored.location_id == item.location_id
                    and stored.identifier == item.identifier
                    and stored.bucket == item.bucket
                ),
                None,
            )
            if existing is None:
                self.items[item.id] = replace(
                    item, created_at=item.created_at or now, updated_at=now
                )
            else:
                self.items[existing.id] = replace(
                    item,
                    id=existing.id,
                    revision=existing.revision + 1,
                    created_at=existing.created_at,
                    updated_at=now,
                )
        return len(items)

    def upsert_by_id(self, items: Sequence[CanonicalItem], *, now: datetime) -> int:
        self._check("upsert_by_id")
        for item in items:
            self.items[item.id] = replace(item, updated_at=now)
        return len(items)

    def insert(self, items: Sequence[CanonicalItem], *, now: datetime) -> int:
        self._check("insert")
        for item in items:
            self.items[item.id] = replace(item, created_at=item.created_at or now, updated_at=now)
        return len(items)

    def delete_ids(self, ids: Sequence[UUID]) -> int:
        self._check("delete_ids")
        return sum(1 for item_id in ids if self.items.pop(item_id, None) is not None)


class FakeConflictGroupRepository:
    def __init__(self) -> None:
        self.groups: dict[UUID, ConflictGroup] = {}

    def open_for_identifiers(self, scope: Scope, identifiers: Sequence[str]) -> list[ConflictGroup]:
        wanted = set(identifiers)
        return [
            replace(group)
            for group in self.groups.values()
            if _in_scope(group, scope) and group.identifier in wanted and group.is_open
        ]

    def upsert_open(self, groups: Sequence[ConflictGroup], *, now: datetime) -> int:
        for group in groups:
            existing = next(
                (
                    stored
                    for stored in self.groups.values()
                    if stored.is_open
                    and stored.tenant_id == group.tenant_id
                    and stored.location_id == group.location_id
                    and stored.identifier == group.identifier
                ),
                None,
            )
            if existing is None:
                self.groups[group.id] = replace(group, status=ConflictStatus.OPEN, updated_at=now)
            else:
                existing.entries = list(group.entries)
                existing.updated_at = now
        return len(groups)

    def refresh(self, groups: Sequence[ConflictGroup], *, now: datetime) -> int:
        refreshed = 0
        for group in groups:
            stored = self.groups.get(group.id)
            if stored is not None and stored.is_open:
                stored.entries = list(group.entries)
                stored.updated_at = now
                refreshed += 1
        return refreshed

    def resolve(self, ids: Sequence[UUID], *, now: datetime) -> int:
        resolved = 0
        for group_id in ids:
            stored = self.groups.get(group_id)
            if stored is not None and stored.is_open:
                stored.status = ConflictStatus.RESOLVED
                stored.resolved_at = now
                stored.updated_at = now
                resolved += 1
        return resolved

    def open_groups(self) -> list[ConflictGroup]:
        return [group for group in self.groups.values() if group.is_open]


class FakeChangeEventRepository:
    def __init__(self) -> None:
        self.events: dict[str, ChangeEvent] = {}
        self.fail_appends = False

    def append(self, events: Sequence[ChangeEvent]) -> int:
        if self.fail_appends:
            raise AuditAppendError("audit log unavailable")
        inserted = 0
        for event in events:
            if event.event_key not in self.events:
                self.events[event.event_key] = event
                inserted += 1
        return inserted

    def for_identifier(self, scope: Scope, identifier: str) -> list[ChangeEvent]:
        return [
            event
            for event in self.events.values()
            if event.tenant_id == scope.tenant_id
            and event.location_id == scope.location_id
            and event.identifier == identifier
        ]


@dataclass
class InMemoryStore:
    """Shared state behind every fake unit of work created by ``unit_of_work``."""

    source_records: FakeSourceRecordRepository = field(default_factory=FakeSourceRecordRepository)
    canonical_items: FakeCanonicalItemRepository = field(
        default_factory=FakeCanonicalItemRepository
    )
    conflict_groups: FakeConflictGroupRepository = field(
        default_factory=FakeConflictGroupRepository
    )
    change_events: FakeChangeEventRepository = field(default_factory=FakeChangeEventRepository)
    commits: int = 0
    rollbacks: int = 0

    def add_sources(self, records: Iterable[SourceRecord]) -> None:
        self.source_records.upsert(list(records))

    def unit_of_work(self) -> FakeInventoryUnitOfWork:
        return FakeInventoryUnitOfWork(self)

    def items_for(self, identifier: str) -> list[CanonicalItem]:
        return [
            item
            for item in self.canonical_items.items.values()
            if item.identifier == identifier
        ]


class FakeInventoryUnitOfWork:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self._repositories = InventoryRepositories(
            source_records=store.source_records,
            canonical_items=store.canonical_items,
            conflict_groups=store.conflict_groups,
            change_events=store.change_events,
        )

    @property
    def repositories(self) -> InventoryRepositories:
        return self._repositories

    def __enter__(self) -> FakeInventoryUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        return False

    def commit(self) -> None:
        self.store.commits += 1

    def rollback(self) -> None:
        self.store.rollbacks += 1
