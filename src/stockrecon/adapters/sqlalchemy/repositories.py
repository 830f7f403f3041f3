"""Repository implementations backed by SQLAlchemy sessions.

Writes go through Core ``INSERT .. ON CONFLICT`` statements so that every
batch is idempotent; reads return the imperatively mapped dataclasses.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy import delete, select, text, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from stockrecon.adapters.sqlalchemy.mappings import (
    OPEN_CONFLICT_PREDICATE,
    canonical_item_table,
    change_event_table,
    conflict_group_table,
    source_record_table,
)
from stockrecon.domain.model import (
    CanonicalItem,
    ChangeEvent,
    ChangeType,
    ConflictGroup,
    ConflictStatus,
    SourceRecord,
)
from stockrecon.domain.reconciliation.errors import (
    AuditAppendError,
    StoreReadError,
    StoreWriteError,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy import Table
    from sqlalchemy.dialects.postgresql import Insert as PostgresqlInsert
    from sqlalchemy.dialects.sqlite import Insert as SqliteInsert
    from sqlalchemy.orm import Session

    from stockrecon.domain.model import Scope

SOURCE_RECORD_COLUMNS: Final[tuple[str, ...]] = (
    "bucket",
    "state",
    "model",
    "quantity",
    "grouping_key",
    "status",
    "message",
    "order_code",
    "last_seen_at",
    "raw_payload",
)

CANONICAL_ITEM_COLUMNS: Final[tuple[str, ...]] = (
    "bucket",
    "state",
    "source_type",
    "source_id",
    "model",
    "quantity",
    "grouping_key",
    "status",
    "message",
    "order_code",
    "is_synthetic",
    "source_meta",
    "last_seen_at",
)


@contextmanager
def _translate_errors(
    error_type: type[StoreReadError | StoreWriteError],
    message: str,
) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise error_type(f"{message}: {exc}") from exc


def _insert_for(session: Session, table: Table) -> SqliteInsert | PostgresqlInsert:
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite_insert(table)
    if dialect == "postgresql":
        return postgresql_insert(table)
    raise StoreWriteError(f"Upserts are not supported on the {dialect!r} dialect")


def _scoped(table: Table, scope: Scope, identifiers: Sequence[str]) -> Any:
    return (
        (table.c.tenant_id == scope.tenant_id)
        & (table.c.location_id == scope.location_id)
        & (table.c.identifier.in_(list(identifiers)))
    )


class SqlAlchemySourceRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def for_identifiers(self, scope: Scope, identifiers: Sequence[str]) -> list[SourceRecord]:
        if not identifiers:
            return []
        stmt = select(SourceRecord).where(_scoped(source_record_table, scope, identifiers))
        with _translate_errors(StoreReadError, "Could not load source records"):
            return list(self.session.execute(stmt).scalars().all())

    def identifiers_for_feed(self, scope: Scope, source_type: str) -> set[str]:
        table = source_record_table
        stmt = select(table.c.identifier).where(
            table.c.tenant_id == scope.tenant_id,
            table.c.location_id == scope.location_id,
            table.c.source_type == source_type,
        )
        with _translate_errors(StoreReadError, "Could not list feed identifiers"):
            return set(self.session.execute(stmt).scalars().all())

    def upsert(self, records: Sequence[SourceRecord]) -> int:
        if not records:
            return 0
        table = source_record_table
        rows = [
            {
                "id": record.id,
                "tenant_id": record.tenant_id,
                "location_id": record.location_id,
                "source_type": record.source_type,
                "identifier": record.identifier,
                **{name: getattr(record, name) for name in SOURCE_RECORD_COLUMNS},
            }
            for record in records
        ]
        stmt = _insert_for(self.session, table).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[
                table.c.tenant_id,
                table.c.location_id,
                table.c.source_type,
                table.c.identifier,
            ],
            set_={name: stmt.excluded[name] for name in SOURCE_RECORD_COLUMNS},
        )
        with _translate_errors(StoreWriteError, "Could not upsert source records"):
            return self.session.execute(stmt).rowcount

    def delete_for_feed(self, scope: Scope, source_type: str, identifiers: Sequence[str]) -> int:
        if not identifiers:
            return 0
        stmt = delete(source_record_table).where(
            _scoped(source_record_table, scope, identifiers),
            source_record_table.c.source_type == source_type,
        )
        with _translate_errors(StoreWriteError, "Could not delete source records"):
            return self.session.execute(stmt).rowcount


class SqlAlchemyCanonicalItemRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def for_identifiers(self, scope: Scope, identifiers: Sequence[str]) -> list[CanonicalItem]:
        if not identifiers:
            return []
        stmt = select(CanonicalItem).where(_scoped(canonical_item_table, scope, identifiers))
        with _translate_errors(StoreReadError, "Could not load canonical items"):
            return list(self.session.execute(stmt).scalars().all())

    @staticmethod
    def _row(item: CanonicalItem, now: datetime) -> dict[str, Any]:
        return {
            "id": item.id,
            "tenant_id": item.tenant_id,
            "location_id": item.location_id,
            "identifier": item.identifier,
            "revision": item.revision,
            "created_at": item.created_at or now,
            "updated_at": now,
            **{name: getattr(item, name) for name in CANONICAL_ITEM_COLUMNS},
        }

    def upsert_by_natural_key(self, items: Sequence[CanonicalItem], *, now: datetime) -> int:
        """Insert new items; a concurrent writer's row for the same key is taken over."""

        if not items:
            return 0
        table = canonical_item_table
        stmt = _insert_for(self.session, table).values([self._row(item, now) for item in items])
        stmt = stmt.on_conflict_do_update(
            index_elements=[
                table.c.tenant_id,
                table.c.location_id,
                table.c.identifier,
                table.c.bucket,
            ],
            set_={
                **{name: stmt.excluded[name] for name in CANONICAL_ITEM_COLUMNS},
                "revision": table.c.revision + 1,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        with _translate_errors(StoreWriteError, "Could not upsert canonical items"):
            return self.session.execute(stmt).rowcount

    def upsert_by_id(self, items: Sequence[CanonicalItem], *, now: datetime) -> int:
        if not items:
            return 0
        table = canonical_item_table
        stmt = _insert_for(self.session, table).values([self._row(item, now) for item in items])
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.id],
            set_={
                **{name: stmt.excluded[name] for name in CANONICAL_ITEM_COLUMNS},
                "revision": stmt.excluded.revision,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        with _translate_errors(StoreWriteError, "Could not update canonical items"):
            return self.session.execute(stmt).rowcount

    def insert(self, items: Sequence[CanonicalItem], *, now: datetime) -> int:
        if not items:
            return 0
        stmt = canonical_item_table.insert().values([self._row(item, now) for item in items])
        with _translate_errors(StoreWriteError, "Could not insert canonical items"):
            return self.session.execute(stmt).rowcount

    def delete_ids(self, ids: Sequence[UUID]) -> int:
        if not ids:
            return 0
        stmt = delete(canonical_item_table).where(canonical_item_table.c.id.in_(list(ids)))
        with _translate_errors(StoreWriteError, "Could not delete canonical items"):
            return self.session.execute(stmt).rowcount


class SqlAlchemyConflictGroupRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def open_for_identifiers(
        self, scope: Scope, identifiers: Sequence[str]
    ) -> list[ConflictGroup]:
        if not identifiers:
            return []
        stmt = select(ConflictGroup).where(
            _scoped(conflict_group_table, scope, identifiers),
            conflict_group_table.c.status == ConflictStatus.OPEN,
        )
        with _translate_errors(StoreReadError, "Could not load open conflict groups"):
            return list(self.session.execute(stmt).scalars().all())

    def upsert_open(self, groups: Sequence[ConflictGroup], *, now: datetime) -> int:
        if not groups:
            return 0
        table = conflict_group_table
        rows = [
            {
                "id": group.id,
                "tenant_id": group.tenant_id,
                "location_id": group.location_id,
                "identifier": group.identifier,
                "entries": group.entries,
                "status": ConflictStatus.OPEN,
                "detected_at": group.detected_at or now,
                "updated_at": now,
            }
            for group in groups
        ]
        stmt = _insert_for(self.session, table).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.tenant_id, table.c.location_id, table.c.identifier],
            index_where=text(OPEN_CONFLICT_PREDICATE),
            set_={"entries": stmt.excluded.entries, "updated_at": stmt.excluded.updated_at},
        )
        with _translate_errors(StoreWriteError, "Could not upsert conflict groups"):
            return self.session.execute(stmt).rowcount

    def refresh(self, groups: Sequence[ConflictGroup], *, now: datetime) -> int:
        table = conflict_group_table
        refreshed = 0
        with _translate_errors(StoreWriteError, "Could not refresh conflict groups"):
            for group in groups:
                stmt = (
                    update(table)
                    .where(table.c.id == group.id, table.c.status == ConflictStatus.OPEN)
                    .values(entries=group.entries, updated_at=now)
                )
                refreshed += self.session.execute(stmt).rowcount
        return refreshed

    def resolve(self, ids: Sequence[UUID], *, now: datetime) -> int:
        if not ids:
            return 0
        table = conflict_group_table
        stmt = (
            update(table)
            .where(table.c.id.in_(list(ids)), table.c.status == ConflictStatus.OPEN)
            .values(status=ConflictStatus.RESOLVED, resolved_at=now, updated_at=now)
        )
        with _translate_errors(StoreWriteError, "Could not resolve conflict groups"):
            return self.session.execute(stmt).rowcount


class SqlAlchemyChangeEventRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def append(self, events: Sequence[ChangeEvent]) -> int:
        if not events:
            return 0
        table = change_event_table
        rows = [
            {column.name: getattr(event, column.name) for column in table.columns}
            for event in events
        ]
        stmt = _insert_for(self.session, table).values(rows)
        stmt = stmt.on_conflict_do_nothing(index_elements=[table.c.event_key])
        with _translate_errors(AuditAppendError, "Could not append change events"):
            return self.session.execute(stmt).rowcount

    def for_identifier(self, scope: Scope, identifier: str) -> list[ChangeEvent]:
        table = change_event_table
        stmt = (
            select(table)
            .where(_scoped(table, scope, [identifier]))
            .order_by(table.c.created_at, table.c.id)
        )
        with _translate_errors(StoreReadError, "Could not load change events"):
            rows = self.session.execute(stmt).mappings().all()
        return [
            ChangeEvent(**{**row, "change_type": ChangeType(row["change_type"])})
            for row in rows
        ]
