"""Ports for reading and writing reconciliation state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from stockrecon.domain.model import (
        CanonicalItem,
        ChangeEvent,
        ConflictGroup,
        Scope,
        SourceRecord,
    )


@runtime_checkable
class SourceRecordRepository(Protocol):
    """Feed observations, written by ingestion and read by reconciliation."""

    def for_identifiers(self, scope: Scope, identifiers: Sequence[str]) -> list[SourceRecord]: ...

    def identifiers_for_feed(self, scope: Scope, source_type: str) -> set[str]: ...

    def upsert(self, records: Sequence[SourceRecord]) -> int: ...

    def delete_for_feed(
        self, scope: Scope, source_type: str, identifiers: Sequence[str]
    ) -> int: ...


@runtime_checkable
class CanonicalItemRepository(Protocol):
    def for_identifiers(
        self, scope: Scope, identifiers: Sequence[str]
    ) -> list[CanonicalItem]: ...

    def upsert_by_natural_key(self, items: Sequence[CanonicalItem], *, now: datetime) -> int: ...

    def upsert_by_id(self, items: Sequence[CanonicalItem], *, now: datetime) -> int: ...

    def insert(self, items: Sequence[CanonicalItem], *, now: datetime) -> int: ...

    def delete_ids(self, ids: Sequence[UUID]) -> int: ...


@runtime_checkable
class ConflictGroupRepository(Protocol):
    """At most one open group per identifier; resolved groups are history."""

    def open_for_identifiers(
        self, scope: Scope, identifiers: Sequence[str]
    ) -> list[ConflictGroup]: ...

    def upsert_open(self, groups: Sequence[ConflictGroup], *, now: datetime) -> int: ...

    def refresh(self, groups: Sequence[ConflictGroup], *, now: datetime) -> int: ...

    def resolve(self, ids: Sequence[UUID], *, now: datetime) -> int: ...


@runtime_checkable
class ChangeEventRepository(Protocol):
    """Append-only audit log."""

    def append(self, events: Sequence[ChangeEvent]) -> int:
        """Insert events, ignoring keys already present; return the number inserted."""
        ...

    def for_identifier(self, scope: Scope, identifier: str) -> list[ChangeEvent]: ...
