"""Append-only audit records of observed inventory transitions."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from .inventory import new_id

if TYPE_CHECKING:
    from uuid import UUID

    from .enums import ChangeType
    from .scope import Scope


def change_event_key(
    scope: Scope,
    identifier: str,
    *,
    item_id: UUID,
    from_revision: int,
    change_type: ChangeType,
    field_changed: str | None,
) -> str:
    """Deterministic key for one transition of one canonical item revision."""

    parts = (
        scope.tenant_id,
        scope.location_id,
        identifier,
        str(item_id),
        str(from_revision),
        str(change_type),
        field_changed or "",
    )
    return hashlib.sha256("\x1f".join(parts).encode()).hexdigest()


@dataclass(frozen=True, kw_only=True)
class ChangeEvent:
    """Immutable record of one difference observed by reconciliation."""

    tenant_id: str
    location_id: str
    identifier: str
    change_type: ChangeType
    event_key: str
    item_id: UUID
    field_changed: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    bucket: str | None = None
    state: str | None = None
    source_type: str | None = None
    source_id: str | None = None
    model: str | None = None
    current_state: dict[str, Any] | None = None
    run_id: UUID | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    id: UUID = field(default_factory=new_id)
