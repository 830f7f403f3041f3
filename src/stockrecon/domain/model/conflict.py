"""Review artifacts for identifiers whose feeds disagree."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from .enums import ConflictStatus
from .inventory import new_id

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@dataclass(frozen=True, slots=True, kw_only=True)
class ConflictEntry:
    """Per-source summary stored in a conflict group."""

    source_type: str
    bucket: str | None
    state: str | None
    identifier: str
    model: str | None
    quantity: int | None
    grouping_key: str | None
    last_seen_at: str | None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(eq=False, kw_only=True)
class ConflictGroup:
    tenant_id: str
    location_id: str
    identifier: str
    entries: list[dict[str, Any]] = field(default_factory=list[dict[str, Any]])
    status: str = ConflictStatus.OPEN
    detected_at: datetime | None = None
    updated_at: datetime | None = None
    resolved_at: datetime | None = None
    id: UUID = field(default_factory=new_id)

    @property
    def is_open(self) -> bool:
        return self.status == ConflictStatus.OPEN
