"""Source observations and the canonical inventory record derived from them.

Both classes are mapped imperatively by the SQLAlchemy adapter, so they stay
plain (non-slotted) dataclasses with ``eq=False`` identity semantics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from .scope import Scope

if TYPE_CHECKING:
    from datetime import datetime


def new_id() -> UUID:
    return uuid4()


@dataclass(eq=False, kw_only=True)
class SourceRecord:
    """One feed's observation of one item.

    Owned by the ingestion adapters; reconciliation only reads it. Attribute
    values come from external feeds and are not trusted to be well-typed.
    """

    tenant_id: str
    location_id: str
    source_type: str
    identifier: str
    bucket: str | None = None
    state: str | None = None
    model: str | None = None
    quantity: int | None = None
    grouping_key: str | None = None
    status: str | None = None
    message: str | None = None
    order_code: str | None = None
    last_seen_at: datetime | None = None
    raw_payload: dict[str, Any] = field(default_factory=dict[str, Any])
    id: UUID = field(default_factory=new_id)

    @property
    def scope(self) -> Scope:
        return Scope(self.tenant_id, self.location_id)


@dataclass(eq=False, kw_only=True)
class CanonicalItem:
    """The single persisted truth for one identifier within one scope."""

    tenant_id: str
    location_id: str
    identifier: str
    bucket: str | None = None
    state: str | None = None
    source_type: str | None = None
    source_id: str | None = None
    model: str | None = None
    quantity: int | None = None
    grouping_key: str | None = None
    status: str | None = None
    message: str | None = None
    order_code: str | None = None
    is_synthetic: bool = False
    source_meta: dict[str, Any] = field(default_factory=dict[str, Any])
    last_seen_at: datetime | None = None
    revision: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID = field(default_factory=new_id)

    @property
    def scope(self) -> Scope:
        return Scope(self.tenant_id, self.location_id)
