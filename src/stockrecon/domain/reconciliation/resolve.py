"""Canonical resolution for the Source Records sharing one identifier.

``resolve_canonical`` is a pure function of its candidate set: input order
does not matter, every ordering decision goes through ``candidate_sort_key``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from stockrecon.domain.identity import is_synthetic_identifier
from stockrecon.domain.model import CanonicalItem

from .normalize import clean_text, coerce_quantity, coerce_timestamp, normalize_state
from .precedence import DEFAULT_POLICY, PrecedencePolicy

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from datetime import datetime
    from uuid import UUID

    from stockrecon.domain.model import Scope, SourceRecord


@dataclass(frozen=True, slots=True, kw_only=True)
class CanonicalView:
    """Derived truth for one identifier before it is diffed against the store."""

    identifier: str
    bucket: str
    state: str | None
    source_type: str
    source_id: str
    model: str | None = None
    quantity: int | None = None
    grouping_key: str | None = None
    status: str | None = None
    message: str | None = None
    order_code: str | None = None
    last_seen_at: datetime | None = None
    is_synthetic: bool = False
    source_meta: dict[str, Any] = field(default_factory=dict[str, Any])

    def snapshot(self) -> dict[str, Any]:
        """JSON-safe summary stored on ``appeared`` events."""

        return {
            "bucket": self.bucket,
            "state": self.state,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "model": self.model,
            "quantity": self.quantity,
            "grouping_key": self.grouping_key,
            "status": self.status,
            "last_seen_at": self.last_seen_at.isoformat() if self.last_seen_at else None,
        }

    def to_item(
        self,
        scope: Scope,
        *,
        item_id: UUID | None = None,
        revision: int = 1,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ) -> CanonicalItem:
        item = CanonicalItem(
            tenant_id=scope.tenant_id,
            location_id=scope.location_id,
            identifier=self.identifier,
            bucket=self.bucket,
            state=self.state,
            source_type=self.source_type,
            source_id=self.source_id,
            model=self.model,
            quantity=self.quantity,
            grouping_key=self.grouping_key,
            status=self.status,
            message=self.message,
            order_code=self.order_code,
            is_synthetic=self.is_synthetic,
            source_meta=dict(self.source_meta),
            last_seen_at=self.last_seen_at,
            revision=revision,
            created_at=created_at,
            updated_at=updated_at,
        )
        if item_id is not None:
            item.id = item_id
        return item


def candidate_sort_key(
    row: SourceRecord,
    policy: PrecedencePolicy = DEFAULT_POLICY,
) -> tuple[int, int, float, str, str]:
    """Priority index, newest ``last_seen_at`` first (unknown last), feed, row id."""

    seen = coerce_timestamp(row.last_seen_at)
    return (
        policy.priority_of(row.source_type),
        0 if seen is not None else 1,
        -seen.timestamp() if seen is not None else 0.0,
        row.source_type,
        str(row.id),
    )


def order_candidates(
    rows: Iterable[SourceRecord],
    policy: PrecedencePolicy = DEFAULT_POLICY,
) -> list[SourceRecord]:
    return sorted(rows, key=lambda row: candidate_sort_key(row, policy))


def is_staged(row: SourceRecord, policy: PrecedencePolicy = DEFAULT_POLICY) -> bool:
    return normalize_state(row.state) == policy.staged_state


def pick_authoritative(
    ordered: Sequence[SourceRecord],
    policy: PrecedencePolicy = DEFAULT_POLICY,
) -> SourceRecord | None:
    """First staged candidate if any row is staged, else the first candidate."""

    for row in ordered:
        if is_staged(row, policy):
            return row
    return ordered[0] if ordered else None


def derive_bucket(ordered: Sequence[SourceRecord], policy: PrecedencePolicy) -> str:
    present = {row.source_type for row in ordered}
    bucket = policy.bucket_for(present)
    if bucket is not None:
        return bucket
    explicit = _first_present(ordered, lambda row: clean_text(row.bucket))
    return explicit if explicit is not None else policy.unknown_bucket


def derive_state(
    ordered: Sequence[SourceRecord],
    authoritative: SourceRecord,
    policy: PrecedencePolicy,
) -> str | None:
    forced = policy.forced_state_for({row.source_type for row in ordered})
    if forced is not None:
        return forced
    state = normalize_state(authoritative.state)
    if state:
        return state
    return _first_present(ordered, lambda row: normalize_state(row.state) or None)


def _payload_of(row: SourceRecord) -> dict[str, Any]:
    payload = row.raw_payload
    return dict(payload) if isinstance(payload, Mapping) else {}


def _first_present[T](
    ordered: Iterable[SourceRecord],
    selector: Callable[[SourceRecord], T | None],
) -> T | None:
    for row in ordered:
        value = selector(row)
        if value is not None:
            return value
    return None


def _merge[T](
    ordered: Sequence[SourceRecord],
    authoritative: SourceRecord,
    selector: Callable[[SourceRecord], T | None],
) -> T | None:
    value = selector(authoritative)
    if value is not None:
        return value
    return _first_present((row for row in ordered if row is not authoritative), selector)


def resolve_canonical(
    rows: Iterable[SourceRecord],
    *,
    policy: PrecedencePolicy = DEFAULT_POLICY,
) -> CanonicalView | None:
    """Derive the canonical view for one identifier's candidates."""

    ordered = order_candidates(rows, policy)
    authoritative = pick_authoritative(ordered, policy)
    if authoritative is None:
        return None

    status_row = authoritative
    if policy.status_feed is not None:
        status_row = next(
            (row for row in ordered if row.source_type == policy.status_feed),
            authoritative,
        )

    def text_of(attr: str) -> Callable[[SourceRecord], str | None]:
        return lambda row: clean_text(getattr(row, attr))

    identifier = authoritative.identifier.strip()
    return CanonicalView(
        identifier=identifier,
        bucket=derive_bucket(ordered, policy),
        state=derive_state(ordered, authoritative, policy),
        source_type=authoritative.source_type,
        source_id=str(authoritative.id),
        model=_merge(ordered, authoritative, text_of("model")),
        quantity=_merge(ordered, status_row, lambda row: coerce_quantity(row.quantity)),
        grouping_key=_merge(ordered, authoritative, text_of("grouping_key")),
        status=_merge(ordered, status_row, text_of("status")),
        message=_merge(ordered, status_row, text_of("message")),
        order_code=_merge(ordered, authoritative, text_of("order_code")),
        last_seen_at=coerce_timestamp(authoritative.last_seen_at),
        is_synthetic=is_synthetic_identifier(identifier),
        source_meta=_payload_of(authoritative),
    )
