"""Conflict detection over the candidate set of one identifier."""

from __future__ import annotations

from typing import TYPE_CHECKING

from stockrecon.domain.model import ConflictEntry

from .contracts import ConflictAction, ConflictDecision
from .normalize import clean_text, coerce_quantity, coerce_timestamp, normalize_model
from .precedence import DEFAULT_POLICY, PrecedencePolicy
from .resolve import is_staged, order_candidates

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from stockrecon.domain.model import ConflictGroup, SourceRecord


def is_staging_compatible(row: SourceRecord, policy: PrecedencePolicy = DEFAULT_POLICY) -> bool:
    """Staging observations never disagree with another feed's bucket."""

    return (
        clean_text(row.bucket) == policy.staging_bucket
        or row.source_type == policy.staging_feed
        or is_staged(row, policy)
    )


def has_conflict(rows: Sequence[SourceRecord], policy: PrecedencePolicy = DEFAULT_POLICY) -> bool:
    if len(rows) < 2:
        return False
    models = {normalize_model(row.model) for row in rows}
    if len(models) > 1:
        return True
    buckets = {
        bucket
        for row in rows
        if not is_staging_compatible(row, policy)
        and (bucket := clean_text(row.bucket)) is not None
    }
    return len(buckets) > 1


def conflict_entries(
    rows: Iterable[SourceRecord],
    policy: PrecedencePolicy = DEFAULT_POLICY,
) -> tuple[ConflictEntry, ...]:
    entries: list[ConflictEntry] = []
    for row in order_candidates(rows, policy):
        seen = coerce_timestamp(row.last_seen_at)
        entries.append(
            ConflictEntry(
                source_type=row.source_type,
                bucket=clean_text(row.bucket),
                state=clean_text(row.state),
                identifier=row.identifier,
                model=clean_text(row.model),
                quantity=coerce_quantity(row.quantity),
                grouping_key=clean_text(row.grouping_key),
                last_seen_at=seen.isoformat() if seen is not None else None,
            )
        )
    return tuple(entries)


def decide_conflict(
    identifier: str,
    rows: Sequence[SourceRecord],
    open_group: ConflictGroup | None,
    *,
    policy: PrecedencePolicy = DEFAULT_POLICY,
) -> ConflictDecision | None:
    """Open, refresh, keep or resolve the conflict group for ``identifier``.

    Returns ``None`` when there is no divergence and no open group to close.
    """

    if has_conflict(rows, policy):
        entries = conflict_entries(rows, policy)
        if open_group is None:
            return ConflictDecision(
                action=ConflictAction.OPEN,
                identifier=identifier,
                entries=entries,
            )
        unchanged = [entry.as_dict() for entry in entries] == list(open_group.entries)
        return ConflictDecision(
            action=ConflictAction.KEEP if unchanged else ConflictAction.REFRESH,
            identifier=identifier,
            entries=entries,
            group_id=open_group.id,
        )
    if open_group is not None:
        return ConflictDecision(
            action=ConflictAction.RESOLVE,
            identifier=identifier,
            group_id=open_group.id,
        )
    return None
