"""Change detection between a canonical view and the persisted items.

The diff emits the minimal set of ``ChangeEvent`` values that explains the
transition and the writes needed to apply it. Feeding a plan's own output
back in as the prior state yields an empty plan.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Final

from stockrecon.domain.model import ChangeEvent, ChangeType, change_event_key

from .contracts import IdentifierPlan
from .normalize import as_text

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from stockrecon.domain.model import CanonicalItem, Scope

    from .resolve import CanonicalView


TRACKED_FIELDS: Final[tuple[tuple[str, ChangeType], ...]] = (
    ("bucket", ChangeType.BUCKET_CHANGED),
    ("state", ChangeType.STATE_CHANGED),
    ("source_type", ChangeType.SOURCE_CHANGED),
    ("status", ChangeType.STATUS_CHANGED),
    ("quantity", ChangeType.QUANTITY_CHANGED),
    ("grouping_key", ChangeType.GROUPING_CHANGED),
)

# every persisted canonical attribute the writer refreshes on update
PERSISTED_FIELDS: Final[tuple[str, ...]] = (
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
    "last_seen_at",
)


def _recency(item: CanonicalItem) -> float:
    stamp = item.updated_at or item.created_at
    return stamp.timestamp() if stamp is not None else float("-inf")


def pick_primary(
    prior_items: Sequence[CanonicalItem],
    bucket: str | None,
) -> CanonicalItem | None:
    """Prefer the row already holding ``bucket``, else the most recently updated."""

    if not prior_items:
        return None
    ranked = sorted(
        prior_items,
        key=lambda item: (
            0 if bucket is not None and item.bucket == bucket else 1,
            -_recency(item),
            str(item.id),
        ),
    )
    return ranked[0]


def persisted_fields_differ(current: CanonicalItem, desired: CanonicalItem) -> bool:
    for name in PERSISTED_FIELDS:
        old = getattr(current, name)
        new = getattr(desired, name)
        if isinstance(old, str | None) and isinstance(new, str | None):
            if as_text(old) != as_text(new):
                return True
        elif old != new:
            return True
    return dict(current.source_meta or {}) != dict(desired.source_meta or {})


def diff_identifier(
    scope: Scope,
    identifier: str,
    view: CanonicalView | None,
    prior_items: Sequence[CanonicalItem],
    *,
    run_id: UUID | None = None,
    now: datetime | None = None,
) -> IdentifierPlan:
    if view is None:
        if not prior_items:
            return IdentifierPlan(identifier=identifier)
        return IdentifierPlan(
            identifier=identifier,
            events=tuple(_disappeared(scope, item, run_id=run_id) for item in prior_items),
            delete_ids=tuple(item.id for item in prior_items),
        )

    primary = pick_primary(prior_items, view.bucket)
    leftovers = tuple(item.id for item in prior_items if item is not primary)
    if primary is None:
        item = view.to_item(scope, created_at=now, updated_at=now)
        return IdentifierPlan(
            identifier=identifier,
            view=view,
            events=(_appeared(scope, view, item, run_id=run_id),),
            insert=item,
            delete_ids=leftovers,
        )

    events = tuple(_field_events(scope, view, primary, run_id=run_id))
    desired = view.to_item(
        scope,
        item_id=primary.id,
        revision=primary.revision,
        created_at=primary.created_at,
        updated_at=primary.updated_at,
    )
    update = None
    if events or persisted_fields_differ(primary, desired):
        update = replace(desired, revision=primary.revision + 1, updated_at=now)
    return IdentifierPlan(
        identifier=identifier,
        view=view,
        events=events,
        update=update,
        delete_ids=leftovers,
    )


def _field_events(
    scope: Scope,
    view: CanonicalView,
    primary: CanonicalItem,
    *,
    run_id: UUID | None,
) -> list[ChangeEvent]:
    events: list[ChangeEvent] = []
    for name, change_type in TRACKED_FIELDS:
        old_value = as_text(getattr(primary, name))
        new_value = as_text(getattr(view, name))
        if old_value == new_value:
            continue
        events.append(
            ChangeEvent(
                tenant_id=scope.tenant_id,
                location_id=scope.location_id,
                identifier=view.identifier,
                change_type=change_type,
                event_key=change_event_key(
                    scope,
                    view.identifier,
                    item_id=primary.id,
                    from_revision=primary.revision,
                    change_type=change_type,
                    field_changed=name,
                ),
                item_id=primary.id,
                field_changed=name,
                old_value=old_value,
                new_value=new_value,
                bucket=view.bucket,
                state=view.state,
                source_type=view.source_type,
                source_id=view.source_id,
                model=view.model,
                run_id=run_id,
            )
        )
    return events


def _appeared(
    scope: Scope,
    view: CanonicalView,
    item: CanonicalItem,
    *,
    run_id: UUID | None,
) -> ChangeEvent:
    return ChangeEvent(
        tenant_id=scope.tenant_id,
        location_id=scope.location_id,
        identifier=view.identifier,
        change_type=ChangeType.APPEARED,
        event_key=change_event_key(
            scope,
            view.identifier,
            item_id=item.id,
            from_revision=0,
            change_type=ChangeType.APPEARED,
            field_changed=None,
        ),
        item_id=item.id,
        bucket=view.bucket,
        state=view.state,
        source_type=view.source_type,
        source_id=view.source_id,
        model=view.model,
        current_state=view.snapshot(),
        run_id=run_id,
    )


def _disappeared(scope: Scope, item: CanonicalItem, *, run_id: UUID | None) -> ChangeEvent:
    return ChangeEvent(
        tenant_id=scope.tenant_id,
        location_id=scope.location_id,
        identifier=item.identifier,
        change_type=ChangeType.DISAPPEARED,
        event_key=change_event_key(
            scope,
            item.identifier,
            item_id=item.id,
            from_revision=item.revision,
            change_type=ChangeType.DISAPPEARED,
            field_changed=None,
        ),
        item_id=item.id,
        bucket=item.bucket,
        state=item.state,
        source_type=item.source_type,
        source_id=item.source_id,
        model=item.model,
        run_id=run_id,
    )
