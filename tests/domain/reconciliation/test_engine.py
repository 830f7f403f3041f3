from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from stockrecon.domain.model import Bucket, ChangeType, FeedKind
from stockrecon.domain.reconciliation import (
    ReconcileResult,
    ReconciliationEngine,
    StoreReadError,
    build_engine,
)
from tests.helpers.inventory import InMemoryStore, make_context, make_source

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stockrecon.domain.model import Scope
    from stockrecon.domain.reconciliation.plan import ReconcileInputs


def _reconcile(store: InMemoryStore, identifiers: Sequence[str], **options: int) -> ReconcileResult:
    engine = build_engine(store.unit_of_work, **options)
    return engine.reconcile(identifiers, context=make_context())


def test_reconciling_twice_is_idempotent(store: InMemoryStore) -> None:
    store.add_sources(
        [
            make_source("SN100", source_type=FeedKind.FINISHED_GOODS, quantity=5),
            make_source("SN100", source_type=FeedKind.RETURNS, quantity=5, status="AVAILABLE"),
            make_source("SN200", source_type=FeedKind.INBOUND, grouping_key="LOAD-1"),
        ]
    )

    first = _reconcile(store, ["SN100", "SN200"])
    second = _reconcile(store, ["SN100", "SN200"])

    assert (first.appeared, first.events_logged) == (2, 2)
    assert (second.appeared, second.updated, second.events_logged) == (0, 0, 0)
    [item] = store.items_for("SN100")
    assert item.bucket == Bucket.ASIS
    assert item.status == "AVAILABLE"
    assert item.revision == 1


def test_quantity_change_between_runs(store: InMemoryStore) -> None:
    store.add_sources([make_source("SN100", quantity=5)])
    _reconcile(store, ["SN100"])

    store.add_sources([make_source("SN100", quantity=3)])
    result = _reconcile(store, ["SN100"])

    assert (result.updated, result.events_logged) == (1, 1)
    quantity_events = [
        event
        for event in store.change_events.events.values()
        if event.change_type is ChangeType.QUANTITY_CHANGED
    ]
    assert [(event.old_value, event.new_value) for event in quantity_events] == [("5", "3")]
    [item] = store.items_for("SN100")
    assert item.revision == 2


def test_removed_sources_delete_the_canonical_item(store: InMemoryStore, scope: Scope) -> None:
    store.add_sources([make_source("SN100")])
    _reconcile(store, ["SN100"])

    store.source_records.delete_for_feed(scope, FeedKind.FINISHED_GOODS, ["SN100"])
    result = _reconcile(store, ["SN100"])

    assert result.deleted == 1
    assert store.items_for("SN100") == []
    changes = [event.change_type for event in store.change_events.for_identifier(scope, "SN100")]
    assert changes == [ChangeType.APPEARED, ChangeType.DISAPPEARED]


def test_conflicts_open_and_auto_resolve(store: InMemoryStore) -> None:
    store.add_sources(
        [
            make_source("SN100", model="ABC123"),
            make_source("SN100", source_type=FeedKind.INBOUND, model="ABC124"),
        ]
    )

    opened = _reconcile(store, ["SN100"])
    kept = _reconcile(store, ["SN100"])
    [group] = store.conflict_groups.open_groups()
    assert group.identifier == "SN100"

    store.add_sources(
        [make_source("SN100", source_type=FeedKind.INBOUND, model="ABC123", bucket="FG")]
    )
    resolved = _reconcile(store, ["SN100"])

    assert opened.conflicts_open == 1
    assert kept.conflicts_open == 1
    assert len(store.conflict_groups.groups) == 1
    assert resolved.conflicts_open == 0
    assert resolved.conflicts_resolved == 1
    assert store.conflict_groups.open_groups() == []


def test_staging_and_returns_do_not_conflict(store: InMemoryStore) -> None:
    store.add_sources(
        [
            make_source("SN100", source_type=FeedKind.STAGING, bucket="STA", state="staged"),
            make_source("SN100", source_type=FeedKind.RETURNS, bucket="ASIS"),
        ]
    )

    result = _reconcile(store, ["SN100"])

    assert result.conflicts_open == 0
    [item] = store.items_for("SN100")
    assert (item.bucket, item.state, item.source_type) == (Bucket.ASIS, "staged", "staging")


def test_identifiers_are_stripped_and_deduplicated(store: InMemoryStore) -> None:
    store.add_sources([make_source("SN100")])

    result = _reconcile(store, [" SN100", "SN100 ", "", "SN404"])

    assert result.identifiers == ("SN100", "SN404")
    assert result.appeared == 1


def test_empty_batch_touches_nothing(store: InMemoryStore) -> None:
    result = _reconcile(store, [])

    assert result.identifiers == ()
    assert store.commits == 0


def test_parallel_computation_matches_sequential(store: InMemoryStore) -> None:
    identifiers = [f"SN{index:03d}" for index in range(20)]
    store.add_sources(
        [make_source(identifier, quantity=index) for index, identifier in enumerate(identifiers)]
    )

    result = _reconcile(store, identifiers, compute_workers=4, batch_size=3)

    assert result.appeared == 20
    assert result.events_logged == 20
    assert len(store.canonical_items.items) == 20


def test_read_failure_aborts_before_writing(store: InMemoryStore) -> None:
    def failing_loader(scope: Scope, identifiers: Sequence[str]) -> ReconcileInputs:
        raise StoreReadError("source table unavailable")

    engine = ReconciliationEngine(
        load=failing_loader,
        persist=build_engine(store.unit_of_work).persist,
    )

    with pytest.raises(StoreReadError):
        engine.reconcile(["SN100"], context=make_context())
    assert store.commits == 0
