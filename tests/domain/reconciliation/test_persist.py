from __future__ import annotations

from dataclasses import replace

import pytest

from stockrecon.domain.model import ChangeType, FeedKind
from stockrecon.domain.reconciliation import (
    BatchedWriter,
    IdentifierPlan,
    ReconcilePersistenceError,
    resolve_canonical,
)
from stockrecon.domain.reconciliation.conflicts import decide_conflict
from stockrecon.domain.reconciliation.diff import diff_identifier
from tests.helpers.inventory import DEFAULT_SCOPE, InMemoryStore, make_context, make_source


def _appear_plan(identifier: str) -> IdentifierPlan:
    view = resolve_canonical([make_source(identifier)])
    return diff_identifier(DEFAULT_SCOPE, identifier, view, [])


def test_noop_plans_are_not_written(store: InMemoryStore) -> None:
    writer = BatchedWriter(store.unit_of_work)

    result = writer([IdentifierPlan(identifier="SN1")], context=make_context())

    assert result.committed_chunks == 0
    assert store.commits == 0


def test_chunk_writes_canonical_state_then_events(store: InMemoryStore) -> None:
    writer = BatchedWriter(store.unit_of_work, batch_size=10)
    plans = [_appear_plan(f"SN{index}") for index in range(3)]

    result = writer(plans, context=make_context())

    assert result.committed_chunks == 1
    assert result.appeared == 3
    assert result.events_logged == 3
    assert store.commits == 2
    assert len(store.canonical_items.items) == 3
    assert {event.change_type for event in store.change_events.events.values()} == {
        ChangeType.APPEARED
    }


def test_chunks_are_bounded_by_batch_size(store: InMemoryStore) -> None:
    writer = BatchedWriter(store.unit_of_work, batch_size=2)

    result = writer([_appear_plan(f"SN{index}") for index in range(5)], context=make_context())

    assert result.committed_chunks == 3
    assert store.canonical_items.calls.count("upsert_by_natural_key") == 3


def test_conflict_decisions_are_written_with_the_chunk(store: InMemoryStore) -> None:
    rows = [
        make_source("SN9", model="ABC123"),
        make_source("SN9", source_type=FeedKind.INBOUND, model="ABC124"),
    ]
    plan = diff_identifier(DEFAULT_SCOPE, "SN9", resolve_canonical(rows), [])
    decision = decide_conflict("SN9", rows, None)
    assert decision is not None
    writer = BatchedWriter(store.unit_of_work)

    result = writer([replace(plan, conflict=decision)], context=make_context())

    assert result.conflicts_opened == 1
    [group] = store.conflict_groups.open_groups()
    assert group.identifier == "SN9"
    assert len(group.entries) == 2


def test_audit_failure_is_counted_not_raised(store: InMemoryStore) -> None:
    store.change_events.fail_appends = True
    writer = BatchedWriter(store.unit_of_work)

    result = writer([_appear_plan("SN1"), _appear_plan("SN2")], context=make_context())

    assert result.appeared == 2
    assert result.events_logged == 0
    assert result.audit_failures == 2
    assert len(store.canonical_items.items) == 2


def test_write_failure_reports_partial_progress(store: InMemoryStore) -> None:
    store.canonical_items.fail_after = 1
    writer = BatchedWriter(store.unit_of_work, batch_size=1)

    with pytest.raises(ReconcilePersistenceError) as exc:
        writer([_appear_plan(f"SN{index}") for index in range(3)], context=make_context())

    assert exc.value.partial.committed_chunks == 1
    assert exc.value.partial.appeared == 1
    assert exc.value.failed_chunks == 1
    assert store.rollbacks == 1
    assert "committed_chunks=1" in str(exc.value)


def test_concurrent_chunks_aggregate_results(store: InMemoryStore) -> None:
    writer = BatchedWriter(store.unit_of_work, batch_size=2, concurrency=3)

    result = writer([_appear_plan(f"SN{index}") for index in range(5)], context=make_context())

    assert result.committed_chunks == 3
    assert result.appeared == 5
    assert result.events_logged == 5


def test_concurrent_failures_are_aggregated(store: InMemoryStore) -> None:
    store.canonical_items.fail_after = 0
    writer = BatchedWriter(store.unit_of_work, batch_size=1, concurrency=2)

    with pytest.raises(ReconcilePersistenceError) as exc:
        writer([_appear_plan("SN1"), _appear_plan("SN2")], context=make_context())

    assert exc.value.failed_chunks == 2
    assert exc.value.partial.committed_chunks == 0

