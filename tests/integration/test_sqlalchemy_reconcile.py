from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from stockrecon.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyInventoryUnitOfWork,
    shutdown,
    startup,
)
from stockrecon.app import sync_feed_snapshot
from stockrecon.config import ReconcileConfig
from stockrecon.domain.model import Bucket, ChangeType, FeedKind
from tests.helpers.inventory import DEFAULT_SCOPE, T0

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from stockrecon.domain.ingestion import IngestResult
    from stockrecon.domain.reconciliation import ReconcileResult

CONFIG = ReconcileConfig(batch_size=1, read_chunk_size=1)

FINISHED_GOODS_ROWS: list[dict[str, object]] = [
    {"Serial #": "SN1", "Model #": "GTE18GMNRWW", "Qty": 1},
    {"Serial #": "SN2", "Model #": "GTE18GMNRWW", "Qty": 1},
]
RETURNS_ROWS: list[dict[str, object]] = [
    {"Serial #": "SN1", "Model #": "GTE18GMNRWW", "Qty": 1, "Availability Status": "HOLD"},
]


@pytest.mark.integration
def test_repeated_snapshots_are_idempotent(
    sqlite_unit_of_work: Callable[[], SqlAlchemyInventoryUnitOfWork],
) -> None:
    def sync() -> tuple[IngestResult, ReconcileResult]:
        return sync_feed_snapshot(
            DEFAULT_SCOPE,
            FeedKind.FINISHED_GOODS,
            FINISHED_GOODS_ROWS,
            unit_of_work_factory=sqlite_unit_of_work,
            config=CONFIG,
            observed_at=T0,
        )

    ingested, first = sync()
    _, second = sync()

    assert ingested.touched == frozenset({"SN1", "SN2"})
    assert (first.appeared, first.events_logged) == (2, 2)
    assert (second.appeared, second.updated, second.events_logged) == (0, 0, 0)

    with sqlite_unit_of_work() as uow:
        items = uow.repositories.canonical_items.for_identifiers(DEFAULT_SCOPE, ["SN1", "SN2"])
        events = uow.repositories.change_events.for_identifier(DEFAULT_SCOPE, "SN1")

    assert sorted((item.identifier, item.bucket, item.revision) for item in items) == [
        ("SN1", Bucket.FG, 1),
        ("SN2", Bucket.FG, 1),
    ]
    assert [event.change_type for event in events] == [ChangeType.APPEARED]


@pytest.mark.integration
def test_feed_disagreement_opens_and_resolves_conflict(
    sqlite_unit_of_work: Callable[[], SqlAlchemyInventoryUnitOfWork],
) -> None:
    def sync(feed: FeedKind, rows: list[dict[str, object]]) -> ReconcileResult:
        _, result = sync_feed_snapshot(
            DEFAULT_SCOPE,
            feed,
            rows,
            unit_of_work_factory=sqlite_unit_of_work,
            config=CONFIG,
            observed_at=T0,
        )
        return result

    sync(FeedKind.FINISHED_GOODS, FINISHED_GOODS_ROWS)
    disagreement = sync(FeedKind.RETURNS, RETURNS_ROWS)
    rerun = sync(FeedKind.RETURNS, RETURNS_ROWS)

    assert disagreement.conflicts_open == 1
    assert disagreement.updated == 1
    assert (rerun.updated, rerun.events_logged) == (0, 0)

    with sqlite_unit_of_work() as uow:
        [group] = uow.repositories.conflict_groups.open_for_identifiers(DEFAULT_SCOPE, ["SN1"])
        [item] = uow.repositories.canonical_items.for_identifiers(DEFAULT_SCOPE, ["SN1"])

    assert [entry["source_type"] for entry in group.entries] == ["returns", "finished_goods"]
    assert (item.bucket, item.status, item.revision) == (Bucket.ASIS, "HOLD", 2)

    cleared = sync(FeedKind.FINISHED_GOODS, [])

    assert cleared.identifiers == ("SN1", "SN2")
    assert cleared.conflicts_resolved == 1
    assert cleared.deleted == 1

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.conflict_groups.open_for_identifiers(DEFAULT_SCOPE, ["SN1"]) == []
        remaining = uow.repositories.canonical_items.for_identifiers(DEFAULT_SCOPE, ["SN1", "SN2"])
        disappeared = uow.repositories.change_events.for_identifier(DEFAULT_SCOPE, "SN2")

    assert [item.identifier for item in remaining] == ["SN1"]
    assert [event.change_type for event in disappeared] == [
        ChangeType.APPEARED,
        ChangeType.DISAPPEARED,
    ]


@pytest.mark.integration
def test_concurrent_write_chunks_on_file_database(tmp_path: Path) -> None:
    startup(database_uri=f"sqlite+pysqlite:///{tmp_path / 'inventory.db'}", force=True)
    rows: list[dict[str, object]] = [
        {"Serial #": f"SN{index:03d}", "Model #": "GTE18GMNRWW", "Qty": 1} for index in range(40)
    ]
    config = ReconcileConfig(batch_size=5, read_chunk_size=7, write_concurrency=4)

    try:
        _, result = sync_feed_snapshot(
            DEFAULT_SCOPE,
            FeedKind.INBOUND,
            rows,
            unit_of_work_factory=SqlAlchemyInventoryUnitOfWork,
            config=config,
            observed_at=T0,
        )
        with SqlAlchemyInventoryUnitOfWork() as uow:
            items = uow.repositories.canonical_items.for_identifiers(
                DEFAULT_SCOPE, [str(row["Serial #"]) for row in rows]
            )
    finally:
        shutdown()

    assert (result.appeared, result.events_logged) == (40, 40)
    assert {item.bucket for item in items} == {Bucket.INBOUND}
    assert len(items) == 40
