from __future__ import annotations

import pytest

from stockrecon.domain.ingestion import replace_feed_snapshot
from stockrecon.domain.model import FeedKind, Scope
from tests.helpers.inventory import InMemoryStore, make_context, make_source


def test_snapshot_upserts_and_removes_orphans(store: InMemoryStore, scope: Scope) -> None:
    store.add_sources(
        [
            make_source("SN1", source_type=FeedKind.RETURNS),
            make_source("SN2", source_type=FeedKind.RETURNS),
            make_source("SN2", source_type=FeedKind.FINISHED_GOODS),
        ]
    )

    result = replace_feed_snapshot(
        [
            make_source("SN2", source_type=FeedKind.RETURNS, quantity=4),
            make_source("SN3", source_type=FeedKind.RETURNS),
        ],
        feed=FeedKind.RETURNS,
        context=make_context(),
        unit_of_work_factory=store.unit_of_work,
    )

    assert (result.stored, result.removed) == (2, 1)
    assert result.touched == frozenset({"SN1", "SN2", "SN3"})
    assert store.source_records.identifiers_for_feed(scope, FeedKind.RETURNS) == {"SN2", "SN3"}
    assert store.source_records.identifiers_for_feed(scope, FeedKind.FINISHED_GOODS) == {"SN2"}
    assert store.commits == 1


def test_snapshot_rejects_records_of_another_feed(store: InMemoryStore) -> None:
    with pytest.raises(ValueError, match="does not belong"):
        replace_feed_snapshot(
            [make_source("SN1", source_type=FeedKind.INBOUND)],
            feed=FeedKind.RETURNS,
            context=make_context(),
            unit_of_work_factory=store.unit_of_work,
        )
    assert store.commits == 0


def test_empty_snapshot_clears_the_feed(store: InMemoryStore, scope: Scope) -> None:
    store.add_sources([make_source("SN1", source_type=FeedKind.STAGING)])

    result = replace_feed_snapshot(
        [],
        feed=FeedKind.STAGING,
        context=make_context(),
        unit_of_work_factory=store.unit_of_work,
    )

    assert result.removed == 1
    assert result.touched == frozenset({"SN1"})
    assert store.source_records.identifiers_for_feed(scope, FeedKind.STAGING) == set()


@pytest.mark.parametrize("feed", ["", "  ", "x" * 33])
def test_snapshot_rejects_unstorable_feed_names(store: InMemoryStore, feed: str) -> None:
    with pytest.raises(ValueError, match="Feed name"):
        replace_feed_snapshot(
            [],
            feed=feed,
            context=make_context(),
            unit_of_work_factory=store.unit_of_work,
        )
    assert store.commits == 0
