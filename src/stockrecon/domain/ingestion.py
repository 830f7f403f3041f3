"""Application service for replacing one feed's snapshot of Source Records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import batched
from typing import TYPE_CHECKING

DEFAULT_INGEST_BATCH_SIZE = 250
# width of the stored source_type columns
MAX_FEED_NAME_LENGTH = 32

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stockrecon.domain.model import SourceRecord
    from stockrecon.domain.ports import InventoryUnitOfWorkFactory
    from stockrecon.domain.reconciliation import RunContext

log = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestResult:
    """Outcome of ingesting one feed snapshot."""

    stored: int = 0
    removed: int = 0
    synthesized: int = 0
    duplicates: int = 0
    malformed: int = 0
    touched: frozenset[str] = field(default_factory=frozenset[str])


def replace_feed_snapshot(
    records: Sequence[SourceRecord],
    *,
    feed: str,
    context: RunContext,
    unit_of_work_factory: InventoryUnitOfWorkFactory,
    batch_size: int = DEFAULT_INGEST_BATCH_SIZE,
) -> IngestResult:
    """Upsert ``records`` and drop this feed's rows that are no longer reported.

    Returns the touched identifiers (present plus orphaned) so callers can
    reconcile exactly the affected set.
    """

    if not feed.strip() or len(feed) > MAX_FEED_NAME_LENGTH:
        raise ValueError(f"Feed name {feed!r} must be 1 to {MAX_FEED_NAME_LENGTH} characters")
    scope = context.scope
    for record in records:
        if record.source_type != feed or record.scope != scope:
            raise ValueError(
                f"Record {record.identifier!r} does not belong to feed {feed!r} in {scope}"
            )

    present = {record.identifier for record in records}
    with unit_of_work_factory() as uow:
        repository = uow.repositories.source_records
        orphaned = sorted(repository.identifiers_for_feed(scope, feed) - present)
        for batch in batched(records, batch_size):
            repository.upsert(batch)
        removed = 0
        for batch in batched(orphaned, batch_size):
            removed += repository.delete_for_feed(scope, feed, batch)
        uow.commit()

    log.info(
        "Stored %d %s rows for %s, removed %d orphans", len(records), feed, scope, removed
    )
    return IngestResult(
        stored=len(records),
        removed=removed,
        touched=frozenset(present | set(orphaned)),
    )
