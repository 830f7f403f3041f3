"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from stockrecon.adapters.feeds import translate_feed_rows
from stockrecon.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyInventoryUnitOfWork,
    is_started,
    startup,
)
from stockrecon.config import get_reconcile_config
from stockrecon.domain.ingestion import IngestResult, replace_feed_snapshot
from stockrecon.domain.reconciliation import ReconcileResult, RunContext, build_engine

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime

    from stockrecon.config import ReconcileConfig
    from stockrecon.domain.model import FeedKind, Scope
    from stockrecon.domain.ports import InventoryUnitOfWorkFactory


log = getLogger(__name__)


def _resolve_unit_of_work(
    factory: InventoryUnitOfWorkFactory | None,
) -> InventoryUnitOfWorkFactory:
    if factory is not None:
        return factory
    if not is_started():
        startup()
    return SqlAlchemyInventoryUnitOfWork


def reconcile_identifiers(
    scope: Scope,
    identifiers: Iterable[str],
    *,
    unit_of_work_factory: InventoryUnitOfWorkFactory | None = None,
    config: ReconcileConfig | None = None,
    context: RunContext | None = None,
) -> ReconcileResult:
    """Reconcile an explicit set of identifiers within ``scope``."""

    effective_uow = _resolve_unit_of_work(unit_of_work_factory)
    settings = config or get_reconcile_config()
    run_context = context or RunContext(scope=scope)
    if run_context.scope != scope:
        raise ValueError(f"Run context scope {run_context.scope} does not match {scope}")

    engine = build_engine(
        effective_uow,
        batch_size=settings.batch_size,
        read_chunk_size=settings.read_chunk_size,
        write_concurrency=settings.write_concurrency,
        compute_workers=settings.compute_workers,
    )
    return engine.reconcile(identifiers, context=run_context)


def ingest_feed_snapshot(
    scope: Scope,
    feed: FeedKind | str,
    rows: Iterable[Mapping[str, object]],
    *,
    unit_of_work_factory: InventoryUnitOfWorkFactory | None = None,
    config: ReconcileConfig | None = None,
    context: RunContext | None = None,
    observed_at: datetime | None = None,
) -> IngestResult:
    """Replace ``feed``'s Source Records in ``scope`` with the rows of one snapshot."""

    effective_uow = _resolve_unit_of_work(unit_of_work_factory)
    settings = config or get_reconcile_config()
    run_context = context or RunContext(scope=scope)
    translation = translate_feed_rows(
        rows, feed=feed, context=run_context, observed_at=observed_at
    )
    result = replace_feed_snapshot(
        translation.records,
        feed=str(feed),
        context=run_context,
        unit_of_work_factory=effective_uow,
        batch_size=settings.batch_size,
    )
    result.synthesized = translation.synthesized
    result.duplicates = translation.duplicates
    result.malformed = translation.malformed
    log.info(
        f"Ingested {feed} snapshot for {scope}: stored={result.stored}, "
        f"removed={result.removed}, synthesized={result.synthesized}, "
        f"duplicates={result.duplicates}, malformed={result.malformed}"
    )
    return result


def sync_feed_snapshot(
    scope: Scope,
    feed: FeedKind | str,
    rows: Iterable[Mapping[str, object]],
    *,
    unit_of_work_factory: InventoryUnitOfWorkFactory | None = None,
    config: ReconcileConfig | None = None,
    observed_at: datetime | None = None,
) -> tuple[IngestResult, ReconcileResult]:
    """Ingest one feed snapshot, then reconcile every identifier it touched."""

    effective_uow = _resolve_unit_of_work(unit_of_work_factory)
    settings = config or get_reconcile_config()
    run_context = RunContext(scope=scope)
    ingested = ingest_feed_snapshot(
        scope,
        feed,
        rows,
        unit_of_work_factory=effective_uow,
        config=settings,
        context=run_context,
        observed_at=observed_at,
    )
    reconciled = reconcile_identifiers(
        scope,
        ingested.touched,
        unit_of_work_factory=effective_uow,
        config=settings,
        context=run_context,
    )
    return ingested, reconciled
