"""Orchestrator for one reconciliation run.

The engine composes stage interfaces and does not prescribe concrete
adapters: the loader and writer are injected, typically built from a
SQLAlchemy unit of work by ``build_engine``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .load import DEFAULT_READ_CHUNK_SIZE, StoreLoader
from .persist import DEFAULT_BATCH_SIZE, BatchedWriter
from .plan import build_plans
from .precedence import DEFAULT_POLICY, PrecedencePolicy

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from stockrecon.domain.ports import InventoryUnitOfWorkFactory

    from .context import RunContext
    from .load import LoadReconcileInputs
    from .persist import PersistReconciliation

log = logging.getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class ReconcileResult:
    """Aggregate counts reported to callers after a successful run."""

    run_id: UUID
    identifiers: tuple[str, ...] = ()
    events_logged: int = 0
    appeared: int = 0
    updated: int = 0
    deleted: int = 0
    conflicts_open: int = 0
    conflicts_resolved: int = 0
    audit_failures: int = 0


def normalize_identifiers(identifiers: Iterable[str]) -> tuple[str, ...]:
    return tuple(sorted({text for value in identifiers if (text := value.strip())}))


@dataclass(slots=True)
class ReconciliationEngine:
    """Run load, plan and persist for an explicit set of identifiers."""

    load: LoadReconcileInputs
    persist: PersistReconciliation
    policy: PrecedencePolicy = field(default=DEFAULT_POLICY)
    compute_workers: int = 1

    def reconcile(self, identifiers: Iterable[str], *, context: RunContext) -> ReconcileResult:
        batch = normalize_identifiers(identifiers)
        result = ReconcileResult(run_id=context.run_id, identifiers=batch)
        if not batch:
            return result

        log.info(
            "Reconciling %d identifiers for %s (run %s)", len(batch), context.scope, context.run_id
        )
        inputs = self.load(context.scope, batch)
        plans = build_plans(
            batch,
            inputs,
            context=context,
            policy=self.policy,
            workers=self.compute_workers,
        )
        persisted = self.persist(plans, context=context)

        result.events_logged = persisted.events_logged
        result.appeared = persisted.appeared
        result.updated = persisted.updated
        result.deleted = persisted.deleted
        result.conflicts_open = sum(1 for plan in plans if plan.has_open_conflict)
        result.conflicts_resolved = persisted.conflicts_resolved
        result.audit_failures = persisted.audit_failures
        log.info(
            "Reconciled %s (run %s): events=%d appeared=%d updated=%d deleted=%d "
            "conflicts_open=%d conflicts_resolved=%d audit_failures=%d",
            context.scope,
            context.run_id,
            result.events_logged,
            result.appeared,
            result.updated,
            result.deleted,
            result.conflicts_open,
            result.conflicts_resolved,
            result.audit_failures,
        )
        return result


def build_engine(
    unit_of_work_factory: InventoryUnitOfWorkFactory,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    write_concurrency: int = 1,
    compute_workers: int = 1,
    policy: PrecedencePolicy = DEFAULT_POLICY,
) -> ReconciliationEngine:
    return ReconciliationEngine(
        load=StoreLoader(unit_of_work_factory, chunk_size=read_chunk_size),
        persist=BatchedWriter(
            unit_of_work_factory,
            batch_size=batch_size,
            concurrency=write_concurrency,
        ),
        policy=policy,
        compute_workers=compute_workers,
    )
