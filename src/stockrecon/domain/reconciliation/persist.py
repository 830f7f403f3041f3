"""Batched persistence of reconciliation plans.

Responsibilities of this stage:
- write canonical inserts/updates, then superseded-row deletes, per chunk
- open, refresh or resolve conflict groups in the same transaction
- append change events afterwards, best-effort

Every statement is idempotent (natural-key upserts, insert-or-ignore on the
event key), so a retried chunk cannot duplicate history.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from itertools import batched
from typing import TYPE_CHECKING, Protocol

from stockrecon.domain.model import ConflictGroup, ConflictStatus

from .contracts import ConflictAction
from .errors import ReconcilePersistenceError, StoreWriteError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from stockrecon.domain.model import ChangeEvent, Scope
    from stockrecon.domain.ports import InventoryUnitOfWork, InventoryUnitOfWorkFactory

    from .context import RunContext
    from .contracts import ConflictDecision, IdentifierPlan

log = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 250


@dataclass(slots=True)
class PersistenceResult:
    """Summary of persisted changes for one reconciliation run."""

    committed_chunks: int = 0
    appeared: int = 0
    updated: int = 0
    deleted: int = 0
    conflicts_opened: int = 0
    conflicts_refreshed: int = 0
    conflicts_resolved: int = 0
    events_logged: int = 0
    audit_failures: int = 0

    def absorb(self, other: PersistenceResult) -> None:
        self.committed_chunks += other.committed_chunks
        self.appeared += other.appeared
        self.updated += other.updated
        self.deleted += other.deleted
        self.conflicts_opened += other.conflicts_opened
        self.conflicts_refreshed += other.conflicts_refreshed
        self.conflicts_resolved += other.conflicts_resolved
        self.events_logged += other.events_logged
        self.audit_failures += other.audit_failures


class PersistReconciliation(Protocol):
    """Persist identifier plans and report what was committed."""

    def __call__(
        self,
        plans: Sequence[IdentifierPlan],
        *,
        context: RunContext,
    ) -> PersistenceResult: ...


@dataclass(slots=True)
class BatchedWriter:
    """Write plans in chunks of ``batch_size`` identifiers.

    Chunks cover disjoint identifiers; with ``concurrency`` above one they
    are committed in parallel, each in its own unit of work.
    """

    unit_of_work_factory: InventoryUnitOfWorkFactory
    batch_size: int = DEFAULT_BATCH_SIZE
    concurrency: int = 1

    def __call__(
        self,
        plans: Sequence[IdentifierPlan],
        *,
        context: RunContext,
    ) -> PersistenceResult:
        pending = [plan for plan in plans if not plan.is_noop]
        chunks = list(batched(pending, self.batch_size))
        result = PersistenceResult()
        if not chunks:
            return result

        if self.concurrency <= 1 or len(chunks) == 1:
            for index, chunk in enumerate(chunks):
                try:
                    result.absorb(self.write_chunk(chunk, context=context))
                except StoreWriteError as exc:
                    log.exception(
                        "Write chunk %d/%d failed for %s", index + 1, len(chunks), context.scope
                    )
                    raise ReconcilePersistenceError(
                        "Reconciliation aborted while writing", partial=result
                    ) from exc
            return result

        failures: list[StoreWriteError] = []
        with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
            futures = [pool.submit(self.write_chunk, chunk, context=context) for chunk in chunks]
            for future in as_completed(futures):
                try:
                    result.absorb(future.result())
                except StoreWriteError as exc:
                    log.error("Write chunk failed for %s: %s", context.scope, exc)
                    failures.append(exc)
        if failures:
            raise ReconcilePersistenceError(
                "Reconciliation aborted while writing",
                partial=result,
                failed_chunks=len(failures),
            ) from failures[0]
        return result

    def write_chunk(
        self,
        chunk: Sequence[IdentifierPlan],
        *,
        context: RunContext,
    ) -> PersistenceResult:
        """Commit one chunk's canonical and conflict writes, then its events."""

        now = context.now()
        inserts = [plan.insert for plan in chunk if plan.insert is not None]
        updates = [plan.update for plan in chunk if plan.update is not None]
        delete_ids = [item_id for plan in chunk for item_id in plan.delete_ids]
        decisions = [plan.conflict for plan in chunk if plan.conflict is not None]

        result = PersistenceResult(committed_chunks=1)
        with self.unit_of_work_factory() as uow:
            items = uow.repositories.canonical_items
            keyed = [item for item in inserts if item.identifier]
            for batch in batched(keyed, self.batch_size):
                items.upsert_by_natural_key(batch, now=now)
            unkeyed = [item for item in inserts if not item.identifier]
            for batch in batched(unkeyed, self.batch_size):
                items.insert(batch, now=now)
            for batch in batched(updates, self.batch_size):
                items.upsert_by_id(batch, now=now)
            for batch in batched(delete_ids, self.batch_size):
                result.deleted += items.delete_ids(batch)
            self._write_conflicts(uow, decisions, scope=context.scope, now=now, result=result)
            uow.commit()
        result.appeared = len(inserts)
        result.updated = len(updates)

        events = [event for plan in chunk for event in plan.events]
        if events:
            self._append_events(events, context=context, result=result)
        return result

    def _write_conflicts(
        self,
        uow: InventoryUnitOfWork,
        decisions: Sequence[ConflictDecision],
        *,
        scope: Scope,
        now: datetime,
        result: PersistenceResult,
    ) -> None:
        groups = uow.repositories.conflict_groups
        opened = [
            _group_for(decision, scope=scope, now=now)
            for decision in decisions
            if decision.action is ConflictAction.OPEN
        ]
        refreshed = [
            _group_for(decision, scope=scope, now=now)
            for decision in decisions
            if decision.action is ConflictAction.REFRESH
        ]
        resolved = [
            decision.group_id
            for decision in decisions
            if decision.action is ConflictAction.RESOLVE and decision.group_id is not None
        ]
        for batch in batched(opened, self.batch_size):
            groups.upsert_open(batch, now=now)
        for batch in batched(refreshed, self.batch_size):
            groups.refresh(batch, now=now)
        for batch in batched(resolved, self.batch_size):
            groups.resolve(batch, now=now)
        result.conflicts_opened += len(opened)
        result.conflicts_refreshed += len(refreshed)
        result.conflicts_resolved += len(resolved)

    def _append_events(
        self,
        events: Sequence[ChangeEvent],
        *,
        context: RunContext,
        result: PersistenceResult,
    ) -> None:
        try:
            with self.unit_of_work_factory() as uow:
                for batch in batched(events, self.batch_size):
                    result.events_logged += uow.repositories.change_events.append(batch)
                uow.commit()
        except StoreWriteError as exc:
            result.events_logged = 0
            result.audit_failures += len(events)
            log.warning(
                "Could not append %d change events for %s (run %s): %s",
                len(events),
                context.scope,
                context.run_id,
                exc,
            )


def _group_for(decision: ConflictDecision, *, scope: Scope, now: datetime) -> ConflictGroup:
    group = ConflictGroup(
        tenant_id=scope.tenant_id,
        location_id=scope.location_id,
        identifier=decision.identifier,
        entries=[entry.as_dict() for entry in decision.entries],
        status=ConflictStatus.OPEN,
        detected_at=now,
        updated_at=now,
    )
    if decision.group_id is not None:
        group.id = decision.group_id
    return group

