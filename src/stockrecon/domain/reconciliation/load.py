"""Loading stage: read source rows and prior state for a batch of identifiers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import batched
from typing import TYPE_CHECKING, Protocol

from .plan import ReconcileInputs

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stockrecon.domain.model import Scope
    from stockrecon.domain.ports import InventoryUnitOfWorkFactory

log = logging.getLogger(__name__)

DEFAULT_READ_CHUNK_SIZE = 500


class LoadReconcileInputs(Protocol):
    def __call__(self, scope: Scope, identifiers: Sequence[str]) -> ReconcileInputs: ...


@dataclass(slots=True)
class StoreLoader:
    """Read everything a batch needs inside one read-only unit of work.

    Store failures surface as ``StoreReadError`` from the repositories and
    abort the run before any computation happens.
    """

    unit_of_work_factory: InventoryUnitOfWorkFactory
    chunk_size: int = DEFAULT_READ_CHUNK_SIZE

    def __call__(self, scope: Scope, identifiers: Sequence[str]) -> ReconcileInputs:
        inputs = ReconcileInputs()
        if not identifiers:
            return inputs
        with self.unit_of_work_factory() as uow:
            repositories = uow.repositories
            for chunk in batched(identifiers, self.chunk_size):
                for record in repositories.source_records.for_identifiers(scope, chunk):
                    inputs.sources.setdefault(record.identifier, []).append(record)
                for item in repositories.canonical_items.for_identifiers(scope, chunk):
                    inputs.items.setdefault(item.identifier, []).append(item)
                for group in repositories.conflict_groups.open_for_identifiers(scope, chunk):
                    inputs.open_conflicts[group.identifier] = group
        log.debug(
            "Loaded %d source rows and %d canonical items for %d identifiers in %s",
            sum(len(rows) for rows in inputs.sources.values()),
            sum(len(items) for items in inputs.items.values()),
            len(identifiers),
            scope,
        )
        return inputs
