"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
    CanonicalItemRepository,
    ChangeEventRepository,
    ConflictGroupRepository,
    SourceRecordRepository,
)
from .unit_of_work import (
    InventoryRepositories,
    InventoryUnitOfWork,
    InventoryUnitOfWorkFactory,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "CanonicalItemRepository",
    "ChangeEventRepository",
    "ConflictGroupRepository",
    "InventoryRepositories",
    "InventoryUnitOfWork",
    "InventoryUnitOfWorkFactory",
    "RepositoryCollection",
    "SourceRecordRepository",
    "UnitOfWork",
]
