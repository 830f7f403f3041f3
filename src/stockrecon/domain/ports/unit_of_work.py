"""Transaction boundary around the inventory repositories.

A unit of work is entered once. Writes become visible only through
``commit()``; leaving the block without committing discards them. Each
write chunk of a reconciliation run opens its own unit of work, so
implementations must tolerate several being open at once on different
threads.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from stockrecon.domain.ports.persistence import (
        CanonicalItemRepository,
        ChangeEventRepository,
        ConflictGroupRepository,
        SourceRecordRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker for a bundle of repositories sharing one transaction."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None:
        """Make the block's writes durable; raises ``StoreWriteError`` on failure."""
        ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class InventoryRepositories(RepositoryCollection):
    source_records: SourceRecordRepository
    canonical_items: CanonicalItemRepository
    conflict_groups: ConflictGroupRepository
    change_events: ChangeEventRepository


type InventoryUnitOfWork = UnitOfWork[InventoryRepositories]
type InventoryUnitOfWorkFactory = Callable[[], InventoryUnitOfWork]
