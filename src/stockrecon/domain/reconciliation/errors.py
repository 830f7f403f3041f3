"""Error taxonomy for reconciliation runs.

Adapters translate storage-engine exceptions into these types so the domain
never depends on a concrete driver.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .persist import PersistenceResult


class ReconciliationError(RuntimeError):
    """Base class for reconciliation failures."""


class StoreReadError(ReconciliationError):
    """Raised when source rows or prior canonical state cannot be loaded."""


class StoreWriteError(ReconciliationError):
    """Raised when a canonical or conflict write fails."""


class AuditAppendError(StoreWriteError):
    """Raised when change events cannot be appended to the audit log."""


class ReconcilePersistenceError(ReconciliationError):
    """Aggregate failure reported to callers once a write chunk fails.

    ``partial`` holds what was committed before the failure; re-running the
    same identifiers is safe and resumes from empty diffs on those.
    """

    def __init__(
        self,
        message: str,
        *,
        partial: PersistenceResult,
        failed_chunks: int = 1,
    ) -> None:
        self.partial = partial
        self.failed_chunks = failed_chunks
        super().__init__(
            f"{message} (committed_chunks={partial.committed_chunks}, "
            f"failed_chunks={failed_chunks}, appeared={partial.appeared}, "
            f"updated={partial.updated}, deleted={partial.deleted}, "
            f"events_logged={partial.events_logged})"
        )
