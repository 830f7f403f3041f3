"""Reconciliation core: derive canonical inventory from overlapping feeds.

Layered flow for one batch of identifiers:
1) load source rows, canonical items and open conflicts
2) resolve one canonical view per identifier
3) detect feed disagreement and decide the conflict group action
4) diff the view against persisted state into events and writes
5) persist canonical and conflict writes in chunks, then append events
"""

from __future__ import annotations

from .context import IdentityStats, RunContext
from .contracts import ConflictAction, ConflictDecision, IdentifierPlan
from .engine import ReconcileResult, ReconciliationEngine, build_engine
from .errors import (
    AuditAppendError,
    ReconcilePersistenceError,
    ReconciliationError,
    StoreReadError,
    StoreWriteError,
)
from .persist import BatchedWriter, PersistenceResult
from .precedence import DEFAULT_POLICY, PrecedencePolicy
from .resolve import CanonicalView, resolve_canonical

__all__ = [
    "DEFAULT_POLICY",
    "AuditAppendError",
    "BatchedWriter",
    "CanonicalView",
    "ConflictAction",
    "ConflictDecision",
    "IdentifierPlan",
    "IdentityStats",
    "PersistenceResult",
    "PrecedencePolicy",
    "ReconcilePersistenceError",
    "ReconcileResult",
    "ReconciliationEngine",
    "ReconciliationError",
    "RunContext",
    "StoreReadError",
    "StoreWriteError",
    "build_engine",
    "resolve_canonical",
]
