"""Per-run state passed explicitly through ingestion and reconciliation.

Nothing here survives between runs: a new ``RunContext`` is built for every
batch, so concurrent runs never share counters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from stockrecon.domain.model import Scope


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class IdentityStats:
    """Observability counters maintained by the identity normalizer."""

    synthesized: int = 0
    duplicates: int = 0


@dataclass(slots=True, kw_only=True)
class RunContext:
    scope: Scope
    run_id: UUID = field(default_factory=uuid4)
    clock: Clock = _utcnow
    identity: IdentityStats = field(default_factory=IdentityStats)
    _synthesis_counters: dict[tuple[str, str], int] = field(
        default_factory=dict[tuple[str, str], int]
    )
    _seen_identifiers: dict[str, set[str]] = field(default_factory=dict[str, set[str]])

    def now(self) -> datetime:
        return self.clock()

    def next_synthesis_index(self, feed: str, grouping_key: str) -> int:
        """Return the next 1-based index for ``(feed, grouping_key)``."""

        key = (feed, grouping_key)
        index = self._synthesis_counters.get(key, 0) + 1
        self._synthesis_counters[key] = index
        return index

    def mark_seen(self, feed: str, identifier: str) -> bool:
        """Record ``identifier`` for ``feed``; False if it was already emitted."""

        seen = self._seen_identifiers.setdefault(feed, set())
        if identifier in seen:
            return False
        seen.add(identifier)
        return True
