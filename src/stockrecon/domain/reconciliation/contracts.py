"""Shared value types passed between the reconciliation stages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from stockrecon.domain.model import CanonicalItem, ChangeEvent, ConflictEntry

    from .resolve import CanonicalView


class ConflictAction(StrEnum):
    OPEN = "open"
    REFRESH = "refresh"
    # open group already matches the current divergence
    KEEP = "keep"
    RESOLVE = "resolve"


@dataclass(frozen=True, slots=True, kw_only=True)
class ConflictDecision:
    """What the writer must do with the conflict group of one identifier."""

    action: ConflictAction
    identifier: str
    entries: tuple[ConflictEntry, ...] = ()
    # id of the currently open group for REFRESH and RESOLVE
    group_id: UUID | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentifierPlan:
    """Events and writes computed for one identifier in one run."""

    identifier: str
    view: CanonicalView | None = None
    events: tuple[ChangeEvent, ...] = ()
    insert: CanonicalItem | None = None
    update: CanonicalItem | None = None
    delete_ids: tuple[UUID, ...] = ()
    conflict: ConflictDecision | None = None

    @property
    def is_noop(self) -> bool:
        return (
            not self.events
            and self.insert is None
            and self.update is None
            and not self.delete_ids
            and (self.conflict is None or self.conflict.action is ConflictAction.KEEP)
        )

    @property
    def has_open_conflict(self) -> bool:
        return self.conflict is not None and self.conflict.action is not ConflictAction.RESOLVE
