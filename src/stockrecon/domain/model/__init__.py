"""Public domain model surface."""

from __future__ import annotations

from stockrecon.domain.model.audit import ChangeEvent, change_event_key
from stockrecon.domain.model.conflict import ConflictEntry, ConflictGroup
from stockrecon.domain.model.enums import (
    ON_HAND_STATE,
    STAGED_STATE,
    Bucket,
    ChangeType,
    ConflictStatus,
    FeedKind,
)
from stockrecon.domain.model.inventory import CanonicalItem, SourceRecord, new_id
from stockrecon.domain.model.scope import Scope

__all__ = [  # noqa: RUF022
    # records
    "SourceRecord",
    "CanonicalItem",
    "ConflictEntry",
    "ConflictGroup",
    "ChangeEvent",
    "change_event_key",
    "new_id",
    # scope
    "Scope",
    # enums
    "Bucket",
    "ChangeType",
    "ConflictStatus",
    "FeedKind",
    "ON_HAND_STATE",
    "STAGED_STATE",
]
