"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class FeedKind(StrEnum):
    """Upstream feed a Source Record was observed in."""

    STAGING = "staging"
    RETURNS = "returns"
    FINISHED_GOODS = "finished_goods"
    INBOUND = "inbound"
    BACKHAUL = "backhaul"


class Bucket(StrEnum):
    """Coarse inventory category."""

    ASIS = "ASIS"
    FG = "FG"
    INBOUND = "INBOUND"
    BACKHAUL = "BACKHAUL"
    STA = "STA"
    UNKNOWN = "UNKNOWN"


class ChangeType(StrEnum):
    APPEARED = "appeared"
    DISAPPEARED = "disappeared"
    BUCKET_CHANGED = "bucket_changed"
    STATE_CHANGED = "state_changed"
    SOURCE_CHANGED = "source_changed"
    STATUS_CHANGED = "status_changed"
    QUANTITY_CHANGED = "quantity_changed"
    GROUPING_CHANGED = "grouping_changed"


class ConflictStatus(StrEnum):
    OPEN = "open"
    RESOLVED = "resolved"


STAGED_STATE = "staged"
ON_HAND_STATE = "on_hand"
