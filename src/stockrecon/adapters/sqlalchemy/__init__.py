"""SQLAlchemy adapter package for stockrecon."""

from __future__ import annotations

from .mappings import (
    UTCDateTime,
    canonical_item_table,
    change_event_table,
    conflict_group_table,
    mapper_registry,
    source_record_table,
    start_mappers,
)
from .repositories import (
    SqlAlchemyCanonicalItemRepository,
    SqlAlchemyChangeEventRepository,
    SqlAlchemyConflictGroupRepository,
    SqlAlchemySourceRecordRepository,
)

__all__ = [
    "SqlAlchemyCanonicalItemRepository",
    "SqlAlchemyChangeEventRepository",
    "SqlAlchemyConflictGroupRepository",
    "SqlAlchemySourceRecordRepository",
    "UTCDateTime",
    "canonical_item_table",
    "change_event_table",
    "conflict_group_table",
    "mapper_registry",
    "source_record_table",
    "start_mappers",
]
