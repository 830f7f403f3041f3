"""SQLAlchemy table metadata and imperative mappings for the inventory model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import Final

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
    text,
)

from stockrecon.domain.model import (
    CanonicalItem,
    ChangeType,
    ConflictGroup,
    ConflictStatus,
    SourceRecord,
)

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]

OPEN_CONFLICT_PREDICATE: Final[str] = "status = 'open'"


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _enum_values(enum_cls: type[ChangeType] | type[ConflictStatus]) -> list[str]:
    return [member.value for member in enum_cls]


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


source_record_table = Table(
    "source_record",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True),
    Column("tenant_id", String(64), nullable=False),
    Column("location_id", String(64), nullable=False),
    Column("source_type", String(32), nullable=False),
    Column("identifier", String(128), nullable=False),
    Column("bucket", String(32)),
    Column("state", String(64)),
    Column("model", String(128)),
    Column("quantity", Integer),
    Column("grouping_key", String(128)),
    Column("status", String(128)),
    Column("message", Text),
    Column("order_code", String(64)),
    Column("last_seen_at", UTCDateTime()),
    Column("raw_payload", JSON, nullable=False, default=dict),
    UniqueConstraint(
        "tenant_id",
        "location_id",
        "source_type",
        "identifier",
        name="uq_source_record_natural_key",
    ),
    Index("ix_source_record_scope_identifier", "tenant_id", "location_id", "identifier"),
)

canonical_item_table = Table(
    "canonical_item",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True),
    Column("tenant_id", String(64), nullable=False),
    Column("location_id", String(64), nullable=False),
    Column("identifier", String(128), nullable=False),
    Column("bucket", String(32)),
    Column("state", String(64)),
    Column("source_type", String(32)),
    Column("source_id", String(64)),
    Column("model", String(128)),
    Column("quantity", Integer),
    Column("grouping_key", String(128)),
    Column("status", String(128)),
    Column("message", Text),
    Column("order_code", String(64)),
    Column("is_synthetic", Boolean, nullable=False, default=False),
    Column("source_meta", JSON, nullable=False, default=dict),
    Column("last_seen_at", UTCDateTime()),
    Column("revision", Integer, nullable=False, default=1),
    Column("created_at", UTCDateTime()),
    Column("updated_at", UTCDateTime()),
    UniqueConstraint(
        "tenant_id",
        "location_id",
        "identifier",
        "bucket",
        name="uq_canonical_item_natural_key",
    ),
    Index("ix_canonical_item_scope_identifier", "tenant_id", "location_id", "identifier"),
)

conflict_group_table = Table(
    "conflict_group",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True),
    Column("tenant_id", String(64), nullable=False),
    Column("location_id", String(64), nullable=False),
    Column("identifier", String(128), nullable=False),
    Column("entries", JSON, nullable=False, default=list),
    Column(
        "status",
        Enum(
            ConflictStatus,
            native_enum=False,
            values_callable=_enum_values,
            length=16,
        ),
        nullable=False,
    ),
    Column("detected_at", UTCDateTime()),
    Column("updated_at", UTCDateTime()),
    Column("resolved_at", UTCDateTime()),
    Index(
        "uq_conflict_group_open_identifier",
        "tenant_id",
        "location_id",
        "identifier",
        unique=True,
        sqlite_where=text(OPEN_CONFLICT_PREDICATE),
        postgresql_where=text(OPEN_CONFLICT_PREDICATE),
    ),
)

change_event_table = Table(
    "change_event",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True),
    Column("event_key", String(64), nullable=False),
    Column("tenant_id", String(64), nullable=False),
    Column("location_id", String(64), nullable=False),
    Column("identifier", String(128), nullable=False),
    Column(
        "change_type",
        Enum(ChangeType, native_enum=False, values_callable=_enum_values, length=32),
        nullable=False,
    ),
    Column("item_id", UUIDColumnType, nullable=False),
    Column("field_changed", String(32)),
    Column("old_value", Text),
    Column("new_value", Text),
    Column("bucket", String(32)),
    Column("state", String(64)),
    Column("source_type", String(32)),
    Column("source_id", String(64)),
    Column("model", String(128)),
    Column("current_state", JSON),
    Column("run_id", UUIDColumnType),
    Column("created_at", UTCDateTime(), nullable=False),
    UniqueConstraint("event_key", name="uq_change_event_event_key"),
    Index("ix_change_event_scope_identifier", "tenant_id", "location_id", "identifier"),
)


@cache
def start_mappers() -> orm.registry:
    """Map the inventory dataclasses onto their tables (idempotent)."""

    log.info("Starting SQLAlchemy mappers")
    mapper_registry.map_imperatively(SourceRecord, source_record_table)
    mapper_registry.map_imperatively(CanonicalItem, canonical_item_table)
    mapper_registry.map_imperatively(ConflictGroup, conflict_group_table)
    return mapper_registry
