"""Initial inventory reconciliation schema.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from stockrecon.adapters.sqlalchemy.mappings import OPEN_CONFLICT_PREDICATE, UTCDateTime

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "source_record",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("location_id", sa.String(64), nullable=False),
        sa.Column("source_type", sa.String(32), nullable=False),
        sa.Column("identifier", sa.String(128), nullable=False),
        sa.Column("bucket", sa.String(32)),
        sa.Column("state", sa.String(64)),
        sa.Column("model", sa.String(128)),
        sa.Column("quantity", sa.Integer()),
        sa.Column("grouping_key", sa.String(128)),
        sa.Column("status", sa.String(128)),
        sa.Column("message", sa.Text()),
        sa.Column("order_code", sa.String(64)),
        sa.Column("last_seen_at", UTCDateTime()),
        sa.Column("raw_payload", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_source_record"),
        sa.UniqueConstraint(
            "tenant_id",
            "location_id",
            "source_type",
            "identifier",
            name="uq_source_record_natural_key",
        ),
    )
    op.create_index(
        "ix_source_record_scope_identifier",
        "source_record",
        ["tenant_id", "location_id", "identifier"],
    )

    op.create_table(
        "canonical_item",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("location_id", sa.String(64), nullable=False),
        sa.Column("identifier", sa.String(128), nullable=False),
        sa.Column("bucket", sa.String(32)),
        sa.Column("state", sa.String(64)),
        sa.Column("source_type", sa.String(32)),
        sa.Column("source_id", sa.String(64)),
        sa.Column("model", sa.String(128)),
        sa.Column("quantity", sa.Integer()),
        sa.Column("grouping_key", sa.String(128)),
        sa.Column("status", sa.String(128)),
        sa.Column("message", sa.Text()),
        sa.Column("order_code", sa.String(64)),
        sa.Column("is_synthetic", sa.Boolean(), nullable=False),
        sa.Column("source_meta", sa.JSON(), nullable=False),
        sa.Column("last_seen_at", UTCDateTime()),
        sa.Column("revision", sa.Integer(), nullable=False),
        sa.Column("created_at", UTCDateTime()),
        sa.Column("updated_at", UTCDateTime()),
        sa.PrimaryKeyConstraint("id", name="pk_canonical_item"),
        sa.UniqueConstraint(
            "tenant_id",
            "location_id",
            "identifier",
            "bucket",
            name="uq_canonical_item_natural_key",
        ),
    )
    op.create_index(
        "ix_canonical_item_scope_identifier",
        "canonical_item",
        ["tenant_id", "location_id", "identifier"],
    )

    op.create_table(
        "conflict_group",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("location_id", sa.String(64), nullable=False),
        sa.Column("identifier", sa.String(128), nullable=False),
        sa.Column("entries", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("detected_at", UTCDateTime()),
        sa.Column("updated_at", UTCDateTime()),
        sa.Column("resolved_at", UTCDateTime()),
        sa.PrimaryKeyConstraint("id", name="pk_conflict_group"),
    )
    op.create_index(
        "uq_conflict_group_open_identifier",
        "conflict_group",
        ["tenant_id", "location_id", "identifier"],
        unique=True,
        sqlite_where=sa.text(OPEN_CONFLICT_PREDICATE),
        postgresql_where=sa.text(OPEN_CONFLICT_PREDICATE),
    )

    op.create_table(
        "change_event",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("event_key", sa.String(64), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("location_id", sa.String(64), nullable=False),
        sa.Column("identifier", sa.String(128), nullable=False),
        sa.Column("change_type", sa.String(32), nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=False),
        sa.Column("field_changed", sa.String(32)),
        sa.Column("old_value", sa.Text()),
        sa.Column("new_value", sa.Text()),
        sa.Column("bucket", sa.String(32)),
        sa.Column("state", sa.String(64)),
        sa.Column("source_type", sa.String(32)),
        sa.Column("source_id", sa.String(64)),
        sa.Column("model", sa.String(128)),
        sa.Column("current_state", sa.JSON()),
        sa.Column("run_id", sa.Uuid()),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_change_event"),
        sa.UniqueConstraint("event_key", name="uq_change_event_event_key"),
    )
    op.create_index(
        "ix_change_event_scope_identifier",
        "change_event",
        ["tenant_id", "location_id", "identifier"],
    )


def downgrade() -> None:
    op.drop_index("ix_change_event_scope_identifier", table_name="change_event")
    op.drop_table("change_event")
    op.drop_index("uq_conflict_group_open_identifier", table_name="conflict_group")
    op.drop_table("conflict_group")
    op.drop_index("ix_canonical_item_scope_identifier", table_name="canonical_item")
    op.drop_table("canonical_item")
    op.drop_index("ix_source_record_scope_identifier", table_name="source_record")
    op.drop_table("source_record")
