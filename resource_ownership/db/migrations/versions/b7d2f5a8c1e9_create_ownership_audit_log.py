"""Create ownership_audit_log table

Revision ID: b7d2f5a8c1e9
Revises: a1c4e7f0b2d3
Create Date: 2026-10-19

Audit trail of published ownership events with before/after snapshots.
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "b7d2f5a8c1e9"
down_revision = "a1c4e7f0b2d3"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "ownership_audit_log",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "ts",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        # Actor columns
        sa.Column("actor_type", sa.String(length=255), nullable=True),
        sa.Column("actor_id", sa.String(length=64), nullable=True),
        # Action column
        sa.Column(
            "action",
            sa.Enum(
                "created", "updated", "deleted", "transferred",
                name="ownership_audit_action",
                create_constraint=True,
            ),
            nullable=False,
        ),
        # Entity columns
        sa.Column("entity_kind", sa.String(length=255), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        # State columns (JSON)
        sa.Column("before", sa.JSON, nullable=True),
        sa.Column("after", sa.JSON, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("event_id", sa.String(length=36), nullable=True),
    )

    op.create_index("ix_ownership_audit_log_ts", "ownership_audit_log", ["ts"])
    op.create_index("ix_ownership_audit_log_action", "ownership_audit_log", ["action"])
    op.create_index("ix_ownership_audit_log_actor_id", "ownership_audit_log", ["actor_id"])
    op.create_index("ix_ownership_audit_log_entity_kind", "ownership_audit_log", ["entity_kind"])
    op.create_index("ix_ownership_audit_log_entity_id", "ownership_audit_log", ["entity_id"])
    op.create_index("ix_ownership_audit_log_event_id", "ownership_audit_log", ["event_id"])
    op.create_index(
        "ix_ownership_audit_entity", "ownership_audit_log", ["entity_kind", "entity_id"]
    )
    op.create_index(
        "ix_ownership_audit_actor", "ownership_audit_log", ["actor_type", "actor_id"]
    )
    op.create_index(
        "ix_ownership_audit_entity_ts", "ownership_audit_log", ["entity_kind", "entity_id", "ts"]
    )


def downgrade() -> None:
    op.drop_index("ix_ownership_audit_entity_ts", table_name="ownership_audit_log")
    op.drop_index("ix_ownership_audit_actor", table_name="ownership_audit_log")
    op.drop_index("ix_ownership_audit_entity", table_name="ownership_audit_log")
    op.drop_index("ix_ownership_audit_log_event_id", table_name="ownership_audit_log")
    op.drop_index("ix_ownership_audit_log_entity_id", table_name="ownership_audit_log")
    op.drop_index("ix_ownership_audit_log_entity_kind", table_name="ownership_audit_log")
    op.drop_index("ix_ownership_audit_log_actor_id", table_name="ownership_audit_log")
    op.drop_index("ix_ownership_audit_log_action", table_name="ownership_audit_log")
    op.drop_index("ix_ownership_audit_log_ts", table_name="ownership_audit_log")
    op.drop_table("ownership_audit_log")
    sa.Enum(name="ownership_audit_action").drop(op.get_bind(), checkfirst=True)
