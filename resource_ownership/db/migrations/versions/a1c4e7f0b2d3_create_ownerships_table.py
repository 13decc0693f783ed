"""Create ownerships table

Revision ID: a1c4e7f0b2d3
Revises:
Create Date: 2026-10-19

Join table for multiple ownership mode. One row per (resource, owner) pair,
enforced by the ownership_unique constraint.
"""
from __future__ import annotations

import os

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "a1c4e7f0b2d3"
down_revision = None
branch_labels = None
depends_on = None

TABLE_NAME = os.getenv("OWNERSHIP_TABLE_NAME", "ownerships")


def upgrade() -> None:
    op.create_table(
        TABLE_NAME,
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        # Owned resource
        sa.Column("ownable_type", sa.String(255), nullable=False),
        sa.Column("ownable_id", sa.String(64), nullable=False),
        # Owner
        sa.Column("owner_type", sa.String(255), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        # Role and permission overrides
        sa.Column("role", sa.String(64), nullable=True),
        sa.Column("permissions", sa.JSON, nullable=True),
        # Timestamps
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "ownable_type", "ownable_id", "owner_type", "owner_id", name="ownership_unique"
        ),
    )

    op.create_index("ix_ownerships_ownable", TABLE_NAME, ["ownable_type", "ownable_id"])
    op.create_index("ix_ownerships_owner", TABLE_NAME, ["owner_type", "owner_id"])
    op.create_index(
        "ix_ownerships_ownable_role", TABLE_NAME, ["ownable_type", "ownable_id", "role"]
    )


def downgrade() -> None:
    op.drop_index("ix_ownerships_ownable_role", table_name=TABLE_NAME)
    op.drop_index("ix_ownerships_owner", table_name=TABLE_NAME)
    op.drop_index("ix_ownerships_ownable", table_name=TABLE_NAME)
    op.drop_table(TABLE_NAME)
