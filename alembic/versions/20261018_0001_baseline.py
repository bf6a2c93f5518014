"""Baseline schema for creation runs and their events

Revision ID: 20261018_0001
Revises: 
Create Date: 2026-10-18 00:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None

_STAGES = "'validating','generating_image','uploading_image','uploading_metadata','minting','succeeded','failed'"


def upgrade() -> None:
    op.create_table(
        "runs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("stage", sa.String(), nullable=False),
        sa.Column("image_cid", sa.String(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("metadata_cid", sa.String(), nullable=True),
        sa.Column("token_uri", sa.Text(), nullable=True),
        sa.Column("tx_hash", sa.String(), nullable=True),
        sa.Column("failed_stage", sa.String(), nullable=True),
        sa.Column("error_code", sa.String(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(f"stage in ({_STAGES})", name="runs_stage_check"),
    )
    op.create_index("runs_updated_idx", "runs", ["updated_at"], unique=False)
    op.create_index("runs_stage_idx", "runs", ["stage"], unique=False)

    op.create_table(
        "events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("run_id", sa.String(length=36), sa.ForeignKey("runs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("stage", sa.String(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("level", sa.String(), nullable=False, server_default=sa.text("'info'")),
        sa.Column("payload_json", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.CheckConstraint("level in ('debug','info','warn','error')", name="events_level_check"),
    )
    op.create_index("events_run_seq_idx", "events", ["run_id", "seq"], unique=False)


def downgrade() -> None:
    op.drop_index("events_run_seq_idx", table_name="events")
    op.drop_table("events")
    op.drop_index("runs_stage_idx", table_name="runs")
    op.drop_index("runs_updated_idx", table_name="runs")
    op.drop_table("runs")
