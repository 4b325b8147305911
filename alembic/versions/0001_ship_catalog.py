"""ship catalog tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

sync_status = sa.Enum("running", "success", "partial", "failed", name="sync_status")


def upgrade():
    op.create_table(
        "ships",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("fleetyards_id", sa.String(64), nullable=False, unique=True),
        sa.Column("slug", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sc_identifier", sa.String(255), nullable=True),
        sa.Column("manufacturer_name", sa.String(255), nullable=False),
        sa.Column("manufacturer_code", sa.String(64), nullable=False),
        sa.Column("manufacturer_slug", sa.String(255), nullable=False),
        sa.Column("classification", sa.String(100), nullable=False),
        sa.Column("classification_label", sa.String(100), nullable=False),
        sa.Column("focus", sa.String(100), nullable=False),
        sa.Column("size", sa.String(50), nullable=False),
        sa.Column("production_status", sa.String(50), nullable=False),
        sa.Column("crew_min", sa.Integer(), nullable=False),
        sa.Column("crew_max", sa.Integer(), nullable=False),
        sa.Column("cargo", sa.Float(), nullable=False),
        sa.Column("length", sa.Float(), nullable=False),
        sa.Column("beam", sa.Float(), nullable=False),
        sa.Column("height", sa.Float(), nullable=False),
        sa.Column("mass", sa.Float(), nullable=False),
        sa.Column("scm_speed", sa.Float(), nullable=True),
        sa.Column("hydrogen_fuel_tank_size", sa.Float(), nullable=True),
        sa.Column("quantum_fuel_tank_size", sa.Float(), nullable=True),
        sa.Column("pledge_price", sa.Float(), nullable=True),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("store_url", sa.String(2048), nullable=True),
        sa.Column("images", JSONType, nullable=False),
        sa.Column("synced_at", sa.DateTime(), nullable=False),
        sa.Column("sync_version", sa.Integer(), nullable=False),
        sa.Column("fleetyards_updated_at", sa.String(64), nullable=False),
        sa.Column("is_stale", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_ships_name", "ships", ["name"])
    op.create_index("idx_ship_manufacturer_code", "ships", ["manufacturer_code"])
    op.create_index("idx_ship_production_status", "ships", ["production_status"])
    op.create_index("idx_ship_classification", "ships", ["classification"])
    op.create_index("idx_ship_size", "ships", ["size"])
    op.create_index("idx_ship_manufacturer_size", "ships", ["manufacturer_code", "size"])
    op.create_index("idx_ship_sync_version", "ships", ["sync_version"])

    op.create_table(
        "ship_sync_runs",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column("sync_version", sa.Integer(), nullable=False, unique=True),
        sa.Column("status", sync_status, nullable=False),
        sa.Column("stale_policy", sa.String(20), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("ship_count", sa.Integer(), nullable=False),
        sa.Column("new_ships", sa.Integer(), nullable=False),
        sa.Column("updated_ships", sa.Integer(), nullable=False),
        sa.Column("unchanged_ships", sa.Integer(), nullable=False),
        sa.Column("skipped_ships", sa.Integer(), nullable=False),
        sa.Column("stale_ships", sa.Integer(), nullable=False),
        sa.Column("pages_processed", sa.Integer(), nullable=False),
        sa.Column("errors", JSONType, nullable=False),
    )
    op.create_index("ix_ship_sync_runs_status", "ship_sync_runs", ["status"])
    op.create_index("ix_ship_sync_runs_started_at", "ship_sync_runs", ["started_at"])
    op.create_index("idx_sync_run_status_started", "ship_sync_runs", ["status", "started_at"])


def downgrade():
    op.drop_table("ship_sync_runs")
    op.drop_table("ships")
    sync_status.drop(op.get_bind(), checkfirst=True)
