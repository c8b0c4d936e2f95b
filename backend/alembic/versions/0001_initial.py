"""reservation windows, units, bookings

Revision ID: 0001
Revises:
Create Date: 2025-01-01 00:00:00
"""
from alembic import op
import sqlalchemy as sa


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "reservation_windows",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "kind",
            sa.Enum("previsit", "move", "visit"),
            nullable=False,
            server_default=sa.text("'previsit'"),
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("date_begin", sa.Text(), nullable=False),
        sa.Column("date_end", sa.Text(), nullable=False),
        sa.Column("time_first", sa.Text(), nullable=False),
        sa.Column("time_last", sa.Text(), nullable=False),
        sa.Column("time_unit", sa.Integer(), nullable=False),
        sa.Column("max_limit", sa.Integer()),
        sa.Column("created_at", sa.Text(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.Text(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "units",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("dong", sa.Text(), nullable=False),
        sa.Column("ho", sa.Text(), nullable=False),
        sa.Column("unit_type", sa.Text()),
        sa.Column("contractor_name", sa.Text()),
        sa.Column("contractor_phone", sa.Text()),
        sa.UniqueConstraint("dong", "ho"),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "window_id",
            sa.Integer(),
            sa.ForeignKey("reservation_windows.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("slot_date", sa.Text(), nullable=False),
        sa.Column("slot_time", sa.Text(), nullable=False),
        sa.Column("subject_id", sa.Integer(), nullable=False),
        sa.Column("contact_name", sa.Text(), nullable=False),
        sa.Column("contact_phone", sa.Text(), nullable=False),
        sa.Column("memo", sa.Text()),
        sa.Column("category", sa.Text()),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'active'")),
        sa.Column("cancel_reason", sa.Text()),
        sa.Column("cancelled_at", sa.Text()),
        sa.Column("created_at", sa.Text(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index(
        "ux_bookings_active_subject_slot",
        "bookings",
        ["window_id", "subject_id", "slot_date", "slot_time"],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )
    op.create_index("ix_bookings_window_slot", "bookings", ["window_id", "slot_date", "slot_time"])


def downgrade():
    op.drop_index("ix_bookings_window_slot", table_name="bookings")
    op.drop_index("ux_bookings_active_subject_slot", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("units")
    op.drop_table("reservation_windows")
