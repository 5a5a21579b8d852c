"""create availability slots, availability settings and sessions tables

Revision ID: 3f2a9c7d1e04
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f2a9c7d1e04"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "availability_slots",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("expert_id", sa.String(length=36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("is_booked", sa.Boolean(), nullable=False),
        sa.Column("booked_session_id", sa.String(length=36), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False),
        sa.Column("recurrence_pattern", sa.String(length=20), nullable=False),
        sa.Column("recur_until", sa.Date(), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("booked_session_id"),
        sa.UniqueConstraint("expert_id", "date", "start_time", name="uq_availability_slots_expert_start"),
    )
    op.create_index(op.f("ix_availability_slots_id"), "availability_slots", ["id"], unique=False)
    op.create_index(op.f("ix_availability_slots_expert_id"), "availability_slots", ["expert_id"], unique=False)
    op.create_index(op.f("ix_availability_slots_is_booked"), "availability_slots", ["is_booked"], unique=False)
    op.create_index(
        "ix_availability_slots_expert_date", "availability_slots", ["expert_id", "date"], unique=False
    )

    op.create_table(
        "availability_settings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("expert_id", sa.String(length=36), nullable=False),
        sa.Column("offers_free_sessions", sa.Boolean(), nullable=False),
        sa.Column("free_session_duration", sa.Integer(), nullable=False),
        sa.Column("default_paid_duration", sa.Integer(), nullable=False),
        sa.Column("default_paid_price", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("buffer_minutes", sa.Integer(), nullable=False),
        sa.Column("advance_booking_days", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_availability_settings_id"), "availability_settings", ["id"], unique=False)
    op.create_index(
        op.f("ix_availability_settings_expert_id"), "availability_settings", ["expert_id"], unique=True
    )

    op.create_table(
        "sessions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("expert_id", sa.String(length=36), nullable=False),
        sa.Column("client_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("meeting_link", sa.String(length=255), nullable=True),
        sa.Column("source_slot_id", sa.String(length=36), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=500), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["source_slot_id"], ["availability_slots.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("meeting_link"),
    )
    op.create_index(op.f("ix_sessions_id"), "sessions", ["id"], unique=False)
    op.create_index(op.f("ix_sessions_status"), "sessions", ["status"], unique=False)
    op.create_index("ix_sessions_expert_scheduled_at", "sessions", ["expert_id", "scheduled_at"], unique=False)
    op.create_index("ix_sessions_client_scheduled_at", "sessions", ["client_id", "scheduled_at"], unique=False)
    # At most one non-cancelled session per slot
    op.create_index(
        "uq_sessions_active_source_slot",
        "sessions",
        ["source_slot_id"],
        unique=True,
        postgresql_where=sa.text("status != 'cancelled'"),
        sqlite_where=sa.text("status != 'cancelled'"),
    )


def downgrade() -> None:
    op.drop_index("uq_sessions_active_source_slot", table_name="sessions")
    op.drop_index("ix_sessions_client_scheduled_at", table_name="sessions")
    op.drop_index("ix_sessions_expert_scheduled_at", table_name="sessions")
    op.drop_index(op.f("ix_sessions_status"), table_name="sessions")
    op.drop_index(op.f("ix_sessions_id"), table_name="sessions")
    op.drop_table("sessions")

    op.drop_index(op.f("ix_availability_settings_expert_id"), table_name="availability_settings")
    op.drop_index(op.f("ix_availability_settings_id"), table_name="availability_settings")
    op.drop_table("availability_settings")

    op.drop_index("ix_availability_slots_expert_date", table_name="availability_slots")
    op.drop_index(op.f("ix_availability_slots_is_booked"), table_name="availability_slots")
    op.drop_index(op.f("ix_availability_slots_expert_id"), table_name="availability_slots")
    op.drop_index(op.f("ix_availability_slots_id"), table_name="availability_slots")
    op.drop_table("availability_slots")
