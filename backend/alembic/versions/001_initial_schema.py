"""Initial schema: users, events, inscriptions, payments.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'USER'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('USER', 'ORGANIZER', 'ADMIN')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(500), nullable=True),
        sa.Column("start_datetime", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_datetime", sa.DateTime(timezone=True), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default=sa.text("100")),
        sa.Column("current_participants", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'EUR'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'DRAFT'")),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("capacity > 0", name="check_event_capacity_positive"),
        sa.CheckConstraint("current_participants >= 0", name="check_participants_non_negative"),
        # Last line of defence behind the conditional UPDATE in reserve_capacity
        sa.CheckConstraint("current_participants <= capacity", name="check_participants_lte_capacity"),
        sa.CheckConstraint("price >= 0", name="check_event_price_non_negative"),
        sa.CheckConstraint("status IN ('DRAFT', 'PUBLISHED', 'CANCELLED')", name="check_event_status"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    op.create_index("ix_events_start_datetime", "events", ["start_datetime"])
    # Public listing: WHERE status = 'PUBLISHED' ORDER BY start_datetime
    op.create_index("ix_events_status_start", "events", ["status", "start_datetime"])
    op.create_index("ix_events_price", "events", ["price"])

    op.create_table(
        "inscriptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        # One row per pair; cancelled rows are reactivated, never duplicated
        sa.UniqueConstraint("event_id", "user_id", name="uq_inscription_event_user"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED')", name="check_inscription_status"
        ),
    )
    op.create_index("ix_inscriptions_id", "inscriptions", ["id"])
    op.create_index("ix_inscriptions_event_id", "inscriptions", ["event_id"])
    op.create_index("ix_inscriptions_user_id", "inscriptions", ["user_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("inscription_id", sa.Integer(), sa.ForeignKey("inscriptions.id"), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'EUR'")),
        sa.Column("provider", sa.String(50), nullable=False, server_default=sa.text("'mock'")),
        sa.Column("provider_payment_id", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'PAID', 'FAILED', 'REFUNDED')", name="check_payment_status"
        ),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_user_id", "payments", ["user_id"])
    op.create_index("ix_payments_event_id", "payments", ["event_id"])
    op.create_index("ix_payments_inscription_id", "payments", ["inscription_id"])
    # Webhook lookup by processor reference
    op.create_index("ix_payments_provider_payment_id", "payments", ["provider_payment_id"])
    # Revenue: WHERE event_id = ? AND status = 'PAID'
    op.create_index("ix_payments_event_status", "payments", ["event_id", "status"])
    # At most one PENDING or PAID payment per inscription
    op.create_index(
        "uq_payments_active_inscription",
        "payments",
        ["inscription_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('PENDING', 'PAID')"),
        sqlite_where=sa.text("status IN ('PENDING', 'PAID')"),
    )


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("inscriptions")
    op.drop_table("events")
    op.drop_table("users")
