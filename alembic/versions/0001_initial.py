"""clubs, tariffs, booking rules, bookings and payment schedules

Revision ID: 0001_initial
Revises:
Create Date: 2025-04-01 00:00:00
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "clubs",
        sa.Column("club_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("season", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(length=8), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "tariffs",
        sa.Column("tariff_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "club_id",
            sa.Integer(),
            sa.ForeignKey("clubs.club_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("season", sa.Integer(), nullable=True),
        sa.Column("months", sa.JSON(), nullable=True),
        sa.Column("monthly_amounts", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tariffs_club_id", "tariffs", ["club_id"])
    op.create_index("ix_tariffs_club_type", "tariffs", ["club_id", "type"])

    op.create_table(
        "booking_rules",
        sa.Column("rule_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "club_id",
            sa.Integer(),
            sa.ForeignKey("clubs.club_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "tariff_id",
            sa.Integer(),
            sa.ForeignKey("tariffs.tariff_id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("rule_type", sa.String(length=32), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("parameters", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_booking_rules_club_tariff", "booking_rules", ["club_id", "tariff_id"])
    op.create_index("ix_booking_rules_club_type", "booking_rules", ["club_id", "rule_type"])

    op.create_table(
        "bookings",
        sa.Column("booking_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("club_id", sa.Integer(), sa.ForeignKey("clubs.club_id"), nullable=False),
        sa.Column("tariff_id", sa.Integer(), sa.ForeignKey("tariffs.tariff_id"), nullable=True),
        sa.Column("vessel_id", sa.Integer(), nullable=False),
        sa.Column("berth_id", sa.Integer(), nullable=False),
        sa.Column("payer_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("total_price >= 0", name="ck_bookings_total_price_non_negative"),
        sa.CheckConstraint("start_date < end_date", name="ck_bookings_date_range"),
    )
    op.create_index("ix_bookings_club_status", "bookings", ["club_id", "status"])
    op.create_index("ix_bookings_berth_dates", "bookings", ["berth_id", "start_date", "end_date"])

    op.create_table(
        "payments",
        sa.Column("payment_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "booking_id",
            sa.Integer(),
            sa.ForeignKey("bookings.booking_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("payer_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("method", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column("payment_type", sa.String(length=16), nullable=False),
        sa.Column("payment_order", sa.Integer(), nullable=False),
        sa.Column("payment_month", sa.Integer(), nullable=True),
        sa.Column("transaction_id", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("penalty", sa.Numeric(12, 2), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("booking_id", "payment_order", name="uq_payments_booking_order"),
    )
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])
    op.create_index("ix_payments_status_due", "payments", ["status", "due_date"])

    op.create_table(
        "payment_schedules",
        sa.Column(
            "booking_id",
            sa.Integer(),
            sa.ForeignKey("bookings.booking_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("plan", sa.String(length=16), nullable=False),
        sa.Column("item_count", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("generated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("payment_schedules")
    op.drop_index("ix_payments_status_due", table_name="payments")
    op.drop_index("ix_payments_booking_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_bookings_berth_dates", table_name="bookings")
    op.drop_index("ix_bookings_club_status", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_booking_rules_club_type", table_name="booking_rules")
    op.drop_index("ix_booking_rules_club_tariff", table_name="booking_rules")
    op.drop_table("booking_rules")
    op.drop_index("ix_tariffs_club_type", table_name="tariffs")
    op.drop_index("ix_tariffs_club_id", table_name="tariffs")
    op.drop_table("tariffs")
    op.drop_table("clubs")
