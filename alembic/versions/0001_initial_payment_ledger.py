"""initial payment ledger schema

Revision ID: 0001_initial_payment_ledger
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial_payment_ledger"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "barbers",
        *_timestamps(),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("branch_id", sa.Integer(), nullable=True),
        sa.Column("stripe_account_id", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("stripe_account_id"),
    )
    op.create_index("ix_barbers_branch_id", "barbers", ["branch_id"])

    op.create_table(
        "appointments",
        *_timestamps(),
        sa.Column("customer_name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("barber_id", sa.Integer(), sa.ForeignKey("barbers.id"), nullable=False),
        sa.Column("branch_id", sa.Integer(), nullable=True),
        sa.Column("services_json", sa.JSON(), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_price_minor", sa.Integer(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("pending", "confirmed", "rejected", "completed", name="appointmentstatus"),
            nullable=False,
        ),
        sa.Column(
            "payment_status",
            sa.Enum("pending", "paid", "failed", "refunded", name="appointmentpaymentstatus"),
            nullable=False,
        ),
        sa.Column("payment_intent_id", sa.String(length=128), nullable=True),
        sa.Column("pay_online", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("payment_intent_id"),
    )
    op.create_index("ix_appointments_barber_scheduled", "appointments", ["barber_id", "scheduled_at"])
    op.create_index("ix_appointments_status", "appointments", ["status"])

    op.create_table(
        "payments",
        *_timestamps(),
        sa.Column("appointment_id", sa.Integer(), sa.ForeignKey("appointments.id"), nullable=False),
        sa.Column("barber_id", sa.Integer(), sa.ForeignKey("barbers.id"), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("customer_name", sa.String(length=120), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("platform_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column("barber_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("stripe_payment_intent_id", sa.String(length=128), nullable=False),
        sa.Column("stripe_transfer_id", sa.String(length=128), nullable=True),
        sa.Column(
            "status",
            sa.Enum("pending", "succeeded", "failed", "refunded", "transferred", name="paymentstatus"),
            nullable=False,
        ),
        sa.Column(
            "transfer_status",
            sa.Enum("pending", "processing", "completed", "failed", name="transferstatus"),
            nullable=False,
        ),
        sa.Column("transfer_attempts", sa.Integer(), nullable=False),
        sa.Column("transfer_claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_method", sa.Enum("card", "pay_later", name="paymentmethod"), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("refund_id", sa.String(length=128), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("stripe_payment_intent_id", name="uq_payments_stripe_payment_intent_id"),
        sa.UniqueConstraint("stripe_transfer_id", name="uq_payments_stripe_transfer_id"),
        sa.CheckConstraint("total_amount >= 0", name="ck_payments_total_non_negative"),
        sa.CheckConstraint("platform_fee >= 0", name="ck_payments_fee_non_negative"),
    )
    op.create_index("ix_payments_status", "payments", ["status"])
    op.create_index("ix_payments_barber_status", "payments", ["barber_id", "status"])
    op.create_index("ix_payments_appointment", "payments", ["appointment_id"])
    op.create_index("ix_payments_created_at", "payments", ["created_at"])

    op.create_table(
        "audit_logs",
        *_timestamps(),
        sa.Column("actor", sa.String(length=100), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("data_json", sa.JSON(), nullable=False),
        sa.Column("at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity", "entity_id"])

    op.create_table(
        "scheduler_locks",
        *_timestamps(),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("owner", sa.String(length=64), nullable=False),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("name"),
    )


def downgrade() -> None:
    op.drop_table("scheduler_locks")
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_payments_created_at", table_name="payments")
    op.drop_index("ix_payments_appointment", table_name="payments")
    op.drop_index("ix_payments_barber_status", table_name="payments")
    op.drop_index("ix_payments_status", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_appointments_status", table_name="appointments")
    op.drop_index("ix_appointments_barber_scheduled", table_name="appointments")
    op.drop_table("appointments")
    op.drop_index("ix_barbers_branch_id", table_name="barbers")
    op.drop_table("barbers")
