"""Payment ledger model definitions."""
import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class PaymentStatus(str, enum.Enum):
    """Status of the customer charge."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"
    TRANSFERRED = "transferred"


class TransferStatus(str, enum.Enum):
    """Status of the payout of ``barber_amount`` to the barber's connected account.

    ``PROCESSING`` marks a claimed attempt with a provider call in flight.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    PAY_LATER = "pay_later"


CLAIMABLE_TRANSFER_STATUSES = (TransferStatus.PENDING, TransferStatus.FAILED)


class Payment(Base):
    """Ledger entry for money received against one appointment."""

    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("stripe_payment_intent_id", name="uq_payments_stripe_payment_intent_id"),
        UniqueConstraint("stripe_transfer_id", name="uq_payments_stripe_transfer_id"),
        CheckConstraint("total_amount >= 0", name="ck_payments_total_non_negative"),
        CheckConstraint("platform_fee >= 0", name="ck_payments_fee_non_negative"),
        Index("ix_payments_barber_status", "barber_id", "status"),
        Index("ix_payments_appointment", "appointment_id"),
        Index("ix_payments_created_at", "created_at"),
    )

    appointment_id: Mapped[int] = mapped_column(ForeignKey("appointments.id"), nullable=False)
    barber_id: Mapped[int] = mapped_column(ForeignKey("barbers.id"), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(120), nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    barber_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="gbp")

    stripe_payment_intent_id: Mapped[str] = mapped_column(String(128), nullable=False)
    stripe_transfer_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    status: Mapped[PaymentStatus] = mapped_column(
        SqlEnum(PaymentStatus, values_callable=_enum_values),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True,
    )
    transfer_status: Mapped[TransferStatus] = mapped_column(
        SqlEnum(TransferStatus, values_callable=_enum_values),
        nullable=False,
        default=TransferStatus.PENDING,
    )
    transfer_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    transfer_claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SqlEnum(PaymentMethod, values_callable=_enum_values),
        nullable=False,
        default=PaymentMethod.CARD,
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    refund_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    appointment = relationship("Appointment")
    barber = relationship("Barber")

    @property
    def transfer_idempotency_key(self) -> str:
        """Stable key for the current transfer attempt.

        Only a definitive provider rejection bumps ``transfer_attempts``; an
        ambiguous failure replays the same key on retry.
        """

        return f"payment-{self.id}-transfer-{self.transfer_attempts}"
