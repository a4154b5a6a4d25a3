"""Appointment model definitions."""
import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Enum as SqlEnum, ForeignKey, Index, Integer, JSON, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class AppointmentStatus(str, enum.Enum):
    """Booking lifecycle as seen by staff and customers."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    COMPLETED = "completed"


class AppointmentPaymentStatus(str, enum.Enum):
    """Payment state projected onto the appointment."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class Appointment(Base):
    """A booked appointment; ``services_json`` snapshots name/price/duration at booking."""

    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_barber_scheduled", "barber_id", "scheduled_at"),
        Index("ix_appointments_status", "status"),
    )

    customer_name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(40), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    barber_id: Mapped[int] = mapped_column(ForeignKey("barbers.id"), nullable=False)
    branch_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    services_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price_minor: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[AppointmentStatus] = mapped_column(
        SqlEnum(AppointmentStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AppointmentStatus.PENDING,
    )
    payment_status: Mapped[AppointmentPaymentStatus] = mapped_column(
        SqlEnum(AppointmentPaymentStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AppointmentPaymentStatus.PENDING,
    )
    payment_intent_id: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)
    pay_online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    barber = relationship("Barber")
