"""ORM models package."""
from .appointment import Appointment, AppointmentPaymentStatus, AppointmentStatus
from .audit import AuditLog
from .barber import Barber
from .base import Base
from .payment import (
    CLAIMABLE_TRANSFER_STATUSES,
    Payment,
    PaymentMethod,
    PaymentStatus,
    TransferStatus,
)
from .scheduler_lock import SchedulerLock

__all__ = [
    "Appointment",
    "AppointmentPaymentStatus",
    "AppointmentStatus",
    "AuditLog",
    "Barber",
    "Base",
    "CLAIMABLE_TRANSFER_STATUSES",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "SchedulerLock",
    "TransferStatus",
]
