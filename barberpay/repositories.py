"""Repositories wrapping the SQLAlchemy session for the payment core.

Services receive these at construction time instead of querying models of
other modules directly.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from barberpay.models import (
    CLAIMABLE_TRANSFER_STATUSES,
    Appointment,
    Barber,
    Payment,
    PaymentStatus,
    TransferStatus,
)
from barberpay.utils.time import utcnow

logger = logging.getLogger(__name__)


class AppointmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, appointment_id: int) -> Optional[Appointment]:
        return self.db.get(Appointment, appointment_id)

    def find_by_payment_intent_id(self, payment_intent_id: str) -> Optional[Appointment]:
        stmt = select(Appointment).where(Appointment.payment_intent_id == payment_intent_id)
        return self.db.scalars(stmt).first()

    def save(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self.db.commit()
        self.db.refresh(appointment)
        return appointment


class BarberRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, barber_id: int) -> Optional[Barber]:
        return self.db.get(Barber, barber_id)

    def find_by_stripe_account_id(self, account_id: str) -> Optional[Barber]:
        stmt = select(Barber).where(Barber.stripe_account_id == account_id)
        return self.db.scalars(stmt).first()

    def save(self, barber: Barber) -> Barber:
        self.db.add(barber)
        self.db.commit()
        self.db.refresh(barber)
        return barber


class PaymentRepository:
    """Storage for the ledger. Rows are created once and never deleted."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, payment_id: int) -> Optional[Payment]:
        return self.db.get(Payment, payment_id)

    def find_by_intent_id(self, payment_intent_id: str) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.stripe_payment_intent_id == payment_intent_id)
        return self.db.scalars(stmt).first()

    def find_by_transfer_id(self, transfer_id: str) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.stripe_transfer_id == transfer_id)
        return self.db.scalars(stmt).first()

    def create_once(self, payment: Payment) -> Optional[Payment]:
        """Insert ``payment``; return ``None`` when its intent id is already recorded.

        The unique constraint on ``stripe_payment_intent_id`` decides the
        winner between concurrent deliveries.
        """

        try:
            self.db.add(payment)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(
                "Payment insert lost to an existing record",
                extra={"stripe_payment_intent_id": payment.stripe_payment_intent_id},
            )
            return None
        self.db.refresh(payment)
        return payment

    def save(self, payment: Payment) -> Payment:
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def list_for_barber(self, barber_id: int, *, limit: int = 50) -> list[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.barber_id == barber_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))

    def pending_transfers_for_barber(self, barber_id: int) -> list[Payment]:
        stmt = (
            select(Payment)
            .where(
                Payment.barber_id == barber_id,
                Payment.status == PaymentStatus.SUCCEEDED,
                Payment.transfer_status == TransferStatus.PENDING,
            )
            .order_by(Payment.id)
        )
        return list(self.db.scalars(stmt))

    def claim_transfer(self, payment_id: int) -> bool:
        """Atomically move a payment into ``processing``; ``False`` if someone else holds it."""

        result = self.db.execute(
            update(Payment)
            .where(
                Payment.id == payment_id,
                Payment.transfer_status.in_(CLAIMABLE_TRANSFER_STATUSES),
            )
            .values(transfer_status=TransferStatus.PROCESSING, transfer_claimed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def stale_claims(self, claimed_before: datetime) -> list[Payment]:
        stmt = select(Payment).where(
            Payment.transfer_status == TransferStatus.PROCESSING,
            Payment.transfer_claimed_at < claimed_before,
        )
        return list(self.db.scalars(stmt))


__all__ = ["AppointmentRepository", "BarberRepository", "PaymentRepository"]
