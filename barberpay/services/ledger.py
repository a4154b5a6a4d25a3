"""Payment ledger: records money received for appointments."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping

from barberpay.models import (
    AppointmentPaymentStatus,
    AppointmentStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    TransferStatus,
)
from barberpay.repositories import AppointmentRepository, BarberRepository, PaymentRepository
from barberpay.services.transfers import TransferEngine
from barberpay.utils.audit import log_audit
from barberpay.utils.money import from_minor_units, split_platform_fee

logger = logging.getLogger(__name__)


class PaymentLedger:
    """Turns a succeeded PaymentIntent into exactly one ``Payment`` row."""

    def __init__(
        self,
        *,
        payments: PaymentRepository,
        appointments: AppointmentRepository,
        barbers: BarberRepository,
        transfers: TransferEngine,
        platform_fee_percentage: Decimal,
        currency: str,
    ) -> None:
        self.payments = payments
        self.appointments = appointments
        self.barbers = barbers
        self.transfers = transfers
        self.platform_fee_percentage = platform_fee_percentage
        self.currency = currency

    def record_payment_succeeded(
        self, payment_intent: Mapping[str, Any], *, source: str = "stripe_webhook"
    ) -> Payment | None:
        """Record a succeeded intent, confirm its appointment and attempt the payout.

        Returns ``None`` when no appointment references the intent. Safe to call
        repeatedly for the same intent.
        """

        pi_id = payment_intent.get("id")
        if not pi_id or payment_intent.get("amount") is None:
            logger.warning(
                "PaymentIntent is missing id or amount; ignoring",
                extra={"stripe_payment_intent_id": pi_id},
            )
            return None

        appointment = self.appointments.find_by_payment_intent_id(pi_id)
        if appointment is None:
            logger.warning(
                "Payment succeeded for an intent with no appointment",
                extra={"stripe_payment_intent_id": pi_id},
            )
            return None

        total_amount = from_minor_units(payment_intent["amount"])
        platform_fee, barber_amount = split_platform_fee(total_amount, self.platform_fee_percentage)
        logger.info(
            "Payment breakdown",
            extra={
                "stripe_payment_intent_id": pi_id,
                "appointment_id": appointment.id,
                "total_amount": str(total_amount),
                "platform_fee": str(platform_fee),
                "barber_amount": str(barber_amount),
            },
        )

        payment = self.payments.find_by_intent_id(pi_id)
        if payment is not None:
            logger.info(
                "Payment already recorded for intent; not creating another",
                extra={"payment_id": payment.id, "stripe_payment_intent_id": pi_id},
            )
        else:
            metadata = payment_intent.get("metadata") or {}
            candidate = Payment(
                appointment_id=appointment.id,
                barber_id=appointment.barber_id,
                customer_email=payment_intent.get("receipt_email") or appointment.email,
                customer_name=metadata.get("customerName") or appointment.customer_name,
                total_amount=total_amount,
                platform_fee=platform_fee,
                barber_amount=barber_amount,
                currency=(payment_intent.get("currency") or self.currency).lower(),
                stripe_payment_intent_id=pi_id,
                status=PaymentStatus.SUCCEEDED,
                transfer_status=TransferStatus.PENDING,
                payment_method=PaymentMethod.CARD,
            )
            payment = self.payments.create_once(candidate)
            if payment is None:
                payment = self.payments.find_by_intent_id(pi_id)
                if payment is None:
                    raise RuntimeError(f"Payment for intent {pi_id} vanished after a unique conflict")
                logger.info(
                    "Concurrent delivery already recorded the payment",
                    extra={"payment_id": payment.id, "stripe_payment_intent_id": pi_id},
                )
            else:
                log_audit(
                    self.payments.db,
                    actor=source,
                    action="PAYMENT_RECORDED",
                    entity="Payment",
                    entity_id=payment.id,
                    data={
                        "appointment_id": appointment.id,
                        "stripe_payment_intent_id": pi_id,
                        "total_amount": str(total_amount),
                        "platform_fee": str(platform_fee),
                        "barber_amount": str(barber_amount),
                        "customer_email": payment.customer_email,
                    },
                )
                self.payments.db.commit()
                logger.info("Payment created", extra={"payment_id": payment.id})

        if payment.status in (PaymentStatus.PENDING, PaymentStatus.FAILED):
            # A later success on the same intent supersedes an earlier failed attempt.
            payment.status = PaymentStatus.SUCCEEDED
            payment.error_message = None
            self.payments.save(payment)

        # Completed visits and refunded payments are never rolled back by a redelivery.
        changed = False
        if appointment.status in (AppointmentStatus.PENDING, AppointmentStatus.REJECTED):
            appointment.status = AppointmentStatus.CONFIRMED
            changed = True
        if appointment.payment_status in (AppointmentPaymentStatus.PENDING, AppointmentPaymentStatus.FAILED):
            appointment.payment_status = AppointmentPaymentStatus.PAID
            changed = True
        if changed:
            self.appointments.save(appointment)
            logger.info(
                "Appointment marked paid",
                extra={"appointment_id": appointment.id, "status": appointment.status.value},
            )

        barber = self.barbers.get(payment.barber_id)
        if barber is not None and barber.stripe_account_id:
            self.transfers.transfer(payment, barber, source=source)
        else:
            logger.warning(
                "Barber has no connected account; holding payment",
                extra={"payment_id": payment.id, "barber_id": payment.barber_id},
            )
        return payment


__all__ = ["PaymentLedger"]
