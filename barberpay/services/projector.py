"""Projects ledger events onto appointment and payment statuses."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from barberpay.models import (
    AppointmentPaymentStatus,
    AppointmentStatus,
    PaymentStatus,
    TransferStatus,
)
from barberpay.repositories import AppointmentRepository, PaymentRepository
from barberpay.utils.audit import log_audit

logger = logging.getLogger(__name__)

TRANSFER_SETTLED_STATUSES = {"paid", "in_transit"}
TRANSFER_FAILED_STATUSES = {"failed", "canceled"}


class AppointmentStatusProjector:
    def __init__(self, *, appointments: AppointmentRepository, payments: PaymentRepository) -> None:
        self.appointments = appointments
        self.payments = payments

    def payment_failed(self, payment_intent: Mapping[str, Any]) -> None:
        pi_id = payment_intent["id"]
        last_error = payment_intent.get("last_payment_error") or {}
        message = last_error.get("message") or "Payment failed"

        appointment = self.appointments.find_by_payment_intent_id(pi_id)
        if appointment is None:
            logger.warning("Payment failure for unknown appointment", extra={"stripe_payment_intent_id": pi_id})
        elif appointment.payment_status == AppointmentPaymentStatus.PAID:
            logger.warning(
                "Ignoring payment failure for an appointment already paid",
                extra={"appointment_id": appointment.id, "stripe_payment_intent_id": pi_id},
            )
        else:
            appointment.status = AppointmentStatus.REJECTED
            appointment.payment_status = AppointmentPaymentStatus.FAILED
            self.appointments.save(appointment)
            logger.info("Appointment rejected after payment failure", extra={"appointment_id": appointment.id})

        payment = self.payments.find_by_intent_id(pi_id)
        if payment is None:
            return
        if payment.status == PaymentStatus.SUCCEEDED:
            logger.warning(
                "Ignoring payment failure for a payment already succeeded",
                extra={"payment_id": payment.id, "stripe_payment_intent_id": pi_id},
            )
            return
        payment.status = PaymentStatus.FAILED
        payment.error_message = message
        log_audit(
            self.payments.db,
            actor="stripe_webhook",
            action="PAYMENT_FAILED",
            entity="Payment",
            entity_id=payment.id,
            data={"stripe_payment_intent_id": pi_id, "error": message},
        )
        self.payments.save(payment)

    def transfer_created(self, transfer: Mapping[str, Any]) -> None:
        # Completion is recorded synchronously by the engine or by transfer.updated.
        logger.info(
            "Transfer created",
            extra={"stripe_transfer_id": transfer.get("id"), "amount": transfer.get("amount")},
        )

    def transfer_failed(self, transfer: Mapping[str, Any]) -> None:
        """Handle ``transfer.reversed`` / ``transfer.failed``."""

        payment = self.payments.find_by_transfer_id(transfer["id"])
        if payment is None:
            logger.warning("Transfer failure for unknown payment", extra={"stripe_transfer_id": transfer["id"]})
            return
        self._mark_transfer_failed(payment, "Transfer reversed or failed", transfer["id"])

    def transfer_updated(self, transfer: Mapping[str, Any]) -> None:
        transfer_id = transfer["id"]
        provider_status = transfer.get("status")
        payment = self.payments.find_by_transfer_id(transfer_id)
        if payment is None:
            logger.warning("Transfer update for unknown payment", extra={"stripe_transfer_id": transfer_id})
            return

        if provider_status in TRANSFER_SETTLED_STATUSES:
            if payment.transfer_status != TransferStatus.COMPLETED:
                payment.transfer_status = TransferStatus.COMPLETED
                payment.error_message = None
                self.payments.save(payment)
            logger.info("Transfer paid to barber", extra={"payment_id": payment.id, "status": provider_status})
        elif provider_status in TRANSFER_FAILED_STATUSES:
            self._mark_transfer_failed(payment, f"Transfer {provider_status}", transfer_id)
        else:
            logger.info(
                "Transfer update ignored",
                extra={"payment_id": payment.id, "status": provider_status},
            )

    def _mark_transfer_failed(self, payment, message: str, transfer_id: str) -> None:
        payment.transfer_status = TransferStatus.FAILED
        payment.error_message = message
        # The reversed transfer must not be replayed by the next retry's idempotency key.
        payment.transfer_attempts += 1
        log_audit(
            self.payments.db,
            actor="stripe_webhook",
            action="TRANSFER_FAILED",
            entity="Payment",
            entity_id=payment.id,
            data={"stripe_transfer_id": transfer_id, "error": message},
        )
        self.payments.save(payment)
        logger.warning("Payment transfer marked as failed", extra={"payment_id": payment.id, "error": message})


__all__ = ["AppointmentStatusProjector"]
