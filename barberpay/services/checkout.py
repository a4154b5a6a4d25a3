"""Checkout: opening a PaymentIntent for an appointment and reconciling it later."""
from __future__ import annotations

import logging

import stripe
from fastapi import HTTPException, status

from barberpay.models import Appointment, Payment
from barberpay.services.pipeline import PaymentPipeline
from barberpay.utils.audit import log_audit
from barberpay.utils.errors import error_response
from barberpay.utils.money import to_minor_units

logger = logging.getLogger(__name__)


def _require_appointment(pipeline: PaymentPipeline, appointment_id: int) -> Appointment:
    appointment = pipeline.appointments.get(appointment_id)
    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("APPOINTMENT_NOT_FOUND", "Appointment not found."),
        )
    return appointment


def _require_stripe(pipeline: PaymentPipeline):
    if pipeline.stripe is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_response("STRIPE_NOT_CONFIGURED", "Stripe not configured on server."),
        )
    return pipeline.stripe


def create_payment_intent(pipeline: PaymentPipeline, appointment_id: int) -> dict[str, object]:
    """Start an online charge for an appointment; one intent per appointment."""

    client = _require_stripe(pipeline)
    appointment = _require_appointment(pipeline, appointment_id)
    if appointment.payment_intent_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response(
                "PAYMENT_INTENT_EXISTS", "A payment has already been started for this appointment."
            ),
        )
    if appointment.total_price <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("NOTHING_TO_CHARGE", "Appointment total must be positive."),
        )

    try:
        intent_id, client_secret = client.create_payment_intent(appointment, appointment.total_price)
    except stripe.StripeError as exc:
        logger.error(
            "PaymentIntent creation failed",
            extra={"appointment_id": appointment.id, "error": str(exc)},
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=error_response("STRIPE_INTENT_FAILED", "Could not start the payment."),
        ) from exc

    appointment.payment_intent_id = intent_id
    appointment.total_price_minor = to_minor_units(appointment.total_price)
    appointment.pay_online = True
    log_audit(
        pipeline.db,
        actor="checkout",
        action="PAYMENT_INTENT_CREATED",
        entity="Appointment",
        entity_id=appointment.id,
        data={"stripe_payment_intent_id": intent_id, "amount_minor": appointment.total_price_minor},
    )
    pipeline.appointments.save(appointment)
    logger.info("PaymentIntent created", extra={"appointment_id": appointment.id, "stripe_payment_intent_id": intent_id})
    return {
        "appointment_id": appointment.id,
        "payment_intent_id": intent_id,
        "client_secret": client_secret,
        "amount_minor": appointment.total_price_minor,
    }


def reconcile_appointment(pipeline: PaymentPipeline, appointment_id: int) -> Payment:
    """Re-read the appointment's intent from Stripe and record it if it succeeded.

    Covers webhooks that never arrived; recording is idempotent per intent.
    """

    client = _require_stripe(pipeline)
    appointment = _require_appointment(pipeline, appointment_id)
    if not appointment.payment_intent_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("NO_PAYMENT_INTENT", "No payment intent ID."),
        )

    try:
        intent = client.retrieve_payment_intent(appointment.payment_intent_id)
    except stripe.StripeError as exc:
        logger.error(
            "PaymentIntent retrieval failed",
            extra={"appointment_id": appointment.id, "error": str(exc)},
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=error_response("STRIPE_UNAVAILABLE", "Could not reach Stripe."),
        ) from exc

    if intent.get("status") != "succeeded":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response(
                "PAYMENT_NOT_SUCCEEDED",
                f"PaymentIntent status is {intent.get('status')}.",
            ),
        )

    payment = pipeline.ledger.record_payment_succeeded(intent, source="manual_reconcile")
    if payment is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response("PAYMENT_NOT_RECORDED", "Payment could not be attributed to the appointment."),
        )
    return payment


__all__ = ["create_payment_intent", "reconcile_appointment"]
