"""Tests for the arguments StripeClient hands to the Stripe SDK."""
from __future__ import annotations

import stripe

from barberpay.config import get_settings
from barberpay.services.psp_stripe import StripeClient


def test_transfer_sends_minor_units_and_idempotency_key(monkeypatch, make_barber, make_appointment, make_payment):
    captured: dict = {}

    def fake_create(**kwargs):
        captured.update(kwargs)
        return {"id": "tr_live_shape", "object": "transfer"}

    monkeypatch.setattr(stripe.Transfer, "create", fake_create)
    barber = make_barber(stripe_account_id="acct_ready")
    appointment = make_appointment(barber, payment_intent_id="pi_sdk")
    payment = make_payment(appointment)
    settings = get_settings()

    transfer_id = StripeClient(settings).create_transfer_to_connected(
        payment=payment,
        destination_account_id="acct_ready",
        idempotency_key=f"payment-{payment.id}-transfer-0",
    )

    assert transfer_id == "tr_live_shape"
    assert captured["amount"] == 2250
    assert isinstance(captured["amount"], int)
    assert captured["currency"] == "gbp"
    assert captured["destination"] == "acct_ready"
    assert captured["idempotency_key"] == f"payment-{payment.id}-transfer-0"
    assert captured["metadata"] == {
        "payment_id": str(payment.id),
        "appointment_id": str(appointment.id),
        "barber_id": str(barber.id),
        "customer_name": "Alex Client",
    }
    assert captured["description"] == f"Payment for Alex Client - Appointment {appointment.id}"
    assert captured["api_key"] == settings.STRIPE_SECRET_KEY
    assert captured["stripe_version"] == settings.STRIPE_API_VERSION
