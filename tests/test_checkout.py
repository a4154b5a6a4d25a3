"""Tests for checkout intents and manual reconciliation."""
from __future__ import annotations

import pytest
from sqlalchemy import select

from barberpay.models import AppointmentStatus, Payment, TransferStatus


@pytest.mark.anyio
async def test_create_payment_intent(client, operator_headers, db_session, fake_stripe, make_barber, make_appointment):
    appointment = make_appointment(make_barber(), total_price="32.50")

    response = await client.post(f"/appointments/{appointment.id}/payment-intent", headers=operator_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["amount_minor"] == 3250
    assert body["client_secret"].startswith(body["payment_intent_id"])
    db_session.refresh(appointment)
    assert appointment.payment_intent_id == body["payment_intent_id"]
    assert appointment.total_price_minor == 3250
    assert appointment.pay_online is True

    again = await client.post(f"/appointments/{appointment.id}/payment-intent", headers=operator_headers)
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "PAYMENT_INTENT_EXISTS"


@pytest.mark.anyio
async def test_reconcile_records_missed_webhook(
    client, operator_headers, db_session, fake_stripe, make_barber, make_appointment
):
    fake_stripe.set_account("acct_ready")
    appointment = make_appointment(make_barber(stripe_account_id="acct_ready"))
    created = await client.post(f"/appointments/{appointment.id}/payment-intent", headers=operator_headers)
    intent_id = created.json()["payment_intent_id"]

    pending = await client.post(f"/payments/reconcile/{appointment.id}", headers=operator_headers)
    assert pending.status_code == 409
    assert pending.json()["error"]["code"] == "PAYMENT_NOT_SUCCEEDED"

    fake_stripe.payment_intents[intent_id]["status"] = "succeeded"
    first = await client.post(f"/payments/reconcile/{appointment.id}", headers=operator_headers)
    second = await client.post(f"/payments/reconcile/{appointment.id}", headers=operator_headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json()["id"] == second.json()["id"]
    assert first.json()["transfer_status"] == TransferStatus.COMPLETED.value
    assert len(list(db_session.scalars(select(Payment)))) == 1
    assert len(fake_stripe.transfer_calls) == 1
    db_session.refresh(appointment)
    assert appointment.status == AppointmentStatus.CONFIRMED


@pytest.mark.anyio
async def test_reconcile_without_intent(client, operator_headers, make_barber, make_appointment):
    appointment = make_appointment(make_barber())

    response = await client.post(f"/payments/reconcile/{appointment.id}", headers=operator_headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "NO_PAYMENT_INTENT"
