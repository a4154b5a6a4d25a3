"""Tests for the operator payment endpoints."""
from __future__ import annotations

import pytest

from barberpay.models import PaymentStatus, TransferStatus
from barberpay.services.psp_stripe import get_stripe_client


@pytest.mark.anyio
async def test_operator_key_required(client, make_barber, make_appointment, make_payment):
    payment = make_payment(make_appointment(make_barber(), payment_intent_id="pi_auth"))

    missing = await client.get(f"/payments/{payment.id}")
    wrong = await client.get(f"/payments/{payment.id}", headers={"X-API-Key": "nope"})
    bearer = await client.get(
        f"/payments/{payment.id}", headers={"Authorization": "Bearer operator-test-key"}
    )

    assert missing.status_code == 401
    assert missing.json()["error"]["code"] == "NO_API_KEY"
    assert wrong.status_code == 401
    assert bearer.status_code == 200
    assert bearer.json()["barber_amount"] == "22.50"


@pytest.mark.anyio
async def test_get_unknown_payment(client, operator_headers):
    response = await client.get("/payments/999", headers=operator_headers)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "PAYMENT_NOT_FOUND"


@pytest.mark.anyio
async def test_retry_transfer_completes_failed_payment(
    client, operator_headers, fake_stripe, make_barber, make_appointment, make_payment
):
    fake_stripe.set_account("acct_ready")
    barber = make_barber(stripe_account_id="acct_ready")
    payment = make_payment(
        make_appointment(barber, payment_intent_id="pi_retry"), transfer_status=TransferStatus.FAILED
    )

    response = await client.post(f"/payments/retry-transfer/{payment.id}", headers=operator_headers)

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Transfer retry initiated",
        "transferStatus": "completed",
    }
    assert fake_stripe.transfer_calls[0]["idempotency_key"] == f"payment-{payment.id}-transfer-0"


@pytest.mark.anyio
async def test_retry_transfer_reports_not_ready_as_pending(
    client, operator_headers, fake_stripe, make_barber, make_appointment, make_payment
):
    fake_stripe.set_account("acct_slow", payouts_enabled=False)
    barber = make_barber(stripe_account_id="acct_slow")
    payment = make_payment(make_appointment(barber, payment_intent_id="pi_slow"))

    response = await client.post(f"/payments/retry-transfer/{payment.id}", headers=operator_headers)

    assert response.status_code == 200
    assert response.json()["transferStatus"] == "pending"


@pytest.mark.anyio
async def test_retry_transfer_error_codes(
    client, operator_headers, make_barber, make_appointment, make_payment
):
    connected = make_barber(stripe_account_id="acct_ready")
    unconnected = make_barber(name="No Account")

    unknown = await client.post("/payments/retry-transfer/424242", headers=operator_headers)
    assert unknown.status_code == 404

    done = make_payment(
        make_appointment(connected, payment_intent_id="pi_r1"),
        transfer_status=TransferStatus.COMPLETED,
        stripe_transfer_id="tr_done",
    )
    response = await client.post(f"/payments/retry-transfer/{done.id}", headers=operator_headers)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "ALREADY_TRANSFERRED"

    refunded = make_payment(make_appointment(connected, payment_intent_id="pi_r2"), status=PaymentStatus.REFUNDED)
    response = await client.post(f"/payments/retry-transfer/{refunded.id}", headers=operator_headers)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "PAYMENT_NOT_SUCCEEDED"

    orphan = make_payment(make_appointment(unconnected, payment_intent_id="pi_r3"))
    response = await client.post(f"/payments/retry-transfer/{orphan.id}", headers=operator_headers)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BARBER_NOT_CONNECTED"

    busy = make_payment(
        make_appointment(connected, payment_intent_id="pi_r4"), transfer_status=TransferStatus.PROCESSING
    )
    response = await client.post(f"/payments/retry-transfer/{busy.id}", headers=operator_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "TRANSFER_IN_PROGRESS"


@pytest.mark.anyio
async def test_retry_transfer_without_stripe(client, operator_headers, make_barber, make_appointment, make_payment):
    from barberpay.main import app

    barber = make_barber(stripe_account_id="acct_ready")
    payment = make_payment(make_appointment(barber, payment_intent_id="pi_nostripe"))
    app.dependency_overrides[get_stripe_client] = lambda: None

    response = await client.post(f"/payments/retry-transfer/{payment.id}", headers=operator_headers)

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "STRIPE_NOT_CONFIGURED"
