"""Tests for recording succeeded payments."""
from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from barberpay.models import (
    AppointmentPaymentStatus,
    AppointmentStatus,
    AuditLog,
    Payment,
    PaymentStatus,
    TransferStatus,
)


def _payments(db_session) -> list[Payment]:
    return list(db_session.scalars(select(Payment).order_by(Payment.id)))


@pytest.mark.anyio
async def test_payment_succeeded_records_split_and_pays_barber(
    post_event, db_session, fake_stripe, make_barber, make_appointment
):
    fake_stripe.set_account("acct_ready")
    barber = make_barber(stripe_account_id="acct_ready")
    appointment = make_appointment(barber, payment_intent_id="pi_ok")

    response = await post_event("payment_intent.succeeded", {"id": "pi_ok", "amount": 2500, "currency": "gbp"})

    assert response.status_code == 200
    payments = _payments(db_session)
    assert len(payments) == 1
    payment = payments[0]
    assert payment.total_amount == Decimal("25.00")
    assert payment.platform_fee == Decimal("2.50")
    assert payment.barber_amount == Decimal("22.50")
    assert payment.status == PaymentStatus.SUCCEEDED
    assert payment.transfer_status == TransferStatus.COMPLETED
    assert payment.stripe_transfer_id == "tr_test_1"

    assert len(fake_stripe.transfer_calls) == 1
    call = fake_stripe.transfer_calls[0]
    assert call["amount"] == Decimal("22.50")
    assert call["destination"] == "acct_ready"
    assert call["idempotency_key"] == f"payment-{payment.id}-transfer-0"

    db_session.refresh(appointment)
    assert appointment.status == AppointmentStatus.CONFIRMED
    assert appointment.payment_status == AppointmentPaymentStatus.PAID


@pytest.mark.anyio
async def test_duplicate_delivery_is_idempotent(post_event, db_session, fake_stripe, make_barber, make_appointment):
    fake_stripe.set_account("acct_ready")
    barber = make_barber(stripe_account_id="acct_ready")
    make_appointment(barber, payment_intent_id="pi_dup")

    first = await post_event("payment_intent.succeeded", {"id": "pi_dup", "amount": 2500})
    second = await post_event("payment_intent.succeeded", {"id": "pi_dup", "amount": 2500})

    assert first.status_code == 200
    assert second.status_code == 200
    assert len(_payments(db_session)) == 1
    assert len(fake_stripe.transfer_calls) == 1
    recorded = db_session.scalar(
        select(func.count()).select_from(AuditLog).where(AuditLog.action == "PAYMENT_RECORDED")
    )
    assert recorded == 1


@pytest.mark.anyio
async def test_unknown_intent_mutates_nothing(post_event, db_session, fake_stripe, make_barber, make_appointment):
    barber = make_barber(stripe_account_id="acct_ready")
    appointment = make_appointment(barber, payment_intent_id="pi_known")

    response = await post_event("payment_intent.succeeded", {"id": "pi_unknown", "amount": 2500})

    assert response.status_code == 200
    assert _payments(db_session) == []
    assert fake_stripe.transfer_calls == []
    db_session.refresh(appointment)
    assert appointment.status == AppointmentStatus.PENDING


@pytest.mark.anyio
async def test_barber_without_account_keeps_transfer_pending(
    post_event, db_session, fake_stripe, make_barber, make_appointment
):
    barber = make_barber()
    make_appointment(barber, payment_intent_id="pi_noacct")

    response = await post_event("payment_intent.succeeded", {"id": "pi_noacct", "amount": 4000})

    assert response.status_code == 200
    payment = _payments(db_session)[0]
    assert payment.transfer_status == TransferStatus.PENDING
    assert payment.barber_amount == Decimal("36.00")
    assert fake_stripe.transfer_calls == []


def test_concurrent_insert_loses_to_unique_constraint(pipeline, db_session, make_barber, make_appointment):
    barber = make_barber()
    appointment = make_appointment(barber, payment_intent_id="pi_race")

    def _candidate() -> Payment:
        return Payment(
            appointment_id=appointment.id,
            barber_id=barber.id,
            customer_email=appointment.email,
            customer_name=appointment.customer_name,
            total_amount=Decimal("25.00"),
            platform_fee=Decimal("2.50"),
            barber_amount=Decimal("22.50"),
            currency="gbp",
            stripe_payment_intent_id="pi_race",
            status=PaymentStatus.SUCCEEDED,
            transfer_status=TransferStatus.PENDING,
        )

    assert pipeline.payments.create_once(_candidate()) is not None
    assert pipeline.payments.create_once(_candidate()) is None
    assert len(_payments(db_session)) == 1

    # The ledger still resolves to the surviving row.
    payment = pipeline.ledger.record_payment_succeeded({"id": "pi_race", "amount": 2500})
    assert payment is not None
    assert len(_payments(db_session)) == 1


def test_intent_without_amount_is_ignored(pipeline, db_session, make_barber, make_appointment):
    barber = make_barber()
    make_appointment(barber, payment_intent_id="pi_partial")

    assert pipeline.ledger.record_payment_succeeded({"id": "pi_partial"}) is None
    assert _payments(db_session) == []


def test_success_after_failure_supersedes(pipeline, db_session, make_barber, make_appointment, make_payment):
    barber = make_barber()
    appointment = make_appointment(barber, payment_intent_id="pi_retry_card")
    payment = make_payment(appointment, status=PaymentStatus.FAILED)

    result = pipeline.ledger.record_payment_succeeded({"id": "pi_retry_card", "amount": 2500})

    assert result.id == payment.id
    assert result.status == PaymentStatus.SUCCEEDED
    assert result.error_message is None


def test_redelivery_keeps_completed_appointment(pipeline, db_session, make_barber, make_appointment, make_payment):
    barber = make_barber()
    appointment = make_appointment(barber, payment_intent_id="pi_visit_done")
    appointment.status = AppointmentStatus.COMPLETED
    appointment.payment_status = AppointmentPaymentStatus.PAID
    db_session.commit()
    make_payment(appointment)

    pipeline.ledger.record_payment_succeeded({"id": "pi_visit_done", "amount": 2500})

    db_session.refresh(appointment)
    assert appointment.status == AppointmentStatus.COMPLETED
    assert appointment.payment_status == AppointmentPaymentStatus.PAID


def test_success_confirms_rejected_unpaid_appointment(pipeline, db_session, make_barber, make_appointment):
    barber = make_barber()
    appointment = make_appointment(barber, payment_intent_id="pi_late_card")
    appointment.status = AppointmentStatus.REJECTED
    appointment.payment_status = AppointmentPaymentStatus.FAILED
    db_session.commit()

    pipeline.ledger.record_payment_succeeded({"id": "pi_late_card", "amount": 2500})

    db_session.refresh(appointment)
    assert appointment.status == AppointmentStatus.CONFIRMED
    assert appointment.payment_status == AppointmentPaymentStatus.PAID
