"""Stripe Connect onboarding and barber earnings."""
from __future__ import annotations

import logging
from decimal import Decimal

import stripe
from fastapi import HTTPException, status

from barberpay.models import Barber, PaymentStatus, TransferStatus
from barberpay.services.pipeline import PaymentPipeline
from barberpay.utils.audit import log_audit
from barberpay.utils.errors import error_response

logger = logging.getLogger(__name__)

EARNINGS_PAGE_SIZE = 50


def _require_stripe(pipeline: PaymentPipeline):
    if pipeline.stripe is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_response("STRIPE_NOT_CONFIGURED", "Stripe not configured on server."),
        )
    return pipeline.stripe


def _require_barber(pipeline: PaymentPipeline, barber_id: int) -> Barber:
    barber = pipeline.barbers.get(barber_id)
    if barber is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("BARBER_NOT_FOUND", "Barber not found."),
        )
    return barber


def _forget_account(pipeline: PaymentPipeline, barber: Barber, reason: str) -> None:
    log_audit(
        pipeline.db,
        actor="connect",
        action="STRIPE_ACCOUNT_RESET",
        entity="Barber",
        entity_id=barber.id,
        data={"stripe_account_id": barber.stripe_account_id, "reason": reason},
    )
    barber.stripe_account_id = None
    pipeline.barbers.save(barber)


def get_connect_status(pipeline: PaymentPipeline, barber_id: int) -> dict[str, object]:
    """Report whether the barber's connected account can receive transfers."""

    client = _require_stripe(pipeline)
    barber = _require_barber(pipeline, barber_id)

    if not barber.stripe_account_id:
        return {"connected": False, "message": "No Stripe account linked"}

    try:
        readiness = client.retrieve_account_readiness(barber.stripe_account_id)
    except stripe.InvalidRequestError as exc:
        logger.warning(
            "Stripe no longer recognises the barber's account; resetting",
            extra={"barber_id": barber.id, "error": str(exc)},
        )
        _forget_account(pipeline, barber, "invalid_account")
        return {"connected": False, "error": "Invalid Stripe account", "needs_reconnect": True}
    except stripe.StripeError as exc:
        logger.error("Stripe account retrieval failed", extra={"barber_id": barber.id, "error": str(exc)})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=error_response("STRIPE_UNAVAILABLE", "Could not reach Stripe."),
        ) from exc

    return {
        "connected": True,
        "account_id": readiness.account_id,
        "fully_onboarded": readiness.fully_onboarded,
        "charges_enabled": readiness.charges_enabled,
        "payouts_enabled": readiness.payouts_enabled,
        "details_submitted": readiness.details_submitted,
    }


def connect_barber(pipeline: PaymentPipeline, barber_id: int) -> dict[str, object]:
    """Return a dashboard login link, or create an Express account and its onboarding link."""

    client = _require_stripe(pipeline)
    barber = _require_barber(pipeline, barber_id)

    try:
        if barber.stripe_account_id:
            try:
                client.retrieve_account_readiness(barber.stripe_account_id)
            except stripe.InvalidRequestError as exc:
                logger.info(
                    "Existing Stripe account invalid; creating a new one",
                    extra={"barber_id": barber.id, "error": str(exc)},
                )
                _forget_account(pipeline, barber, "invalid_account")
            else:
                login_url = client.create_login_link(barber.stripe_account_id)
                return {"login_url": login_url, "message": "Redirecting to Stripe dashboard"}

        account_id = client.create_connected_account(barber)
        barber.stripe_account_id = account_id
        log_audit(
            pipeline.db,
            actor="connect",
            action="STRIPE_ACCOUNT_CREATED",
            entity="Barber",
            entity_id=barber.id,
            data={"stripe_account_id": account_id},
        )
        pipeline.barbers.save(barber)
        logger.info("Stripe Express account created", extra={"barber_id": barber.id})

        onboarding_url = client.create_account_link(account_id)
    except stripe.StripeError as exc:
        logger.error("Stripe connect error", extra={"barber_id": barber.id, "error": str(exc)})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=error_response(
                "STRIPE_CONNECT_FAILED",
                getattr(exc, "user_message", None) or "Failed to connect Stripe.",
            ),
        ) from exc

    return {
        "onboarding_url": onboarding_url,
        "account_id": account_id,
        "message": "Redirecting to Stripe onboarding",
    }


def barber_earnings(pipeline: PaymentPipeline, barber_id: int) -> dict[str, object]:
    """Latest payments for a barber plus totals over succeeded payments."""

    barber = _require_barber(pipeline, barber_id)
    payments = pipeline.payments.list_for_barber(barber.id, limit=EARNINGS_PAGE_SIZE)

    total = pending = transferred = Decimal("0.00")
    for payment in payments:
        if payment.status != PaymentStatus.SUCCEEDED:
            continue
        total += payment.barber_amount
        if payment.transfer_status == TransferStatus.COMPLETED:
            transferred += payment.barber_amount
        elif payment.transfer_status == TransferStatus.PENDING:
            pending += payment.barber_amount

    return {
        "payments": payments,
        "summary": {
            "total_earnings": total,
            "pending_amount": pending,
            "transferred_amount": transferred,
            "total_payments": len(payments),
        },
    }


__all__ = ["barber_earnings", "connect_barber", "get_connect_status"]
