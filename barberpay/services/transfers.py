"""Transfer engine: pays the barber share of a payment to the barber's connected account."""
from __future__ import annotations

import enum
import logging
from datetime import timedelta

import stripe
from fastapi import HTTPException, status

from barberpay.models import Barber, Payment, PaymentStatus, TransferStatus
from barberpay.repositories import BarberRepository, PaymentRepository
from barberpay.services.psp_stripe import StripeClient
from barberpay.utils.audit import log_audit
from barberpay.utils.errors import error_response
from barberpay.utils.time import utcnow

logger = logging.getLogger(__name__)

UNKNOWN_OUTCOME_PREFIX = "Transfer outcome unknown"


class TransferOutcome(str, enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    NOT_READY = "not_ready"
    NO_ACCOUNT = "no_account"
    NOT_CONFIGURED = "not_configured"
    SKIPPED = "skipped"


def _stripe_message(exc: stripe.StripeError) -> str:
    return getattr(exc, "user_message", None) or str(exc) or exc.__class__.__name__


def _outcome_unknown(exc: stripe.StripeError) -> bool:
    """Network failures and 5xx answers leave the transfer indeterminate."""

    if isinstance(exc, stripe.APIConnectionError):
        return True
    if isinstance(exc, stripe.APIError):
        return exc.http_status is None or exc.http_status >= 500
    return False


class TransferEngine:
    """Moves ``barber_amount`` from the platform balance to a connected account.

    Every attempt first claims the payment (``pending``/``failed`` to
    ``processing``) through a conditional update, so concurrent retries of the
    same payment cannot both reach Stripe. Provider errors are recorded on the
    payment and never raised.
    """

    def __init__(
        self,
        payments: PaymentRepository,
        barbers: BarberRepository,
        stripe_client: StripeClient | None,
    ) -> None:
        self.payments = payments
        self.barbers = barbers
        self.stripe = stripe_client

    @property
    def configured(self) -> bool:
        return self.stripe is not None

    def transfer(self, payment: Payment, barber: Barber, *, source: str = "system") -> TransferOutcome:
        log_extra = {"payment_id": payment.id, "barber_id": barber.id, "source": source}

        if self.stripe is None:
            logger.error("Stripe not configured; transfer not attempted", extra=log_extra)
            return TransferOutcome.NOT_CONFIGURED

        if not barber.stripe_account_id:
            logger.info("Barber has no connected account; holding payment", extra=log_extra)
            return TransferOutcome.NO_ACCOUNT

        if not self.payments.claim_transfer(payment.id):
            self.payments.db.refresh(payment)
            logger.info(
                "Transfer claim not acquired",
                extra={**log_extra, "transfer_status": payment.transfer_status.value},
            )
            return TransferOutcome.SKIPPED
        self.payments.db.refresh(payment)

        try:
            readiness = self.stripe.retrieve_account_readiness(barber.stripe_account_id)
        except stripe.StripeError as exc:
            logger.warning("Connected account lookup failed", extra={**log_extra, "error": str(exc)})
            return self._release_failed(
                payment, f"Account check failed: {_stripe_message(exc)}", source=source
            )

        if not readiness.can_receive_transfers:
            logger.info(
                "Connected account not ready for transfers",
                extra={
                    **log_extra,
                    "charges_enabled": readiness.charges_enabled,
                    "payouts_enabled": readiness.payouts_enabled,
                },
            )
            payment.transfer_status = TransferStatus.PENDING
            payment.transfer_claimed_at = None
            self.payments.save(payment)
            return TransferOutcome.NOT_READY

        idempotency_key = payment.transfer_idempotency_key
        logger.info(
            "Creating transfer to barber",
            extra={**log_extra, "amount": str(payment.barber_amount), "idempotency_key": idempotency_key},
        )
        try:
            transfer_id = self.stripe.create_transfer_to_connected(
                payment=payment,
                destination_account_id=barber.stripe_account_id,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as exc:
            if _outcome_unknown(exc):
                # Stripe may have executed the transfer; the attempt counter is kept
                # so a retry replays the same idempotency key.
                logger.critical(
                    "Transfer outcome unknown after provider failure",
                    extra={**log_extra, "idempotency_key": idempotency_key, "error": str(exc)},
                )
                return self._release_failed(
                    payment, f"{UNKNOWN_OUTCOME_PREFIX}: {_stripe_message(exc)}", source=source
                )
            logger.error("Transfer rejected by Stripe", extra={**log_extra, "error": str(exc)})
            return self._release_failed(
                payment, _stripe_message(exc), source=source, definitive=True
            )

        payment.stripe_transfer_id = transfer_id
        payment.transfer_status = TransferStatus.COMPLETED
        payment.transfer_claimed_at = None
        payment.error_message = None
        log_audit(
            self.payments.db,
            actor=source,
            action="TRANSFER_COMPLETED",
            entity="Payment",
            entity_id=payment.id,
            data={
                "stripe_transfer_id": transfer_id,
                "barber_id": barber.id,
                "amount": str(payment.barber_amount),
                "idempotency_key": idempotency_key,
            },
        )
        self.payments.save(payment)
        logger.info("Transfer successful", extra={**log_extra, "stripe_transfer_id": transfer_id})
        return TransferOutcome.COMPLETED

    def _release_failed(
        self, payment: Payment, message: str, *, source: str, definitive: bool = False
    ) -> TransferOutcome:
        payment.transfer_status = TransferStatus.FAILED
        payment.transfer_claimed_at = None
        payment.error_message = message
        if definitive:
            payment.transfer_attempts += 1
        log_audit(
            self.payments.db,
            actor=source,
            action="TRANSFER_FAILED",
            entity="Payment",
            entity_id=payment.id,
            data={"error": message, "transfer_attempts": payment.transfer_attempts},
        )
        self.payments.save(payment)
        return TransferOutcome.FAILED

    def transfer_pending_for_barber(self, barber: Barber, *, source: str = "account_updated") -> dict[int, TransferOutcome]:
        """Attempt every succeeded payment of ``barber`` still waiting for a transfer."""

        pending = self.payments.pending_transfers_for_barber(barber.id)
        logger.info(
            "Transferring pending payments",
            extra={"barber_id": barber.id, "count": len(pending)},
        )
        return {payment.id: self.transfer(payment, barber, source=source) for payment in pending}

    def release_stale_claims(self, *, ttl_seconds: int) -> int:
        """Fail payments stuck in ``processing`` beyond ``ttl_seconds``.

        Money may have moved for these; they are surfaced for reconciliation and
        a later retry reuses the same idempotency key.
        """

        cutoff = utcnow() - timedelta(seconds=ttl_seconds)
        released = 0
        for payment in self.payments.stale_claims(cutoff):
            logger.critical(
                "Stale transfer claim released; reconcile with Stripe",
                extra={"payment_id": payment.id, "idempotency_key": payment.transfer_idempotency_key},
            )
            payment.transfer_status = TransferStatus.FAILED
            payment.transfer_claimed_at = None
            payment.error_message = f"{UNKNOWN_OUTCOME_PREFIX}: claim expired before completion"
            log_audit(
                self.payments.db,
                actor="scheduler",
                action="TRANSFER_CLAIM_EXPIRED",
                entity="Payment",
                entity_id=payment.id,
                data={"idempotency_key": payment.transfer_idempotency_key},
            )
            self.payments.save(payment)
            released += 1
        return released


def retry_transfer(engine: TransferEngine, payment_id: int) -> dict[str, object]:
    """Operator-triggered retry of a single payment's transfer."""

    payment = engine.payments.get(payment_id)
    if payment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("PAYMENT_NOT_FOUND", "Payment not found."),
        )
    if payment.transfer_status == TransferStatus.COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("ALREADY_TRANSFERRED", "Already transferred."),
        )
    if payment.status != PaymentStatus.SUCCEEDED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response(
                "PAYMENT_NOT_SUCCEEDED",
                f"Payment is {payment.status.value}; only succeeded payments are transferred.",
            ),
        )
    barber = engine.barbers.get(payment.barber_id)
    if barber is None or not barber.stripe_account_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_response("BARBER_NOT_CONNECTED", "Barber has no Stripe account."),
        )
    if payment.transfer_status == TransferStatus.PROCESSING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response("TRANSFER_IN_PROGRESS", "A transfer attempt is already in progress."),
        )
    if not engine.configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_response("STRIPE_NOT_CONFIGURED", "Stripe not configured."),
        )

    outcome = engine.transfer(payment, barber, source="manual_retry")
    if outcome == TransferOutcome.SKIPPED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error_response("TRANSFER_IN_PROGRESS", "A transfer attempt is already in progress."),
        )
    return {
        "success": True,
        "message": "Transfer retry initiated",
        "transferStatus": payment.transfer_status.value,
    }


__all__ = ["TransferEngine", "TransferOutcome", "retry_transfer", "UNKNOWN_OUTCOME_PREFIX"]
