"""Services handling Stripe webhook callbacks."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import stripe
from fastapi import Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from barberpay.repositories import BarberRepository
from barberpay.services.ledger import PaymentLedger
from barberpay.services.pipeline import PaymentPipeline, get_pipeline
from barberpay.services.projector import AppointmentStatusProjector
from barberpay.services.psp_stripe import AccountReadiness, StripeClient
from barberpay.services.transfers import TransferEngine

logger = logging.getLogger(__name__)


class WebhookVerificationError(Exception):
    """The webhook body could not be authenticated or decoded."""


@dataclass(frozen=True)
class WebhookConfig:
    """Explicit configuration for the ingress.

    ``stripe_client`` is ``None`` when Stripe is not configured;
    ``webhook_secret`` is ``None`` when deliveries are accepted unsigned.
    """

    stripe_client: StripeClient | None
    webhook_secret: str | None


class StripeWebhookProcessor:
    """Authenticates Stripe events and routes them to the ledger, projector and engine."""

    def __init__(
        self,
        config: WebhookConfig,
        *,
        ledger: PaymentLedger,
        projector: AppointmentStatusProjector,
        transfers: TransferEngine,
        barbers: BarberRepository,
    ) -> None:
        self.config = config
        self.ledger = ledger
        self.projector = projector
        self.transfers = transfers
        self.barbers = barbers

    @property
    def configured(self) -> bool:
        return self.config.stripe_client is not None

    def parse_event(self, payload: bytes, sig_header: str | None) -> dict[str, Any]:
        """Return the decoded event, verifying the signature when a secret is configured."""

        if self.config.webhook_secret:
            if self.config.stripe_client is None:
                raise RuntimeError("Stripe not configured")
            try:
                event = self.config.stripe_client.construct_webhook_event(payload, sig_header)
            except stripe.SignatureVerificationError as exc:
                raise WebhookVerificationError(str(exc) or "Invalid signature") from exc
            except ValueError as exc:
                raise WebhookVerificationError(f"Invalid payload: {exc}") from exc
            logger.info("Webhook verified", extra={"event_type": event.get("type"), "event_id": event.get("id")})
        else:
            try:
                event = json.loads(payload.decode("utf-8"))
            except ValueError as exc:
                raise WebhookVerificationError(f"Invalid payload: {exc}") from exc
            logger.warning(
                "Webhook accepted without signature verification; configure STRIPE_WEBHOOK_SECRET",
                extra={"event_type": event.get("type") if isinstance(event, dict) else None},
            )
        if not isinstance(event, dict):
            raise WebhookVerificationError("Invalid payload: expected a JSON object")
        data = event.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("object", {}), dict):
            raise WebhookVerificationError("Invalid payload: data.object must be a JSON object")
        return event

    def dispatch(self, event: Mapping[str, Any]) -> None:
        """Route ``event`` to its handler.

        Exceptions from the payment-succeeded path propagate so that Stripe
        redelivers; the other handlers log and swallow their own failures.
        """

        event_type = event.get("type") or ""
        obj = event["data"].get("object") or {}
        logger.info("Processing Stripe event", extra={"event_type": event_type, "event_id": event.get("id")})

        if event_type == "payment_intent.succeeded":
            self.ledger.record_payment_succeeded(obj)
        elif event_type == "payment_intent.payment_failed":
            self._guarded(event_type, self.projector.payment_failed, obj)
        elif event_type == "account.updated":
            self._guarded(event_type, self._account_updated, obj)
        elif event_type == "transfer.created":
            self._guarded(event_type, self.projector.transfer_created, obj)
        elif event_type in ("transfer.reversed", "transfer.failed"):
            self._guarded(event_type, self.projector.transfer_failed, obj)
        elif event_type == "transfer.updated":
            self._guarded(event_type, self.projector.transfer_updated, obj)
        else:
            logger.info("Unhandled Stripe event type", extra={"event_type": event_type})

    def _guarded(self, event_type: str, handler: Callable[[Mapping[str, Any]], None], obj: Mapping[str, Any]) -> None:
        try:
            handler(obj)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Stripe event handler failed", extra={"event_type": event_type, "object_id": obj.get("id")}
            )
            self.barbers.db.rollback()

    def _account_updated(self, account: Mapping[str, Any]) -> None:
        barber = self.barbers.find_by_stripe_account_id(account["id"])
        if barber is None:
            logger.info("Account update for unknown barber", extra={"stripe_account_id": account["id"]})
            return

        readiness = AccountReadiness.from_account(account)
        logger.info(
            "Connected account updated",
            extra={
                "barber_id": barber.id,
                "details_submitted": readiness.details_submitted,
                "charges_enabled": readiness.charges_enabled,
                "payouts_enabled": readiness.payouts_enabled,
            },
        )
        if readiness.fully_onboarded:
            self.transfers.transfer_pending_for_barber(barber)


def get_webhook_processor(pipeline: PaymentPipeline = Depends(get_pipeline)) -> StripeWebhookProcessor:
    config = WebhookConfig(
        stripe_client=pipeline.stripe,
        webhook_secret=pipeline.settings.STRIPE_WEBHOOK_SECRET,
    )
    return StripeWebhookProcessor(
        config,
        ledger=pipeline.ledger,
        projector=pipeline.projector,
        transfers=pipeline.transfers,
        barbers=pipeline.barbers,
    )


async def handle_stripe_webhook(request: Request, processor: StripeWebhookProcessor) -> Response:
    """Authenticate, dispatch and answer one Stripe webhook delivery."""

    if not processor.configured:
        logger.error("Stripe webhook received while Stripe is not configured")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"error": "Stripe not configured"},
        )

    payload = await request.body()
    try:
        event = processor.parse_event(payload, request.headers.get("Stripe-Signature"))
    except WebhookVerificationError as exc:
        logger.warning("Webhook signature verification failed", extra={"error": str(exc)})
        return PlainTextResponse(f"Webhook Error: {exc}", status_code=status.HTTP_400_BAD_REQUEST)

    try:
        processor.dispatch(event)
    except Exception:  # noqa: BLE001
        logger.exception(
            "Webhook handler error",
            extra={"event_type": event.get("type"), "event_id": event.get("id")},
        )
        processor.barbers.db.rollback()
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Webhook processing failed"},
        )
    return JSONResponse(status_code=status.HTTP_200_OK, content={"received": True})


__all__ = [
    "StripeWebhookProcessor",
    "WebhookConfig",
    "WebhookVerificationError",
    "get_webhook_processor",
    "handle_stripe_webhook",
]
