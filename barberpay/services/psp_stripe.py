"""Stripe SDK wrapper for charge, Connect and payout operations."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict

import stripe
from fastapi import Depends

from barberpay.config import Settings, get_settings
from barberpay.utils.money import to_minor_units

if TYPE_CHECKING:  # pragma: no cover - hints only
    from barberpay.models import Appointment, Barber, Payment

logger = logging.getLogger(__name__)

_http_client_configured = False


@dataclass(frozen=True)
class AccountReadiness:
    """Readiness flags reported live by Stripe for a connected account."""

    account_id: str
    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool

    @property
    def can_receive_transfers(self) -> bool:
        return self.charges_enabled and self.payouts_enabled

    @property
    def fully_onboarded(self) -> bool:
        return self.details_submitted and self.charges_enabled and self.payouts_enabled

    @classmethod
    def from_account(cls, account: Any) -> "AccountReadiness":
        return cls(
            account_id=_field(account, "id"),
            charges_enabled=bool(_field(account, "charges_enabled")),
            payouts_enabled=bool(_field(account, "payouts_enabled")),
            details_submitted=bool(_field(account, "details_submitted")),
        )


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _configure_http_client(settings: Settings) -> None:
    """Bound every Stripe request by ``STRIPE_TIMEOUT_SECONDS`` (process-wide, once)."""

    global _http_client_configured
    if _http_client_configured:
        return
    stripe.default_http_client = stripe.RequestsClient(timeout=settings.STRIPE_TIMEOUT_SECONDS)
    stripe.max_network_retries = settings.STRIPE_MAX_NETWORK_RETRIES
    _http_client_configured = True


class StripeClient:
    """Wrapper around the Stripe Python SDK to isolate PSP concerns.

    The API key is passed per request rather than assigned to ``stripe.api_key``.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._secret_key = settings.STRIPE_SECRET_KEY
        self._webhook_secret = settings.STRIPE_WEBHOOK_SECRET
        self._currency = settings.STRIPE_CURRENCY

        if not self._secret_key:
            raise RuntimeError("Stripe secret key is missing; configure STRIPE_SECRET_KEY.")

        _configure_http_client(settings)

    def _request_options(self) -> Dict[str, Any]:
        return {"api_key": self._secret_key, "stripe_version": self.settings.STRIPE_API_VERSION}

    @property
    def currency(self) -> str:
        return self._currency

    # --- Webhooks ----------------------------------------------------------

    def construct_webhook_event(self, payload: bytes, sig_header: str | None) -> dict[str, Any]:
        """Verify the Stripe signature over the raw ``payload`` and decode it.

        Raises ``stripe.SignatureVerificationError`` on a bad or missing
        signature and ``ValueError`` on an undecodable body.
        """

        if not self._webhook_secret:
            raise RuntimeError(
                "Stripe webhook secret is missing; configure STRIPE_WEBHOOK_SECRET for verification."
            )
        text = payload.decode("utf-8")
        if not sig_header:
            raise stripe.SignatureVerificationError("Missing Stripe-Signature header", sig_header, text)
        stripe.WebhookSignature.verify_header(
            text,
            sig_header,
            self._webhook_secret,
            tolerance=self.settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
        )
        return json.loads(text)

    # --- Connected accounts -----------------------------------------------

    def retrieve_account_readiness(self, account_id: str) -> AccountReadiness:
        account = stripe.Account.retrieve(account_id, **self._request_options())
        return AccountReadiness.from_account(account)

    def create_connected_account(self, barber: "Barber") -> str:
        """Create a Stripe Connect Express account for ``barber`` and return its id."""

        account = stripe.Account.create(
            type="express",
            country=self.settings.STRIPE_CONNECT_COUNTRY,
            email=barber.email,
            capabilities={
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            business_type="individual",
            business_profile={
                "name": barber.name,
                "product_description": "Professional barbershop services",
                "support_email": barber.email,
            },
            metadata={"barber_id": str(barber.id), "barber_name": barber.name},
            **self._request_options(),
        )
        return _field(account, "id")

    def create_account_link(self, account_id: str) -> str:
        """Create an onboarding account link and return its URL."""

        dashboard_url = f"{self.settings.FRONTEND_URL.rstrip('/')}/barber/dashboard"
        link = stripe.AccountLink.create(
            account=account_id,
            refresh_url=dashboard_url,
            return_url=dashboard_url,
            type="account_onboarding",
            **self._request_options(),
        )
        return _field(link, "url")

    def create_login_link(self, account_id: str) -> str:
        """Create an Express dashboard login link and return its URL."""

        link = stripe.Account.create_login_link(account_id, **self._request_options())
        return _field(link, "url")

    # --- Charges -----------------------------------------------------------

    def create_payment_intent(self, appointment: "Appointment", amount: Decimal) -> tuple[str, str]:
        """Create a PaymentIntent for an appointment; returns ``(id, client_secret)``.

        Funds settle on the platform balance; the barber share leaves later as a
        separate transfer.
        """

        intent = stripe.PaymentIntent.create(
            amount=to_minor_units(amount),
            currency=self._currency,
            payment_method_types=["card"],
            receipt_email=appointment.email,
            metadata={
                "appointment_id": str(appointment.id),
                "barber_id": str(appointment.barber_id),
                "customerName": appointment.customer_name,
            },
            idempotency_key=f"appointment-{appointment.id}-intent",
            **self._request_options(),
        )
        return _field(intent, "id"), _field(intent, "client_secret")

    def retrieve_payment_intent(self, payment_intent_id: str) -> dict[str, Any]:
        intent = stripe.PaymentIntent.retrieve(payment_intent_id, **self._request_options())
        return {
            "id": _field(intent, "id"),
            "status": _field(intent, "status"),
            "amount": _field(intent, "amount"),
            "amount_received": _field(intent, "amount_received"),
            "currency": _field(intent, "currency"),
            "receipt_email": _field(intent, "receipt_email"),
            "metadata": dict(_field(intent, "metadata") or {}),
        }

    # --- Payouts -----------------------------------------------------------

    def create_transfer_to_connected(
        self,
        *,
        payment: "Payment",
        destination_account_id: str,
        idempotency_key: str,
    ) -> str:
        """Transfer ``payment.barber_amount`` from the platform balance; returns the transfer id."""

        metadata: Dict[str, Any] = {
            "payment_id": str(payment.id),
            "appointment_id": str(payment.appointment_id),
            "barber_id": str(payment.barber_id),
            "customer_name": payment.customer_name,
        }
        transfer = stripe.Transfer.create(
            amount=to_minor_units(payment.barber_amount),
            currency=payment.currency or self._currency,
            destination=destination_account_id,
            metadata=metadata,
            description=f"Payment for {payment.customer_name} - Appointment {payment.appointment_id}",
            idempotency_key=idempotency_key,
            **self._request_options(),
        )
        return _field(transfer, "id")


def get_stripe_client(settings: Settings = Depends(get_settings)) -> StripeClient | None:
    """FastAPI dependency returning the Stripe client, or ``None`` when unconfigured."""

    if not settings.stripe_configured:
        logger.warning("Stripe client requested but STRIPE_SECRET_KEY is not configured")
        return None
    return StripeClient(settings)


__all__ = ["AccountReadiness", "StripeClient", "get_stripe_client"]
