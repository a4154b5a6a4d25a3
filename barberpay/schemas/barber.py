"""Schemas for barber Connect onboarding and earnings."""
from decimal import Decimal

from pydantic import BaseModel

from .payment import PaymentRead


class StripeConnectRead(BaseModel):
    message: str
    login_url: str | None = None
    onboarding_url: str | None = None
    account_id: str | None = None


class StripeStatusRead(BaseModel):
    connected: bool
    message: str | None = None
    error: str | None = None
    needs_reconnect: bool = False
    account_id: str | None = None
    fully_onboarded: bool = False
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False


class EarningsSummary(BaseModel):
    total_earnings: Decimal
    pending_amount: Decimal
    transferred_amount: Decimal
    total_payments: int


class BarberPaymentsRead(BaseModel):
    payments: list[PaymentRead]
    summary: EarningsSummary
