"""Schemas for ledger entries."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from barberpay.models.payment import PaymentMethod, PaymentStatus, TransferStatus


class PaymentRead(BaseModel):
    id: int
    appointment_id: int
    barber_id: int
    customer_name: str
    total_amount: Decimal
    platform_fee: Decimal
    barber_amount: Decimal
    currency: str
    stripe_payment_intent_id: str
    stripe_transfer_id: str | None
    status: PaymentStatus
    transfer_status: TransferStatus
    transfer_attempts: int
    payment_method: PaymentMethod
    error_message: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransferRetryRead(BaseModel):
    success: bool
    message: str
    transferStatus: TransferStatus
