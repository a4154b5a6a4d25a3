"""Schemas for appointment checkout."""
from pydantic import BaseModel


class PaymentIntentRead(BaseModel):
    appointment_id: int
    payment_intent_id: str
    client_secret: str
    amount_minor: int
