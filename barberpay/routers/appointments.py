"""Appointment checkout endpoints."""
from fastapi import APIRouter, Depends, status

from barberpay.schemas.appointment import PaymentIntentRead
from barberpay.security import require_operator_key
from barberpay.services import checkout as checkout_service
from barberpay.services.pipeline import PaymentPipeline, get_pipeline

router = APIRouter(prefix="/appointments", tags=["appointments"], dependencies=[Depends(require_operator_key)])


@router.post(
    "/{appointment_id}/payment-intent",
    response_model=PaymentIntentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_payment_intent(appointment_id: int, pipeline: PaymentPipeline = Depends(get_pipeline)):
    return checkout_service.create_payment_intent(pipeline, appointment_id)
