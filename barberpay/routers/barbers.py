"""Barber Stripe Connect and earnings endpoints."""
from fastapi import APIRouter, Depends

from barberpay.schemas.barber import BarberPaymentsRead, StripeConnectRead, StripeStatusRead
from barberpay.security import require_operator_key
from barberpay.services import connect as connect_service
from barberpay.services.pipeline import PaymentPipeline, get_pipeline

router = APIRouter(prefix="/barbers", tags=["barbers"], dependencies=[Depends(require_operator_key)])


@router.post("/{barber_id}/stripe/connect", response_model=StripeConnectRead)
def connect_stripe(barber_id: int, pipeline: PaymentPipeline = Depends(get_pipeline)):
    return connect_service.connect_barber(pipeline, barber_id)


@router.get("/{barber_id}/stripe/status", response_model=StripeStatusRead)
def stripe_status(barber_id: int, pipeline: PaymentPipeline = Depends(get_pipeline)):
    return connect_service.get_connect_status(pipeline, barber_id)


@router.get("/{barber_id}/payments", response_model=BarberPaymentsRead)
def barber_payments(barber_id: int, pipeline: PaymentPipeline = Depends(get_pipeline)):
    """Latest payments for the barber with an earnings summary."""

    return connect_service.barber_earnings(pipeline, barber_id)
