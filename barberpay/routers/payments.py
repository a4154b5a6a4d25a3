"""Payment ledger endpoints for operators."""
from fastapi import APIRouter, Depends, HTTPException, status

from barberpay.schemas.payment import PaymentRead, TransferRetryRead
from barberpay.security import require_operator_key
from barberpay.services import checkout as checkout_service
from barberpay.services.pipeline import PaymentPipeline, get_pipeline
from barberpay.services.transfers import retry_transfer
from barberpay.utils.errors import error_response

router = APIRouter(prefix="/payments", tags=["payments"], dependencies=[Depends(require_operator_key)])


@router.get("/{payment_id}", response_model=PaymentRead)
def get_payment(payment_id: int, pipeline: PaymentPipeline = Depends(get_pipeline)):
    payment = pipeline.payments.get(payment_id)
    if payment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("PAYMENT_NOT_FOUND", "Payment not found."),
        )
    return payment


@router.post("/retry-transfer/{payment_id}", response_model=TransferRetryRead)
def retry_payment_transfer(payment_id: int, pipeline: PaymentPipeline = Depends(get_pipeline)):
    """Re-attempt the payout of a payment whose transfer is pending or failed."""

    return retry_transfer(pipeline.transfers, payment_id)


@router.post("/reconcile/{appointment_id}", response_model=PaymentRead)
def reconcile_payment(appointment_id: int, pipeline: PaymentPipeline = Depends(get_pipeline)):
    """Record a succeeded payment whose webhook never arrived."""

    return checkout_service.reconcile_appointment(pipeline, appointment_id)
