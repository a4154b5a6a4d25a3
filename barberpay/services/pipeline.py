"""Wiring of repositories and services for one request."""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends
from sqlalchemy.orm import Session

from barberpay.config import Settings, get_settings
from barberpay.db import get_db
from barberpay.repositories import AppointmentRepository, BarberRepository, PaymentRepository
from barberpay.services.ledger import PaymentLedger
from barberpay.services.projector import AppointmentStatusProjector
from barberpay.services.psp_stripe import StripeClient, get_stripe_client
from barberpay.services.transfers import TransferEngine


@dataclass
class PaymentPipeline:
    db: Session
    settings: Settings
    stripe: StripeClient | None
    payments: PaymentRepository
    appointments: AppointmentRepository
    barbers: BarberRepository
    transfers: TransferEngine
    ledger: PaymentLedger
    projector: AppointmentStatusProjector


def build_pipeline(db: Session, stripe_client: StripeClient | None, settings: Settings) -> PaymentPipeline:
    payments = PaymentRepository(db)
    appointments = AppointmentRepository(db)
    barbers = BarberRepository(db)
    transfers = TransferEngine(payments, barbers, stripe_client)
    ledger = PaymentLedger(
        payments=payments,
        appointments=appointments,
        barbers=barbers,
        transfers=transfers,
        platform_fee_percentage=settings.PLATFORM_FEE_PERCENTAGE,
        currency=settings.STRIPE_CURRENCY,
    )
    projector = AppointmentStatusProjector(appointments=appointments, payments=payments)
    return PaymentPipeline(
        db=db,
        settings=settings,
        stripe=stripe_client,
        payments=payments,
        appointments=appointments,
        barbers=barbers,
        transfers=transfers,
        ledger=ledger,
        projector=projector,
    )


def get_pipeline(
    db: Session = Depends(get_db),
    stripe_client: StripeClient | None = Depends(get_stripe_client),
    settings: Settings = Depends(get_settings),
) -> PaymentPipeline:
    """FastAPI dependency for the payment pipeline."""

    return build_pipeline(db, stripe_client, settings)


__all__ = ["PaymentPipeline", "build_pipeline", "get_pipeline"]
