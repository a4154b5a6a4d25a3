"""Background jobs run by the scheduler."""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from barberpay import db
from barberpay.config import get_settings
from barberpay.repositories import BarberRepository, PaymentRepository
from barberpay.services.psp_stripe import StripeClient
from barberpay.services.transfers import TransferEngine

logger = logging.getLogger(__name__)


def release_stale_transfer_claims_once(db_session: Session | None = None) -> int:
    """Mark transfers stuck in ``processing`` past the claim TTL as failed."""

    settings = get_settings()
    session = db_session if db_session is not None else db.get_sessionmaker()()
    try:
        stripe_client = StripeClient(settings) if settings.stripe_configured else None
        engine = TransferEngine(PaymentRepository(session), BarberRepository(session), stripe_client)
        released = engine.release_stale_claims(ttl_seconds=settings.TRANSFER_CLAIM_TTL_SECONDS)
        if released:
            logger.warning("Released stale transfer claims", extra={"count": released})
        return released
    finally:
        if db_session is None:
            session.close()


__all__ = ["release_stale_transfer_claims_once"]
