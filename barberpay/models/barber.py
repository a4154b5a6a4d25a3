"""Barber model (payout-relevant fields only)."""
from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Barber(Base):
    """A barber who receives the non-platform share of each payment.

    ``stripe_account_id`` stays ``None`` until the barber starts Stripe Connect
    onboarding. Whether the account can actually receive transfers is always
    asked of Stripe, never cached here.
    """

    __tablename__ = "barbers"

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    branch_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    stripe_account_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
