"""Currency arithmetic for the ledger.

Amounts are held as ``Decimal`` major units (pounds) with two decimal places;
Stripe speaks integer minor units (pence).
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(amount) -> Decimal:
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def from_minor_units(amount: int) -> Decimal:
    """Convert Stripe's smallest currency unit to a two-decimal amount."""

    return quantize(Decimal(int(amount)) / HUNDRED)


def to_minor_units(amount) -> int:
    """Convert a decimal amount to the smallest currency unit expected by Stripe."""

    return int((quantize(amount) * HUNDRED).to_integral_value(rounding=ROUND_HALF_UP))


def split_platform_fee(total, percentage) -> tuple[Decimal, Decimal]:
    """Return ``(platform_fee, barber_amount)`` for ``total``.

    The fee is rounded half-up to the cent and the barber share is the exact
    remainder, so the two always add back up to ``total``.
    """

    total = quantize(total)
    platform_fee = quantize(total * to_decimal(percentage) / HUNDRED)
    return platform_fee, total - platform_fee


__all__ = ["from_minor_units", "quantize", "split_platform_fee", "to_decimal", "to_minor_units"]
