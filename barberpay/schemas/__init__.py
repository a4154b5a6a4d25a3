"""Schema package exports."""
from .appointment import PaymentIntentRead
from .barber import BarberPaymentsRead, EarningsSummary, StripeConnectRead, StripeStatusRead
from .payment import PaymentRead, TransferRetryRead

__all__ = [
    "BarberPaymentsRead",
    "EarningsSummary",
    "PaymentIntentRead",
    "PaymentRead",
    "StripeConnectRead",
    "StripeStatusRead",
    "TransferRetryRead",
]
