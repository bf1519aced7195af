"""Integration shortcuts."""

from .base import CheckoutGateway, CheckoutSession, CheckoutState, CheckoutStatus
from .dodo_client import DodoClient, DodoClientError
from .stripe_client import StripeClient, StripeClientError

__all__ = [
    "CheckoutGateway",
    "CheckoutSession",
    "CheckoutState",
    "CheckoutStatus",
    "DodoClient",
    "DodoClientError",
    "StripeClient",
    "StripeClientError",
]
