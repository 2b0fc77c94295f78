"""Payment gateway port (abstract interface).

The storefront creates a gateway order out of band; the customer pays on the
gateway, which then hands back a signed confirmation that is checked by
``payments.signature``. Adapters only have to implement order creation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class GatewayError(Exception):
    """The gateway rejected or could not process a request."""


@dataclass(frozen=True)
class GatewayOrder:
    """An order registered with the payment gateway."""

    gateway_order_id: str
    amount: int  # minor units (cents)
    currency: str
    receipt: str
    status: str = "created"


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_order(self, amount: int, currency: str, receipt: str) -> GatewayOrder:
        """Register a payable order of ``amount`` minor units with the gateway."""
        ...
