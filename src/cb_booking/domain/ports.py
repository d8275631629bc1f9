"""Outbound ports for the booking context.

PaymentIntentGateway is the only external system the booking flow talks to.
It is invoked outside any open transaction: once to open an order while
creating a booking, and once more to read the order back before a payment
confirmation is allowed to move escrow.
"""

from dataclasses import dataclass
from typing import Protocol

# Provider order status that means the money was captured
ORDER_PAID = "PAID"


@dataclass(frozen=True)
class PaymentIntent:
    intent_id: str
    client_session: str


@dataclass(frozen=True)
class PaymentVerification:
    intent_id: str
    status: str
    amount: int  # paise

    @property
    def is_paid(self) -> bool:
        return self.status == ORDER_PAID


class PaymentIntentGatewayProtocol(Protocol):
    async def create_intent(
        self, amount: int, booking_ref: str, customer_id: str
    ) -> PaymentIntent:
        """Raises PaymentGatewayError when the provider rejects or is unreachable."""
        ...

    async def verify_intent(self, intent_id: str) -> PaymentVerification:
        """Read the order back from the provider. Same error contract as create_intent."""
        ...
