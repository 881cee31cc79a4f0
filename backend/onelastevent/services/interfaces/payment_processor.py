"""
Payment processor capability interface.
Allows swapping between the mock flow and a real processor at construction time.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ProcessorIntent:
    """Processor-side transaction opened for a local PENDING payment."""

    provider_payment_id: Optional[str] = None
    client_secret: Optional[str] = None


class PaymentProcessor(ABC):
    """
    Interface for payment processors.

    Implementations:
    - MockPaymentProcessor: no remote calls, completed via the mock endpoint
    - StripePaymentProcessor: Stripe PaymentIntents, confirmed by webhook
    """

    name: str = ""

    @abstractmethod
    async def create_intent(self, payment, event) -> ProcessorIntent:
        """
        Open a processor-side transaction for a PENDING payment.

        Args:
            payment: Local payment (id, amount, currency already set)
            event: Event being paid for

        Returns:
            ProcessorIntent with the processor reference and client handshake

        Raises:
            ProcessorFailureError: The processor rejected or failed the call
        """
        pass

    @abstractmethod
    async def refund(self, payment) -> None:
        """
        Refund a PAID payment in full.

        Raises:
            ProcessorFailureError: The processor rejected or failed the call
        """
        pass

    async def close(self) -> None:
        """Release network resources on shutdown."""
        pass
