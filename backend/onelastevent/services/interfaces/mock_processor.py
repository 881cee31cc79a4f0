"""
Mock payment processor - no remote calls.
Payments are settled through POST /payments/{id}/mock.
"""

from onelastevent.services.interfaces.payment_processor import PaymentProcessor, ProcessorIntent

MOCK_PROVIDER = "mock"


class MockPaymentProcessor(PaymentProcessor):
    """
    Always succeeds, never talks to a network.

    Use when:
    - Local development and tests
    - No processor credentials are configured
    """

    name = MOCK_PROVIDER

    async def create_intent(self, payment, event) -> ProcessorIntent:
        """Nothing to open - the payment stays PENDING until mock completion."""
        return ProcessorIntent()

    async def refund(self, payment) -> None:
        """No-op - no money was moved."""
        pass
