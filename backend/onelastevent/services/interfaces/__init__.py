"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .payment_processor import PaymentProcessor, ProcessorIntent
from .mock_processor import MockPaymentProcessor

__all__ = ['PaymentProcessor', 'ProcessorIntent', 'MockPaymentProcessor']
