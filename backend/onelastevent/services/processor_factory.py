"""
Payment processor factory.
Configures which processor the payment ledger talks to.
"""

from typing import Optional

from onelastevent.core.config import get_settings
from onelastevent.core.logging import get_logger
from onelastevent.services.interfaces.payment_processor import PaymentProcessor
from onelastevent.services.interfaces.mock_processor import MockPaymentProcessor
from onelastevent.services.stripe_processor import StripePaymentProcessor

logger = get_logger(__name__)


def build_payment_processor() -> PaymentProcessor:
    """
    Build the configured processor.

    - PAYMENT_PROVIDER=stripe with an sk_ key: StripePaymentProcessor
    - Anything else: MockPaymentProcessor
    """
    settings = get_settings()

    if settings.stripe_enabled:
        return StripePaymentProcessor(secret_key=settings.STRIPE_SECRET_KEY)
    if settings.PAYMENT_PROVIDER == "stripe":
        logger.warning("stripe_not_configured", message="Falling back to mock payments")
    return MockPaymentProcessor()


# Singleton instance
_processor: Optional[PaymentProcessor] = None


def get_payment_processor() -> PaymentProcessor:
    """Processor singleton; also used as a FastAPI dependency so tests can override it."""
    global _processor
    if _processor is None:
        _processor = build_payment_processor()
        logger.info("payment_processor_ready", provider=_processor.name)
    return _processor


async def close_payment_processor() -> None:
    global _processor
    if _processor is not None:
        await _processor.close()
        _processor = None
