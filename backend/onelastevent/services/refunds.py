"""
Payment settlement shared by the inscription and payment ledgers.

A cancelled inscription never keeps an active payment: a PAID payment is
refunded, a PENDING one is marked FAILED so a late processor success cannot
confirm a registration that no longer exists.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from onelastevent.models.inscription import Inscription
from onelastevent.models.payment import Payment
from onelastevent.models.user import User
from onelastevent.domain.errors import ProcessorFailureError
from onelastevent.domain.status import PAYMENT_MACHINE, ACTIVE_PAYMENT_STATUSES, PaymentStatus
from onelastevent.services import notification_service
from onelastevent.services.interfaces.mock_processor import MOCK_PROVIDER
from onelastevent.services.interfaces.payment_processor import PaymentProcessor
from onelastevent.services.transitions import transition
from onelastevent.core.metrics import record_payment_transition
from onelastevent.core.logging import get_logger

logger = get_logger(__name__)


async def get_active_payment_for_inscription(
    db: AsyncSession, inscription_id: int
) -> Optional[Payment]:
    result = await db.execute(
        select(Payment)
        .where(
            Payment.inscription_id == inscription_id,
            Payment.status.in_(ACTIVE_PAYMENT_STATUSES),
        )
        .order_by(Payment.id.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def refund_payment(
    db: AsyncSession,
    payment: Payment,
    processor: Optional[PaymentProcessor] = None,
) -> Payment:
    """
    Refund a PAID payment: processor first, then PAID -> REFUNDED.

    Raises:
        CannotRefundError: Payment is not PAID
        ProcessorFailureError: The processor refused, or the payment belongs to
            a processor that is not configured
    """
    PAYMENT_MACHINE.ensure(payment.status, PaymentStatus.REFUNDED)

    if processor is not None and payment.provider == processor.name:
        await processor.refund(payment)
    elif payment.provider != MOCK_PROVIDER:
        logger.error(
            "refund_processor_unavailable",
            payment_id=payment.id,
            provider=payment.provider,
        )
        raise ProcessorFailureError(f"No processor configured for provider {payment.provider}")

    await transition(
        db,
        payment,
        PAYMENT_MACHINE,
        PaymentStatus.REFUNDED,
        refunded_at=datetime.now(timezone.utc),
    )
    record_payment_transition(PaymentStatus.REFUNDED.value)

    user = await db.get(User, payment.user_id)
    await notification_service.send_refund_confirmation(user.email, payment)

    logger.info(
        "payment_refunded",
        payment_id=payment.id,
        amount=str(payment.amount),
        currency=payment.currency,
    )
    return payment


async def settle_cancelled_inscription(
    db: AsyncSession,
    inscription: Inscription,
    processor: Optional[PaymentProcessor] = None,
) -> Optional[Payment]:
    """Returns the refunded payment, if a refund happened."""
    payment = await get_active_payment_for_inscription(db, inscription.id)
    if payment is None:
        return None

    if payment.status == PaymentStatus.PAID.value:
        return await refund_payment(db, payment, processor)

    await transition(db, payment, PAYMENT_MACHINE, PaymentStatus.FAILED)
    record_payment_transition(PaymentStatus.FAILED.value)
    logger.info("pending_payment_abandoned", payment_id=payment.id, inscription_id=inscription.id)
    return None
