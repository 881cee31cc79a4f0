"""
Payment ledger for paid events.

PAYMENT FLOW
============

  initialize  -> inscription PENDING (spot reserved) + payment PENDING
                 (+ processor intent when a real processor is configured)
  mock / webhook success -> payment PAID -> inscription CONFIRMED
  mock / webhook failure -> payment FAILED; inscription stays PENDING and the
                 user can initialize again, which opens a new payment
  refund      -> processor refund -> payment REFUNDED -> inscription CANCELLED

Every status change goes through the payment transition table as a
compare-and-set UPDATE, so a redelivered webhook finds the payment already
PAID and becomes a logged no-op instead of a second confirmation.
"""

from typing import Optional
from uuid import uuid4

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from onelastevent.models.event import Event
from onelastevent.models.inscription import Inscription
from onelastevent.models.payment import Payment
from onelastevent.models.user import User
from onelastevent.domain.errors import (
    NotFoundError,
    NotOwnerError,
    ForbiddenError,
    AlreadyRegisteredError,
    EventIsFreeError,
    EventNotAvailableError,
    InvalidStateError,
)
from onelastevent.domain.status import (
    INSCRIPTION_MACHINE,
    PAYMENT_MACHINE,
    EventStatus,
    InscriptionStatus,
    PaymentStatus,
)
from onelastevent.services import event_service, inscription_service, notification_service, refunds
from onelastevent.services.interfaces.mock_processor import MOCK_PROVIDER
from onelastevent.services.interfaces.payment_processor import PaymentProcessor
from onelastevent.services.transitions import transition
from onelastevent.core.metrics import record_payment_transition, record_provider_callback
from onelastevent.core.logging import get_logger

logger = get_logger(__name__)

SUCCESS_EVENT_TYPES = frozenset({"payment_intent.succeeded"})
FAILURE_EVENT_TYPES = frozenset({"payment_intent.payment_failed"})


async def get_payment(db: AsyncSession, payment_id: int) -> Payment:
    result = await db.execute(
        select(Payment)
        .where(Payment.id == payment_id)
        .execution_options(populate_existing=True)
    )
    payment = result.scalar_one_or_none()

    if not payment:
        raise NotFoundError.payment()
    return payment


async def initialize_payment(
    db: AsyncSession,
    event_id: int,
    user_id: int,
    processor: PaymentProcessor,
    notes: Optional[str] = None,
) -> tuple[Payment, Inscription]:
    """
    Open (or reuse) the PENDING payment of a user's inscription.

    Safe to call again after a timeout: an existing PENDING payment is
    returned instead of a duplicate.

    Raises:
        EventNotAvailableError: Event is not PUBLISHED
        EventIsFreeError: Use the free registration path
        AlreadyRegisteredError: The inscription is already CONFIRMED
        EventFullError: A new inscription was needed and no spot is left
        ProcessorFailureError: The processor could not open the transaction
    """
    event = await event_service.get_event(db, event_id)
    if event.status != EventStatus.PUBLISHED.value:
        raise EventNotAvailableError()
    if event.is_free:
        raise EventIsFreeError("This event is free, register without payment")

    inscription = await inscription_service.find_inscription(db, event_id, user_id)
    if inscription is not None and inscription.status == InscriptionStatus.CONFIRMED.value:
        raise AlreadyRegisteredError()
    if inscription is None or inscription.status == InscriptionStatus.CANCELLED.value:
        inscription = await inscription_service.register(db, event_id, user_id, notes=notes)

    existing = await refunds.get_active_payment_for_inscription(db, inscription.id)
    if existing is not None:
        if existing.status != PaymentStatus.PENDING.value:
            raise AlreadyRegisteredError()
        logger.info("payment_reused", payment_id=existing.id, inscription_id=inscription.id)
        return existing, inscription

    payment = Payment(
        user_id=user_id,
        event_id=event_id,
        inscription_id=inscription.id,
        amount=event.price,
        currency=event.currency,
        provider=processor.name,
        status=PaymentStatus.PENDING.value,
    )
    try:
        async with db.begin_nested():
            db.add(payment)
    except IntegrityError:
        # A concurrent initialize opened the active payment first
        existing = await refunds.get_active_payment_for_inscription(db, inscription.id)
        if existing is None or existing.status != PaymentStatus.PENDING.value:
            raise AlreadyRegisteredError()
        logger.info("payment_reused", payment_id=existing.id, inscription_id=inscription.id)
        return existing, inscription
    await db.refresh(payment)

    intent = await processor.create_intent(payment, event)
    if intent.provider_payment_id or intent.client_secret:
        payment.provider_payment_id = intent.provider_payment_id
        payment.metadata_ = {"client_secret": intent.client_secret}
        await db.flush()
        await db.refresh(payment)

    logger.info(
        "payment_initialized",
        payment_id=payment.id,
        inscription_id=inscription.id,
        event_id=event_id,
        amount=str(payment.amount),
        currency=payment.currency,
        provider=payment.provider,
    )
    return payment, inscription


async def _after_paid(db: AsyncSession, payment: Payment) -> None:
    record_payment_transition(PaymentStatus.PAID.value)
    await inscription_service.confirm(db, payment.inscription_id)

    event = await event_service.get_event(db, payment.event_id)
    user = await db.get(User, payment.user_id)
    await notification_service.send_payment_confirmation(user.email, payment, event)


async def complete_mock_payment(
    db: AsyncSession,
    payment_id: int,
    simulate_failure: bool = False,
    requester_id: Optional[int] = None,
) -> Payment:
    """Settle a mock payment without a processor (development and tests)."""
    payment = await get_payment(db, payment_id)
    if requester_id is not None and payment.user_id != requester_id:
        raise NotOwnerError("Only the paying user can complete this payment")
    if payment.provider != MOCK_PROVIDER:
        raise ForbiddenError("Mock completion is only available for mock payments")

    if simulate_failure:
        await transition(db, payment, PAYMENT_MACHINE, PaymentStatus.FAILED)
        record_payment_transition(PaymentStatus.FAILED.value)
        logger.info("mock_payment_failed", payment_id=payment.id)
        return payment

    await transition(
        db,
        payment,
        PAYMENT_MACHINE,
        PaymentStatus.PAID,
        provider_payment_id=f"mock_{uuid4().hex[:16]}",
    )
    await _after_paid(db, payment)

    logger.info("mock_payment_completed", payment_id=payment.id)
    return payment


async def _find_callback_payment(db: AsyncSession, data: dict) -> Optional[Payment]:
    metadata = data.get("metadata") or {}
    payment_id = metadata.get("payment_id")
    if payment_id is not None:
        try:
            return await get_payment(db, int(payment_id))
        except (NotFoundError, TypeError, ValueError):
            pass

    provider_payment_id = data.get("id")
    if not provider_payment_id:
        return None
    result = await db.execute(
        select(Payment)
        .where(Payment.provider_payment_id == provider_payment_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def handle_provider_callback(db: AsyncSession, payload: dict) -> dict:
    """
    Apply a processor event. Never fails on redelivery or unknown input.

    Returns:
        {"received": True} in every non-exceptional case
    """
    event_type = payload.get("type") or ""
    data = (payload.get("data") or {}).get("object") or {}

    if event_type in SUCCESS_EVENT_TYPES:
        target = PaymentStatus.PAID
    elif event_type in FAILURE_EVENT_TYPES:
        target = PaymentStatus.FAILED
    else:
        record_provider_callback("other", "ignored")
        logger.info("provider_callback_ignored", type=event_type)
        return {"received": True}

    payment = await _find_callback_payment(db, data)
    if payment is None:
        record_provider_callback(event_type, "ignored")
        logger.warning("provider_callback_unmatched", type=event_type, object_id=data.get("id"))
        return {"received": True}

    if not PAYMENT_MACHINE.can(payment.status, target):
        record_provider_callback(event_type, "duplicate")
        logger.info(
            "provider_callback_duplicate",
            type=event_type,
            payment_id=payment.id,
            status=payment.status,
        )
        return {"received": True}

    values = {}
    if payment.provider_payment_id is None and data.get("id"):
        values["provider_payment_id"] = data["id"]
    try:
        await transition(db, payment, PAYMENT_MACHINE, target, **values)
    except InvalidStateError:
        # Concurrent redelivery applied it first
        record_provider_callback(event_type, "duplicate")
        return {"received": True}

    if target is PaymentStatus.PAID:
        await _after_paid(db, payment)
    else:
        record_payment_transition(PaymentStatus.FAILED.value)

    record_provider_callback(event_type, "applied")
    logger.info("provider_callback_applied", type=event_type, payment_id=payment.id)
    return {"received": True}


async def refund(
    db: AsyncSession,
    payment_id: int,
    requester_id: int,
    processor: Optional[PaymentProcessor] = None,
) -> Payment:
    """
    Refund a PAID payment at the payer's request and cancel its inscription.

    Raises:
        NotOwnerError: Requester is not the paying user
        CannotRefundError: Payment is not PAID
    """
    payment = await get_payment(db, payment_id)
    if payment.user_id != requester_id:
        raise NotOwnerError("Only the paying user can request a refund")

    await refunds.refund_payment(db, payment, processor)

    if payment.inscription_id is not None:
        inscription = await inscription_service.get_inscription(db, payment.inscription_id)
        if INSCRIPTION_MACHINE.can(inscription.status, InscriptionStatus.CANCELLED):
            await transition(db, inscription, INSCRIPTION_MACHINE, InscriptionStatus.CANCELLED)
            await event_service.release_capacity(db, inscription.event_id)
            logger.info("inscription_cancelled_by_refund", inscription_id=inscription.id)

    return payment


async def get_payment_for_requester(
    db: AsyncSession, payment_id: int, requester_id: int, is_admin: bool = False
) -> Payment:
    """Visible to the payer, the event organizer and admins."""
    payment = await get_payment(db, payment_id)
    if is_admin or payment.user_id == requester_id:
        return payment

    event = await event_service.get_event(db, payment.event_id)
    if event.organizer_id != requester_id:
        raise NotOwnerError("You cannot view this payment")
    return payment


async def list_user_payments(db: AsyncSession, user_id: int) -> list[Payment]:
    result = await db.execute(
        select(Payment)
        .where(Payment.user_id == user_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_event_payments(
    db: AsyncSession,
    event_id: int,
    requester_id: int,
    is_admin: bool = False,
    status: Optional[str] = None,
) -> list[Payment]:
    event = await event_service.get_event(db, event_id)
    event_service.ensure_can_manage(event, requester_id, is_admin)

    query = select(Payment).where(Payment.event_id == event_id)
    if status:
        query = query.where(Payment.status == status)
    result = await db.execute(
        query.order_by(Payment.id).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def event_revenue(
    db: AsyncSession, event_id: int, requester_id: int, is_admin: bool = False
) -> dict:
    """Sum of PAID amounts. Uses ix_payments_event_status."""
    event: Event = await event_service.get_event(db, event_id)
    event_service.ensure_can_manage(event, requester_id, is_admin)

    result = await db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0), func.count(Payment.id))
        .where(Payment.event_id == event_id, Payment.status == PaymentStatus.PAID.value)
    )
    revenue, paid_count = result.one()

    return {
        "event_id": event_id,
        "currency": event.currency,
        "revenue": revenue,
        "paid_count": paid_count,
    }
