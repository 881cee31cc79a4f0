"""
Inscription ledger: one user's registration for one event.

There is exactly one row per (event, user) pair. Re-registering after a
cancellation reactivates that row (CANCELLED -> PENDING, then CONFIRMED for
free events) and reserves a spot again, so the original inscription id is kept
and no duplicate active inscription can exist.
"""

from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from onelastevent.models.event import Event
from onelastevent.models.inscription import Inscription
from onelastevent.models.user import User
from onelastevent.domain.errors import (
    NotFoundError,
    NotOwnerError,
    AlreadyRegisteredError,
    EventFullError,
    EventNotAvailableError,
    InvalidStateError,
)
from onelastevent.domain.status import (
    INSCRIPTION_MACHINE,
    ACTIVE_INSCRIPTION_STATUSES,
    EventStatus,
    InscriptionStatus,
)
from onelastevent.services import event_service, notification_service, refunds
from onelastevent.services.interfaces.payment_processor import PaymentProcessor
from onelastevent.services.transitions import transition
from onelastevent.core.logging import get_logger

logger = get_logger(__name__)


async def get_inscription(db: AsyncSession, inscription_id: int) -> Inscription:
    result = await db.execute(
        select(Inscription)
        .where(Inscription.id == inscription_id)
        .execution_options(populate_existing=True)
    )
    inscription = result.scalar_one_or_none()

    if not inscription:
        raise NotFoundError.inscription()
    return inscription


async def find_inscription(db: AsyncSession, event_id: int, user_id: int) -> Optional[Inscription]:
    """The (event, user) row in any status, or None."""
    result = await db.execute(
        select(Inscription)
        .where(Inscription.event_id == event_id, Inscription.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def register(
    db: AsyncSession, event_id: int, user_id: int, notes: Optional[str] = None
) -> Inscription:
    """
    Register a user for a published event.

    Free events end CONFIRMED; paid events stay PENDING until their payment
    is PAID.

    Raises:
        NotFoundError: Unknown event
        EventNotAvailableError: Event is not PUBLISHED
        AlreadyRegisteredError: An active inscription exists for the pair
        EventFullError: No spot left
    """
    event = await event_service.get_event(db, event_id)
    if event.status != EventStatus.PUBLISHED.value:
        raise EventNotAvailableError()

    existing = await find_inscription(db, event_id, user_id)
    if existing is not None and existing.status in ACTIVE_INSCRIPTION_STATUSES:
        raise AlreadyRegisteredError()

    if not await event_service.reserve_capacity(db, event_id):
        raise EventFullError()

    if existing is not None:
        try:
            inscription = await transition(
                db, existing, INSCRIPTION_MACHINE, InscriptionStatus.PENDING, notes=notes
            )
        except InvalidStateError:
            # Reactivated by a concurrent request
            raise AlreadyRegisteredError()
        logger.info("inscription_reactivated", inscription_id=inscription.id, event_id=event_id)
    else:
        inscription = Inscription(
            event_id=event_id,
            user_id=user_id,
            status=InscriptionStatus.PENDING.value,
            notes=notes,
        )
        db.add(inscription)
        try:
            await db.flush()
        except IntegrityError:
            # uq_inscription_event_user lost the race; the request's unit of
            # work rolls back together with the reserved spot
            raise AlreadyRegisteredError()
        await db.refresh(inscription)
        logger.info("inscription_created", inscription_id=inscription.id, event_id=event_id)

    if event.is_free:
        inscription = await confirm(db, inscription.id)

    return inscription


async def confirm(db: AsyncSession, inscription_id: int) -> Inscription:
    """Mark an inscription CONFIRMED. Confirming twice returns it unchanged."""
    inscription = await get_inscription(db, inscription_id)
    if inscription.status == InscriptionStatus.CONFIRMED.value:
        return inscription

    try:
        await transition(db, inscription, INSCRIPTION_MACHINE, InscriptionStatus.CONFIRMED)
    except InvalidStateError:
        if inscription.status == InscriptionStatus.CONFIRMED.value:
            return inscription
        raise

    event = await event_service.get_event(db, inscription.event_id)
    user = await db.get(User, inscription.user_id)
    await notification_service.send_registration_confirmation(user.email, event, inscription)

    logger.info("inscription_confirmed", inscription_id=inscription.id, event_id=event.id)
    return inscription


async def cancel_inscription(
    db: AsyncSession,
    inscription_id: int,
    requester_id: int,
    is_admin: bool = False,
    processor: Optional[PaymentProcessor] = None,
):
    """
    Cancel an inscription, give its spot back and settle its payment.

    Returns:
        (inscription, refunded payment or None)
    """
    inscription = await get_inscription(db, inscription_id)
    if not is_admin and inscription.user_id != requester_id:
        raise NotOwnerError("Only the registered user can cancel this inscription")

    await transition(db, inscription, INSCRIPTION_MACHINE, InscriptionStatus.CANCELLED)
    await event_service.release_capacity(db, inscription.event_id)
    refunded = await refunds.settle_cancelled_inscription(db, inscription, processor)

    logger.info(
        "inscription_cancelled",
        inscription_id=inscription.id,
        event_id=inscription.event_id,
        requester_id=requester_id,
        refunded_payment_id=refunded.id if refunded else None,
    )
    return inscription, refunded


async def cascade_cancel_for_event(
    db: AsyncSession,
    event: Event,
    processor: Optional[PaymentProcessor] = None,
) -> int:
    """
    Cancel every active inscription of a cancelled event.

    Capacity is not released: the event is retired and keeps its participant
    count. Returns the number of inscriptions cancelled.
    """
    result = await db.execute(
        select(Inscription)
        .where(
            Inscription.event_id == event.id,
            Inscription.status.in_(ACTIVE_INSCRIPTION_STATUSES),
        )
        .order_by(Inscription.id)
        .execution_options(populate_existing=True)
    )
    inscriptions = list(result.scalars().all())

    cancelled = 0
    for inscription in inscriptions:
        try:
            await transition(db, inscription, INSCRIPTION_MACHINE, InscriptionStatus.CANCELLED)
        except InvalidStateError:
            # Cancelled by its owner in the meantime
            continue
        await refunds.settle_cancelled_inscription(db, inscription, processor)

        user = await db.get(User, inscription.user_id)
        await notification_service.send_event_cancellation(user.email, event)
        cancelled += 1

    logger.info("event_inscriptions_cancelled", event_id=event.id, count=cancelled)
    return cancelled


async def get_inscription_for_requester(
    db: AsyncSession, inscription_id: int, requester_id: int, is_admin: bool = False
) -> Inscription:
    """Visible to the registered user, the event organizer and admins."""
    inscription = await get_inscription(db, inscription_id)
    if is_admin or inscription.user_id == requester_id:
        return inscription

    event = await event_service.get_event(db, inscription.event_id)
    if event.organizer_id != requester_id:
        raise NotOwnerError("You cannot view this inscription")
    return inscription


async def list_user_inscriptions(
    db: AsyncSession,
    user_id: int,
    status: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Inscription], int]:
    query = select(Inscription).where(Inscription.user_id == user_id)
    if status:
        query = query.where(Inscription.status == status)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
    result = await db.execute(
        query
        .order_by(Inscription.created_at.desc(), Inscription.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all()), total


async def list_event_inscriptions(
    db: AsyncSession,
    event_id: int,
    requester_id: int,
    is_admin: bool = False,
    status: Optional[str] = None,
) -> list[Inscription]:
    """Attendee list of an event; organizer or admin only."""
    event = await event_service.get_event(db, event_id)
    event_service.ensure_can_manage(event, requester_id, is_admin)

    query = select(Inscription).where(Inscription.event_id == event_id)
    if status:
        query = query.where(Inscription.status == status)
    result = await db.execute(
        query.order_by(Inscription.id).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
