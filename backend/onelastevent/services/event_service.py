"""
Event registry: CRUD, lifecycle and capacity accounting.

CAPACITY STRATEGY: Atomic Conditional UPDATE
============================================

Problem:
  Two users register for the last spot simultaneously.
  Both read current_participants=capacity-1, both increment, both succeed.
  Result: Overbooking.

Solution:
  The check and the increment are one statement executed by the database:

    UPDATE events SET current_participants = current_participants + 1
    WHERE id = :event_id AND current_participants < capacity

  rowcount == 1 means the spot was reserved, 0 means the event is full.
  The row lock taken by the UPDATE serializes concurrent reservations for the
  same event; other events are unaffected. The CHECK constraints on the table
  are the final safety net.

  Nothing outside reserve_capacity / release_capacity / update_event writes
  current_participants. Reads that follow one of these UPDATEs use
  populate_existing so the identity map never serves a stale counter.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from onelastevent.models.event import Event
from onelastevent.models.inscription import Inscription
from onelastevent.schemas.event import EventCreate, EventUpdate, EventFilters
from onelastevent.domain.errors import (
    NotFoundError,
    NotOwnerError,
    IncompleteEntityError,
    InvalidEventDataError,
    InvalidStateError,
)
from onelastevent.domain.status import EVENT_MACHINE, EventStatus
from onelastevent.services.transitions import transition
from onelastevent.core.metrics import record_reservation, capacity_releases
from onelastevent.core.logging import get_logger

logger = get_logger(__name__)

SORT_COLUMNS = {
    "start_datetime": Event.start_datetime,
    "price": Event.price,
    "created_at": Event.created_at,
    "title": Event.title,
}


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _ensure_future(start: Optional[datetime]) -> None:
    if start is not None and _as_utc(start) <= datetime.now(timezone.utc):
        raise InvalidEventDataError("Event start must be in the future")


def _ensure_publishable(event: Event) -> None:
    if not (event.title and event.title.strip()) or event.start_datetime is None:
        raise IncompleteEntityError()


def ensure_can_manage(event: Event, requester_id: int, is_admin: bool = False) -> None:
    if not is_admin and event.organizer_id != requester_id:
        raise NotOwnerError("Only the event organizer can manage this event")


async def create_event(db: AsyncSession, event_data: EventCreate, organizer_id: int) -> Event:
    """Create an event; DRAFT unless PUBLISHED is requested and the event is complete."""
    _ensure_future(event_data.start_datetime)

    event = Event(
        organizer_id=organizer_id,
        title=event_data.title,
        description=event_data.description,
        location=event_data.location,
        start_datetime=_as_utc(event_data.start_datetime),
        end_datetime=_as_utc(event_data.end_datetime),
        capacity=event_data.capacity,
        current_participants=0,
        price=event_data.price,
        currency=event_data.currency,
        status=event_data.status,
        image_url=event_data.image_url,
        tags=list(event_data.tags),
    )
    if event.status == EventStatus.PUBLISHED.value:
        _ensure_publishable(event)

    db.add(event)
    await db.flush()
    await db.refresh(event)

    logger.info(
        "event_created",
        event_id=event.id,
        organizer_id=organizer_id,
        status=event.status,
        capacity=event.capacity,
        price=str(event.price),
    )
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """Get a single event by ID, always re-read from the database."""
    result = await db.execute(
        select(Event)
        .where(Event.id == event_id)
        .execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()

    if not event:
        raise NotFoundError.event()
    return event


async def get_visible_event(
    db: AsyncSession,
    event_id: int,
    requester_id: Optional[int] = None,
    is_admin: bool = False,
) -> Event:
    """Non-published events are only visible to their organizer and admins."""
    event = await get_event(db, event_id)
    if event.status != EventStatus.PUBLISHED.value:
        if not is_admin and (requester_id is None or event.organizer_id != requester_id):
            raise NotFoundError.event()
    return event


async def list_events(
    db: AsyncSession,
    filters: EventFilters,
    requester_id: Optional[int] = None,
    is_admin: bool = False,
) -> tuple[list[Event], int]:
    """
    List events with filters, sorting and pagination.

    Anonymous callers and non-owners only ever see PUBLISHED events; admins and
    organizers filtering on their own events see every status.
    Uses ix_events_status_start for the default public listing.
    """
    query = select(Event)

    privileged = is_admin or (
        requester_id is not None and filters.organizer_id == requester_id
    )
    if privileged:
        if filters.status:
            query = query.where(Event.status == filters.status)
    else:
        query = query.where(Event.status == EventStatus.PUBLISHED.value)

    if filters.organizer_id is not None:
        query = query.where(Event.organizer_id == filters.organizer_id)
    if filters.search:
        term = f"%{filters.search}%"
        query = query.where(
            or_(
                Event.title.ilike(term),
                Event.description.ilike(term),
                Event.location.ilike(term),
            )
        )
    if filters.location:
        query = query.where(Event.location.ilike(f"%{filters.location}%"))
    if filters.min_price is not None:
        query = query.where(Event.price >= filters.min_price)
    if filters.max_price is not None:
        query = query.where(Event.price <= filters.max_price)
    if filters.start_date is not None:
        query = query.where(Event.start_datetime >= _as_utc(filters.start_date))
    if filters.end_date is not None:
        query = query.where(Event.start_datetime <= _as_utc(filters.end_date))

    # Get total count
    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    column = SORT_COLUMNS[filters.sort_by]
    order = column.desc() if filters.sort_order == "desc" else column.asc()
    events_query = (
        query
        .order_by(order, Event.id.asc())
        .offset((filters.page - 1) * filters.page_size)
        .limit(filters.page_size)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    return events, total


async def organizer_events(db: AsyncSession, organizer_id: int) -> list[Event]:
    """All events of one organizer, any status, newest first."""
    result = await db.execute(
        select(Event)
        .where(Event.organizer_id == organizer_id)
        .order_by(Event.created_at.desc(), Event.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def update_event(
    db: AsyncSession,
    event_id: int,
    changes: EventUpdate,
    requester_id: int,
    is_admin: bool = False,
) -> Event:
    event = await get_event(db, event_id)
    ensure_can_manage(event, requester_id, is_admin)

    if EVENT_MACHINE.is_terminal(event.status):
        raise EVENT_MACHINE.rejection(event.status, EventStatus.DRAFT)

    values = changes.model_dump(exclude_unset=True)
    # Only description, location, dates and image may be cleared
    for field in ("title", "capacity", "price", "currency", "tags"):
        if values.get(field, ...) is None:
            values.pop(field)

    if "start_datetime" in values:
        _ensure_future(values["start_datetime"])
        values["start_datetime"] = _as_utc(values["start_datetime"])
    if "end_datetime" in values:
        values["end_datetime"] = _as_utc(values["end_datetime"])

    start = values.get("start_datetime", event.start_datetime)
    end = values.get("end_datetime", event.end_datetime)
    if start is not None and end is not None and _as_utc(end) < _as_utc(start):
        raise InvalidEventDataError("end_datetime must be after start_datetime")

    if event.status == EventStatus.PUBLISHED.value and "start_datetime" in values and start is None:
        raise IncompleteEntityError("A published event must keep its start date")

    capacity = values.pop("capacity", None)
    if capacity is not None and capacity != event.capacity:
        # Conditional so a concurrent reservation cannot slip under the new limit
        result = await db.execute(
            update(Event)
            .where(Event.id == event_id, Event.current_participants <= capacity)
            .values(capacity=capacity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidStateError(
                "Capacity cannot be lower than the number of current participants"
            )

    pricing = {
        field: values.pop(field)
        for field in ("price", "currency")
        if field in values and values[field] != getattr(event, field)
    }
    if pricing:
        # Pending payments and confirmed attendees were priced at the old amount
        result = await db.execute(
            update(Event)
            .where(Event.id == event_id, Event.current_participants == 0)
            .values(**pricing)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidStateError("Price cannot change while registrations are active")

    for field, value in values.items():
        setattr(event, field, value)
    await db.flush()
    event = await get_event(db, event_id)

    logger.info("event_updated", event_id=event_id, fields=sorted(changes.model_fields_set))
    return event


async def publish_event(
    db: AsyncSession, event_id: int, requester_id: int, is_admin: bool = False
) -> Event:
    event = await get_event(db, event_id)
    ensure_can_manage(event, requester_id, is_admin)
    EVENT_MACHINE.ensure(event.status, EventStatus.PUBLISHED)
    _ensure_publishable(event)

    await transition(db, event, EVENT_MACHINE, EventStatus.PUBLISHED)
    logger.info("event_published", event_id=event_id)
    return event


async def unpublish_event(
    db: AsyncSession, event_id: int, requester_id: int, is_admin: bool = False
) -> Event:
    event = await get_event(db, event_id)
    ensure_can_manage(event, requester_id, is_admin)

    await transition(db, event, EVENT_MACHINE, EventStatus.DRAFT)
    logger.info("event_unpublished", event_id=event_id)
    return event


async def cancel_event(
    db: AsyncSession, event_id: int, requester_id: int, is_admin: bool = False
) -> Event:
    """
    Retire the event. Inscriptions are cascaded by the registration
    orchestrator in the same unit of work.
    """
    event = await get_event(db, event_id)
    ensure_can_manage(event, requester_id, is_admin)

    await transition(db, event, EVENT_MACHINE, EventStatus.CANCELLED)
    logger.info("event_cancelled", event_id=event_id, participants=event.current_participants)
    return event


async def delete_event(
    db: AsyncSession, event_id: int, requester_id: int, is_admin: bool = False
) -> None:
    """
    Remove an event that nobody ever registered for.

    Events with inscription history (even cancelled) are kept for the payment
    and attendance records; cancel them instead.
    """
    event = await get_event(db, event_id)
    ensure_can_manage(event, requester_id, is_admin)

    has_inscriptions = select(Inscription.id).where(Inscription.event_id == event_id).exists()
    result = await db.execute(
        delete(Event)
        .where(Event.id == event_id, Event.current_participants == 0, ~has_inscriptions)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise InvalidStateError("Events with registrations cannot be deleted, cancel them instead")
    db.expunge(event)

    logger.info("event_deleted", event_id=event_id, status=event.status)


async def reserve_capacity(db: AsyncSession, event_id: int) -> bool:
    """Atomically claim one spot. False (and no mutation) when the event is full."""
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.current_participants < Event.capacity)
        .values(current_participants=Event.current_participants + 1)
        .execution_options(synchronize_session=False)
    )
    reserved = result.rowcount == 1
    record_reservation(reserved)

    if not reserved:
        logger.warning("capacity_exhausted", event_id=event_id)
    return reserved


async def release_capacity(db: AsyncSession, event_id: int) -> None:
    """Give one spot back, floored at zero."""
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.current_participants > 0)
        .values(current_participants=Event.current_participants - 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        capacity_releases.inc()
    else:
        logger.warning("capacity_release_at_zero", event_id=event_id)
