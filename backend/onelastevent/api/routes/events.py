"""
Event endpoints with Redis caching on the public listing.
"""

import math
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from onelastevent.db.session import get_db
from onelastevent.schemas.event import (
    EventCreate, EventUpdate, EventFilters, EventResponse, EventListResponse,
)
from onelastevent.services import event_service, registration_service
from onelastevent.services.cache_service import (
    get_cached_events, set_cached_events, invalidate_event_cache,
)
from onelastevent.services.interfaces.payment_processor import PaymentProcessor
from onelastevent.services.processor_factory import get_payment_processor
from onelastevent.core.security import (
    CurrentUser, get_current_user, get_optional_user, require_organizer,
)
from onelastevent.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    user: CurrentUser = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    """Create an event (DRAFT by default). Requires the ORGANIZER role."""
    event = await event_service.create_event(db, event_data, user.user_id)
    await invalidate_event_cache()
    return event


@router.get("", response_model=EventListResponse)
async def list_events_endpoint(
    filters: Annotated[EventFilters, Query()],
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Search and list events.

    Anonymous listings are cached in Redis and invalidated on any event or
    capacity change. Non-published events only appear for admins and for an
    organizer filtering on their own organizer_id.
    """
    params = filters.model_dump(mode="json")
    cacheable = user is None

    if cacheable:
        cached = await get_cached_events(params)
        if cached:
            logger.info("events_list_cache_hit", page=filters.page)
            cached["cached"] = True
            return EventListResponse(**cached)

    events, total = await event_service.list_events(
        db,
        filters,
        requester_id=user.user_id if user else None,
        is_admin=user.is_admin if user else False,
    )

    response_data = {
        "events": [EventResponse.model_validate(e).model_dump(mode="json") for e in events],
        "total": total,
        "page": filters.page,
        "page_size": filters.page_size,
        "total_pages": math.ceil(total / filters.page_size) if total else 0,
        "cached": False,
    }

    if cacheable:
        await set_cached_events(params, response_data)

    return EventListResponse(**response_data)


@router.get("/mine", response_model=list[EventResponse])
async def my_events_endpoint(
    user: CurrentUser = Depends(require_organizer),
    db: AsyncSession = Depends(get_db),
):
    """All events of the calling organizer, any status."""
    return await event_service.organizer_events(db, user.user_id)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Get a single event. Not cached (needs the live participant count)."""
    return await event_service.get_visible_event(
        db,
        event_id,
        requester_id=user.user_id if user else None,
        is_admin=user.is_admin if user else False,
    )


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: int,
    changes: EventUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    event = await event_service.update_event(db, event_id, changes, user.user_id, user.is_admin)
    await invalidate_event_cache()
    return event


@router.post("/{event_id}/publish", response_model=EventResponse)
async def publish_event_endpoint(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    event = await event_service.publish_event(db, event_id, user.user_id, user.is_admin)
    await invalidate_event_cache()
    return event


@router.post("/{event_id}/unpublish", response_model=EventResponse)
async def unpublish_event_endpoint(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    event = await event_service.unpublish_event(db, event_id, user.user_id, user.is_admin)
    await invalidate_event_cache()
    return event


@router.post("/{event_id}/cancel", response_model=EventResponse)
async def cancel_event_endpoint(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    """Cancel the event, its active inscriptions and their payments."""
    event = await registration_service.cancel_event(
        db, event_id, user.user_id, is_admin=user.is_admin, processor=processor
    )
    await invalidate_event_cache()
    return event


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event_endpoint(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete an event without registrations. Organizer of the event or admin only."""
    await event_service.delete_event(db, event_id, user.user_id, user.is_admin)
    await invalidate_event_cache()
