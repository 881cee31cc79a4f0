"""
Registration and inscription endpoints.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from onelastevent.db.session import get_db
from onelastevent.schemas.inscription import (
    InscriptionCreate, InscriptionResponse, InscriptionListResponse, InscriptionCancelResponse,
    RegistrationResponse,
)
from onelastevent.schemas.payment import PaymentInitResponse
from onelastevent.services import inscription_service, registration_service
from onelastevent.services.cache_service import invalidate_event_cache
from onelastevent.services.interfaces.payment_processor import PaymentProcessor
from onelastevent.services.processor_factory import get_payment_processor
from onelastevent.core.security import CurrentUser, get_current_user

router = APIRouter(tags=["Inscriptions"])

InscriptionStatusFilter = Optional[Literal["PENDING", "CONFIRMED", "CANCELLED"]]


@router.post(
    "/events/{event_id}/inscriptions",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_endpoint(
    event_id: int,
    payload: Optional[InscriptionCreate] = None,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    """
    Register for an event.

    Free events are confirmed immediately. Paid events return a PENDING
    inscription together with the payment to complete. The body is optional
    and only carries attendee notes.
    """
    result = await registration_service.register_for_event(
        db, event_id, user.user_id, processor, notes=payload.notes if payload else None
    )
    # Participant count changed
    await invalidate_event_cache()
    return RegistrationResponse(
        inscription=InscriptionResponse.model_validate(result.inscription),
        payment=PaymentInitResponse.from_payment(result.payment) if result.payment else None,
    )


@router.get("/events/{event_id}/inscriptions", response_model=list[InscriptionResponse])
async def event_inscriptions_endpoint(
    event_id: int,
    status_filter: InscriptionStatusFilter = Query(None, alias="status"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Attendee list. Organizer of the event or admin only."""
    return await inscription_service.list_event_inscriptions(
        db, event_id, user.user_id, is_admin=user.is_admin, status=status_filter
    )


@router.get("/inscriptions", response_model=InscriptionListResponse)
async def my_inscriptions_endpoint(
    status_filter: InscriptionStatusFilter = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    inscriptions, total = await inscription_service.list_user_inscriptions(
        db, user.user_id, status=status_filter, page=page, page_size=page_size
    )
    return InscriptionListResponse(
        inscriptions=[InscriptionResponse.model_validate(i) for i in inscriptions],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/inscriptions/{inscription_id}", response_model=InscriptionResponse)
async def get_inscription_endpoint(
    inscription_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await inscription_service.get_inscription_for_requester(
        db, inscription_id, user.user_id, is_admin=user.is_admin
    )


@router.patch("/inscriptions/{inscription_id}/cancel", response_model=InscriptionCancelResponse)
async def cancel_inscription_endpoint(
    inscription_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    """Cancel a registration, release the spot and refund a PAID payment."""
    inscription, refunded = await registration_service.cancel_registration(
        db, inscription_id, user.user_id, is_admin=user.is_admin, processor=processor
    )
    await invalidate_event_cache()
    return InscriptionCancelResponse(
        message="Inscription cancelled successfully",
        inscription_id=inscription.id,
        status=inscription.status,
        refunded_payment_id=refunded.id if refunded else None,
    )
