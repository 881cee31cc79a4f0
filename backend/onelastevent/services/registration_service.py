"""
Registration orchestrator.

Routes the two user-facing use cases to the ledgers and owns no state:
  - register for event: free -> inscription ledger, paid -> payment ledger
  - cancel registration: inscription ledger (refund included)
and retires events together with their inscriptions.
"""

import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from onelastevent.models.event import Event
from onelastevent.models.inscription import Inscription
from onelastevent.models.payment import Payment
from onelastevent.domain.errors import DomainError, EventFullError
from onelastevent.services import event_service, inscription_service, payment_service
from onelastevent.services.interfaces.payment_processor import PaymentProcessor
from onelastevent.core.metrics import record_registration, registration_latency
from onelastevent.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RegistrationResult:
    inscription: Inscription
    # Set for paid events only
    payment: Optional[Payment] = None

    @property
    def requires_payment(self) -> bool:
        return self.payment is not None


async def register_for_event(
    db: AsyncSession,
    event_id: int,
    user_id: int,
    processor: PaymentProcessor,
    notes: Optional[str] = None,
) -> RegistrationResult:
    start = time.perf_counter()
    try:
        event = await event_service.get_event(db, event_id)
        if event.is_free:
            inscription = await inscription_service.register(db, event_id, user_id, notes=notes)
            result = RegistrationResult(inscription=inscription)
        else:
            payment, inscription = await payment_service.initialize_payment(
                db, event_id, user_id, processor, notes=notes
            )
            result = RegistrationResult(inscription=inscription, payment=payment)
    except EventFullError:
        record_registration("full")
        raise
    except DomainError as e:
        record_registration("rejected")
        logger.info("registration_rejected", event_id=event_id, user_id=user_id, code=e.code.value)
        raise
    finally:
        registration_latency.observe(time.perf_counter() - start)

    record_registration(result.inscription.status.lower())
    logger.info(
        "registration_completed",
        event_id=event_id,
        user_id=user_id,
        inscription_id=result.inscription.id,
        status=result.inscription.status,
        payment_id=result.payment.id if result.payment else None,
    )
    return result


async def cancel_registration(
    db: AsyncSession,
    inscription_id: int,
    requester_id: int,
    is_admin: bool = False,
    processor: Optional[PaymentProcessor] = None,
):
    """Returns (inscription, refunded payment or None)."""
    return await inscription_service.cancel_inscription(
        db, inscription_id, requester_id, is_admin=is_admin, processor=processor
    )


async def cancel_event(
    db: AsyncSession,
    event_id: int,
    requester_id: int,
    is_admin: bool = False,
    processor: Optional[PaymentProcessor] = None,
) -> Event:
    """Cancel the event and cascade to its active inscriptions in one unit of work."""
    event = await event_service.cancel_event(db, event_id, requester_id, is_admin)
    await inscription_service.cascade_cancel_for_event(db, event, processor)
    return event
