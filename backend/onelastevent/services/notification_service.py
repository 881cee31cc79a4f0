"""
E-mail notifications (log-only stub).

Swap the bodies for a real provider (SES, SendGrid, ...) when one is chosen.
Callers never depend on delivery: a notification failure is logged and
swallowed so it cannot undo a committed registration or refund.
"""

from onelastevent.core.logging import get_logger

logger = get_logger(__name__)


async def _deliver(kind: str, email: str, **context) -> bool:
    try:
        logger.info("email_stub", kind=kind, to=email, **context)
        return True
    except Exception as e:
        logger.error("email_delivery_failed", kind=kind, to=email, error=str(e))
        return False


async def send_registration_confirmation(email: str, event, inscription) -> bool:
    return await _deliver(
        "registration_confirmation",
        email,
        event_id=event.id,
        event_title=event.title,
        starts_at=str(event.start_datetime),
        inscription_id=inscription.id,
    )


async def send_payment_confirmation(email: str, payment, event) -> bool:
    return await _deliver(
        "payment_confirmation",
        email,
        event_id=event.id,
        event_title=event.title,
        payment_id=payment.id,
        amount=str(payment.amount),
        currency=payment.currency,
    )


async def send_event_cancellation(email: str, event) -> bool:
    return await _deliver(
        "event_cancellation",
        email,
        event_id=event.id,
        event_title=event.title,
    )


async def send_refund_confirmation(email: str, payment) -> bool:
    return await _deliver(
        "refund_confirmation",
        email,
        payment_id=payment.id,
        amount=str(payment.amount),
        currency=payment.currency,
    )
