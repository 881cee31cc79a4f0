"""
Payment endpoints: initialization, mock completion, processor webhook and refunds.
"""

import json

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from onelastevent.db.session import get_db
from onelastevent.schemas.payment import (
    PaymentResponse, PaymentInitResponse, MockPaymentRequest, MockPaymentResponse,
    RefundResponse, EventRevenueResponse, WebhookAck,
)
from onelastevent.services import payment_service
from onelastevent.services.cache_service import invalidate_event_cache
from onelastevent.services.interfaces.payment_processor import PaymentProcessor
from onelastevent.services.processor_factory import get_payment_processor
from onelastevent.services.stripe_processor import verify_webhook_signature
from onelastevent.domain.errors import WebhookSignatureError
from onelastevent.core.config import get_settings
from onelastevent.core.security import CurrentUser, get_current_user
from onelastevent.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()
router = APIRouter(tags=["Payments"])


@router.post(
    "/events/{event_id}/payments",
    response_model=PaymentInitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def initialize_payment_endpoint(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    """
    Open the payment for a paid event, registering the caller if needed.
    Calling it again returns the same PENDING payment.
    """
    payment, _ = await payment_service.initialize_payment(db, event_id, user.user_id, processor)
    await invalidate_event_cache()
    return PaymentInitResponse.from_payment(payment)


@router.get("/events/{event_id}/payments", response_model=list[PaymentResponse])
async def event_payments_endpoint(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await payment_service.list_event_payments(
        db, event_id, user.user_id, is_admin=user.is_admin
    )


@router.get("/events/{event_id}/revenue", response_model=EventRevenueResponse)
async def event_revenue_endpoint(
    event_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Sum of PAID payments for the event. Organizer or admin only."""
    return await payment_service.event_revenue(db, event_id, user.user_id, is_admin=user.is_admin)


@router.post("/payments/webhook", response_model=WebhookAck)
async def payment_webhook_endpoint(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Processor callback. Always acknowledged once verified, including
    redeliveries and event types we do not handle.
    """
    body = await request.body()

    if settings.STRIPE_WEBHOOK_SECRET:
        signature = request.headers.get("stripe-signature")
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")
        payload = verify_webhook_signature(
            body,
            signature,
            settings.STRIPE_WEBHOOK_SECRET,
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
        )
    else:
        logger.warning("webhook_unverified", reason="no_webhook_secret")
        try:
            payload = json.loads(body)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Webhook payload is not valid JSON",
            )

    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook payload must be a JSON object",
        )

    result = await payment_service.handle_provider_callback(db, payload)
    return WebhookAck(**result)


@router.get("/payments", response_model=list[PaymentResponse])
async def my_payments_endpoint(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await payment_service.list_user_payments(db, user.user_id)


@router.get("/payments/{payment_id}/status", response_model=PaymentResponse)
async def payment_status_endpoint(
    payment_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await payment_service.get_payment_for_requester(
        db, payment_id, user.user_id, is_admin=user.is_admin
    )


@router.post("/payments/{payment_id}/mock", response_model=MockPaymentResponse)
async def mock_payment_endpoint(
    payment_id: int,
    body: MockPaymentRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Complete (or fail) a mock payment. Development and tests only."""
    payment = await payment_service.complete_mock_payment(
        db, payment_id, simulate_failure=body.simulate_failure, requester_id=user.user_id
    )
    return MockPaymentResponse(
        payment_id=payment.id,
        status=payment.status,
        message="Payment failed" if body.simulate_failure else "Payment completed",
    )


@router.post("/payments/{payment_id}/refund", response_model=RefundResponse)
async def refund_payment_endpoint(
    payment_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    """Refund a PAID payment and cancel its inscription."""
    payment = await payment_service.refund(db, payment_id, user.user_id, processor)
    await invalidate_event_cache()
    return RefundResponse(
        message="Payment refunded successfully",
        payment_id=payment.id,
        status=payment.status,
    )
