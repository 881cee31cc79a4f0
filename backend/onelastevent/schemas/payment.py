"""
Pydantic schemas for payment-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel


class PaymentResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    inscription_id: Optional[int]
    amount: Decimal
    currency: str
    provider: str
    status: str
    refunded_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentInitResponse(BaseModel):
    payment_id: int
    inscription_id: int
    amount: Decimal
    currency: str
    status: str
    client_secret: Optional[str] = None

    @classmethod
    def from_payment(cls, payment) -> "PaymentInitResponse":
        return cls(
            payment_id=payment.id,
            inscription_id=payment.inscription_id,
            amount=payment.amount,
            currency=payment.currency,
            status=payment.status,
            client_secret=payment.client_secret,
        )


class MockPaymentRequest(BaseModel):
    simulate_failure: bool = False


class MockPaymentResponse(BaseModel):
    payment_id: int
    status: str
    message: str


class RefundResponse(BaseModel):
    message: str
    payment_id: int
    status: str


class EventRevenueResponse(BaseModel):
    event_id: int
    currency: str
    revenue: Decimal
    paid_count: int


class WebhookAck(BaseModel):
    received: bool = True
