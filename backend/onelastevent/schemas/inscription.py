"""
Pydantic schemas for inscriptions and the orchestrated registration result.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from onelastevent.schemas.payment import PaymentInitResponse


class InscriptionCreate(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class InscriptionResponse(BaseModel):
    id: int
    event_id: int
    user_id: int
    status: str
    notes: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class InscriptionListResponse(BaseModel):
    inscriptions: list[InscriptionResponse]
    total: int
    page: int
    page_size: int


class InscriptionCancelResponse(BaseModel):
    message: str
    inscription_id: int
    status: str
    refunded_payment_id: Optional[int] = None


class RegistrationResponse(BaseModel):
    inscription: InscriptionResponse
    # Present only for paid events
    payment: Optional[PaymentInitResponse] = None
