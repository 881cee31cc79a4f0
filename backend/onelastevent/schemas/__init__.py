from onelastevent.schemas.user import UserCreate, UserResponse, UserLogin, Token
from onelastevent.schemas.event import (
    EventCreate, EventUpdate, EventFilters, EventResponse, EventListResponse,
)
from onelastevent.schemas.payment import (
    PaymentResponse, PaymentInitResponse, MockPaymentRequest, MockPaymentResponse,
    RefundResponse, EventRevenueResponse, WebhookAck,
)
from onelastevent.schemas.inscription import (
    InscriptionResponse, InscriptionListResponse, InscriptionCancelResponse, RegistrationResponse,
)

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "EventCreate", "EventUpdate", "EventFilters", "EventResponse", "EventListResponse",
    "PaymentResponse", "PaymentInitResponse", "MockPaymentRequest", "MockPaymentResponse",
    "RefundResponse", "EventRevenueResponse", "WebhookAck",
    "InscriptionResponse", "InscriptionListResponse", "InscriptionCancelResponse",
    "RegistrationResponse",
]
