from onelastevent.domain.errors import DomainError, ErrorCode
from onelastevent.domain.status import (
    EVENT_MACHINE,
    INSCRIPTION_MACHINE,
    PAYMENT_MACHINE,
    EventStatus,
    InscriptionStatus,
    PaymentStatus,
    UserRole,
)

__all__ = [
    "DomainError", "ErrorCode",
    "EVENT_MACHINE", "INSCRIPTION_MACHINE", "PAYMENT_MACHINE",
    "EventStatus", "InscriptionStatus", "PaymentStatus", "UserRole",
]
