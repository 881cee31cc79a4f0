"""Status enums and transition tables for events, inscriptions and payments.

Legal transitions are enumerated once per entity. Services never compare
statuses to decide legality; they ask the machine, which raises the typed
error registered for the rejected move.
"""

from enum import Enum
from typing import Iterable

from onelastevent.domain.errors import (
    AlreadyCancelledError,
    AlreadyPublishedError,
    CannotRefundError,
    EventCancelledError,
    InvalidStateError,
    NotPublishedError,
    PaymentNotPendingError,
)


class EventStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CANCELLED = "CANCELLED"


class InscriptionStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class UserRole(str, Enum):
    USER = "USER"
    ORGANIZER = "ORGANIZER"
    ADMIN = "ADMIN"


ANY = None


class StateMachine:
    """Transition table for one entity kind.

    `rejections` maps (current, target) to the error raised when that move is
    illegal; either side may be ANY. Lookups go from most to least specific
    and fall back to InvalidStateError.
    """

    def __init__(
        self,
        name: str,
        status_type: type[Enum],
        transitions: dict[Enum, Iterable[Enum]],
        rejections: dict[tuple, type[InvalidStateError]] | None = None,
    ) -> None:
        self.name = name
        self.status_type = status_type
        self.transitions = {state: frozenset(targets) for state, targets in transitions.items()}
        self.rejections = rejections or {}

    def can(self, current, target) -> bool:
        current = self.status_type(current)
        return self.status_type(target) in self.transitions.get(current, frozenset())

    def is_terminal(self, current) -> bool:
        return not self.transitions.get(self.status_type(current))

    def rejection(self, current, target) -> InvalidStateError:
        current = self.status_type(current)
        target = self.status_type(target)
        for key in ((current, target), (ANY, target), (current, ANY)):
            if key in self.rejections:
                return self.rejections[key]()
        return InvalidStateError(
            f"Cannot move {self.name} from {current.value} to {target.value}"
        )

    def ensure(self, current, target) -> None:
        if not self.can(current, target):
            raise self.rejection(current, target)


EVENT_MACHINE = StateMachine(
    "event",
    EventStatus,
    {
        EventStatus.DRAFT: {EventStatus.PUBLISHED, EventStatus.CANCELLED},
        EventStatus.PUBLISHED: {EventStatus.DRAFT, EventStatus.CANCELLED},
        EventStatus.CANCELLED: set(),
    },
    {
        (EventStatus.CANCELLED, EventStatus.CANCELLED): AlreadyCancelledError,
        (EventStatus.CANCELLED, ANY): EventCancelledError,
        (EventStatus.PUBLISHED, EventStatus.PUBLISHED): AlreadyPublishedError,
        (EventStatus.DRAFT, EventStatus.DRAFT): NotPublishedError,
    },
)

INSCRIPTION_MACHINE = StateMachine(
    "inscription",
    InscriptionStatus,
    {
        InscriptionStatus.PENDING: {InscriptionStatus.CONFIRMED, InscriptionStatus.CANCELLED},
        InscriptionStatus.CONFIRMED: {InscriptionStatus.CANCELLED},
        # Reactivation always restarts at PENDING
        InscriptionStatus.CANCELLED: {InscriptionStatus.PENDING},
    },
    {
        (InscriptionStatus.CANCELLED, InscriptionStatus.CANCELLED): AlreadyCancelledError,
    },
)

PAYMENT_MACHINE = StateMachine(
    "payment",
    PaymentStatus,
    {
        PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED},
        PaymentStatus.PAID: {PaymentStatus.REFUNDED},
        PaymentStatus.FAILED: set(),
        PaymentStatus.REFUNDED: set(),
    },
    {
        (ANY, PaymentStatus.PAID): PaymentNotPendingError,
        (ANY, PaymentStatus.FAILED): PaymentNotPendingError,
        (ANY, PaymentStatus.REFUNDED): CannotRefundError,
    },
)

ACTIVE_INSCRIPTION_STATUSES = (InscriptionStatus.PENDING.value, InscriptionStatus.CONFIRMED.value)
ACTIVE_PAYMENT_STATUSES = (PaymentStatus.PENDING.value, PaymentStatus.PAID.value)
