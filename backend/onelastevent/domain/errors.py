"""Domain error codes for the registration core.

Every rule violation is raised as a DomainError subclass at the point of
detection and rendered by the HTTP layer as {"error": message, "code": CODE}.
"""

from enum import Enum


class ErrorCode(Enum):
    """Stable machine-readable error codes."""

    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    INSCRIPTION_NOT_FOUND = "INSCRIPTION_NOT_FOUND"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    NOT_OWNER = "NOT_OWNER"
    FORBIDDEN = "FORBIDDEN"
    INVALID_STATE = "INVALID_STATE"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    ALREADY_PUBLISHED = "ALREADY_PUBLISHED"
    NOT_PUBLISHED = "NOT_PUBLISHED"
    EVENT_CANCELLED = "EVENT_CANCELLED"
    EVENT_FULL = "EVENT_FULL"
    EVENT_NOT_AVAILABLE = "EVENT_NOT_AVAILABLE"
    EVENT_IS_FREE = "EVENT_IS_FREE"
    INCOMPLETE_EVENT = "INCOMPLETE_EVENT"
    INVALID_EVENT_DATA = "INVALID_EVENT_DATA"
    PAYMENT_NOT_PENDING = "PAYMENT_NOT_PENDING"
    CANNOT_REFUND = "CANNOT_REFUND"
    EMAIL_ALREADY_REGISTERED = "EMAIL_ALREADY_REGISTERED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_PASSWORD = "INVALID_PASSWORD"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"
    PROCESSOR_FAILURE = "PROCESSOR_FAILURE"
    WEBHOOK_SIGNATURE_INVALID = "WEBHOOK_SIGNATURE_INVALID"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 400
    default_message: str = "Request could not be processed"

    def __init__(self, message: str | None = None, code: ErrorCode | None = None) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class NotFoundError(DomainError):
    status_code = 404
    default_message = "Resource not found"

    @classmethod
    def event(cls) -> "NotFoundError":
        return cls("Event not found", ErrorCode.EVENT_NOT_FOUND)

    @classmethod
    def inscription(cls) -> "NotFoundError":
        return cls("Inscription not found", ErrorCode.INSCRIPTION_NOT_FOUND)

    @classmethod
    def payment(cls) -> "NotFoundError":
        return cls("Payment not found", ErrorCode.PAYMENT_NOT_FOUND)

    @classmethod
    def user(cls) -> "NotFoundError":
        return cls("User not found", ErrorCode.USER_NOT_FOUND)


class NotOwnerError(DomainError):
    code = ErrorCode.NOT_OWNER
    status_code = 403
    default_message = "You do not own this resource"


class ForbiddenError(DomainError):
    code = ErrorCode.FORBIDDEN
    status_code = 403
    default_message = "Forbidden"


class InvalidStateError(DomainError):
    """Operation not permitted in the entity's current status."""

    code = ErrorCode.INVALID_STATE
    default_message = "Operation not permitted in the current state"


class AlreadyPublishedError(InvalidStateError):
    code = ErrorCode.ALREADY_PUBLISHED
    default_message = "Event is already published"


class NotPublishedError(InvalidStateError):
    code = ErrorCode.NOT_PUBLISHED
    default_message = "Event is not published"


class EventCancelledError(InvalidStateError):
    code = ErrorCode.EVENT_CANCELLED
    default_message = "Event is cancelled"


class AlreadyCancelledError(InvalidStateError):
    code = ErrorCode.ALREADY_CANCELLED
    default_message = "Already cancelled"


class EventNotAvailableError(InvalidStateError):
    code = ErrorCode.EVENT_NOT_AVAILABLE
    default_message = "Event is not available for registration"


class PaymentNotPendingError(InvalidStateError):
    code = ErrorCode.PAYMENT_NOT_PENDING
    default_message = "Payment is not pending"


class CannotRefundError(InvalidStateError):
    code = ErrorCode.CANNOT_REFUND
    default_message = "Payment cannot be refunded"


class AlreadyRegisteredError(DomainError):
    code = ErrorCode.ALREADY_REGISTERED
    status_code = 409
    default_message = "Already registered for this event"


class EventFullError(DomainError):
    code = ErrorCode.EVENT_FULL
    status_code = 409
    default_message = "Event is full"


class EventIsFreeError(DomainError):
    code = ErrorCode.EVENT_IS_FREE
    default_message = "This event is free"


class IncompleteEntityError(DomainError):
    code = ErrorCode.INCOMPLETE_EVENT
    default_message = "Event must have title and start date to publish"


class InvalidEventDataError(DomainError):
    code = ErrorCode.INVALID_EVENT_DATA
    default_message = "Invalid event data"


class EmailAlreadyRegisteredError(DomainError):
    code = ErrorCode.EMAIL_ALREADY_REGISTERED
    status_code = 409
    default_message = "Email already registered"


class InvalidCredentialsError(DomainError):
    code = ErrorCode.INVALID_CREDENTIALS
    status_code = 401
    default_message = "Invalid email or password"


class InvalidPasswordError(DomainError):
    code = ErrorCode.INVALID_PASSWORD
    default_message = "Current password is incorrect"


class AccountDisabledError(DomainError):
    code = ErrorCode.ACCOUNT_DISABLED
    status_code = 403
    default_message = "Account is deactivated"


class ProcessorFailureError(DomainError):
    """The external payment processor rejected or failed a call."""

    code = ErrorCode.PROCESSOR_FAILURE
    status_code = 502
    default_message = "Payment processing failed"


class WebhookSignatureError(DomainError):
    code = ErrorCode.WEBHOOK_SIGNATURE_INVALID
    default_message = "Webhook signature verification failed"


class InternalError(DomainError):
    code = ErrorCode.INTERNAL_ERROR
    status_code = 500
    default_message = "Internal server error"


# Errors whose detail must never reach the client
OPAQUE_ERRORS = (ProcessorFailureError, InternalError)
