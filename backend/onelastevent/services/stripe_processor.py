"""
Stripe payment processor on the official stripe SDK.

Flow:
  1. create_intent -> PaymentIntent with metadata.payment_id = local id
  2. The client confirms the intent with the returned client_secret
  3. Stripe calls POST /api/v1/payments/webhook with payment_intent.succeeded
     (or payment_intent.payment_failed); the local payment is resolved from
     metadata.payment_id, falling back to the intent id

Every call carries an idempotency key derived from the local payment id, so a
retried initialize or refund cannot open a second intent or refund twice on
Stripe's side.
"""

import json
from decimal import Decimal, ROUND_HALF_UP

import stripe

from onelastevent.core.logging import get_logger
from onelastevent.core.metrics import processor_failures
from onelastevent.domain.errors import ProcessorFailureError, WebhookSignatureError
from onelastevent.services.interfaces.payment_processor import PaymentProcessor, ProcessorIntent

logger = get_logger(__name__)

STRIPE_PROVIDER = "stripe"


def to_minor_units(amount) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripePaymentProcessor(PaymentProcessor):
    name = STRIPE_PROVIDER

    def __init__(self, secret_key: str):
        self._api_key = secret_key

    async def create_intent(self, payment, event) -> ProcessorIntent:
        try:
            intent = await stripe.PaymentIntent.create_async(
                api_key=self._api_key,
                idempotency_key=f"payment-{payment.id}",
                amount=to_minor_units(payment.amount),
                currency=payment.currency.lower(),
                description=event.title,
                metadata={
                    "payment_id": str(payment.id),
                    "event_id": str(payment.event_id),
                    "user_id": str(payment.user_id),
                },
            )
        except stripe.StripeError as e:
            raise self._failure("create_intent", payment, e) from e

        logger.info("stripe_intent_created", payment_id=payment.id, intent_id=intent.id)
        return ProcessorIntent(
            provider_payment_id=intent.id,
            client_secret=intent.client_secret,
        )

    async def refund(self, payment) -> None:
        if not payment.provider_payment_id:
            processor_failures.labels(operation="refund").inc()
            raise ProcessorFailureError("Payment has no processor reference")

        try:
            refund = await stripe.Refund.create_async(
                api_key=self._api_key,
                idempotency_key=f"refund-{payment.id}",
                payment_intent=payment.provider_payment_id,
            )
        except stripe.StripeError as e:
            raise self._failure("refund", payment, e) from e

        logger.info("stripe_refund_created", payment_id=payment.id, refund_id=refund.id)

    @staticmethod
    def _failure(operation: str, payment, error: stripe.StripeError) -> ProcessorFailureError:
        processor_failures.labels(operation=operation).inc()
        logger.error(
            "stripe_request_failed",
            operation=operation,
            payment_id=payment.id,
            error_type=type(error).__name__,
            stripe_code=error.code,
            error=error.user_message or str(error),
        )
        return ProcessorFailureError()


def verify_webhook_signature(
    payload: bytes, signature_header: str, secret: str, tolerance: int = 300
) -> dict:
    """Verify a Stripe-Signature header and return the decoded event."""
    try:
        stripe.Webhook.construct_event(payload, signature_header, secret, tolerance=tolerance)
    except stripe.SignatureVerificationError as e:
        raise WebhookSignatureError() from e
    except ValueError as e:
        raise WebhookSignatureError("Webhook payload is not valid JSON") from e
    return json.loads(payload)
