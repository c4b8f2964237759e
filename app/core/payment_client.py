# app/core/payment_client.py
import logging
from typing import Protocol

import stripe

from app.core.config import Settings
from app.core.errors import PaymentNotConfirmed, PayoutFailed

logger = logging.getLogger(__name__)


class PaymentProcessor(Protocol):
    """
    What the fulfillment pipeline needs from a payment processor.

    Both calls hit the network and may be slow or unavailable.
    """

    def get_payment_status(self, payment_reference: str) -> str:
        ...

    def create_payout(
        self,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> str:
        ...


class StripePaymentProcessor:
    """
    Stripe-backed PaymentProcessor.

    - get_payment_status: retrieves the PaymentIntent and returns its raw
      status ('succeeded', 'processing', 'requires_payment_method', ...).
    - create_payout: creates a payout to the connected bank account and
      returns the payout id. Stripe de-duplicates on idempotency_key.
    """

    def __init__(self, client: stripe.StripeClient):
        self.client = client

    def get_payment_status(self, payment_reference: str) -> str:
        try:
            intent = self.client.payment_intents.retrieve(payment_reference)
        except stripe.StripeError as e:
            raise PaymentNotConfirmed(
                "processor_error",
                detail=str(e.user_message or e),
            ) from e
        return intent.status

    def create_payout(
        self,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> str:
        try:
            payout = self.client.payouts.create(
                params={
                    "amount": amount_cents,
                    "currency": currency,
                    "metadata": metadata,
                },
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            raise PayoutFailed(f"Stripe payout error: {e.user_message or e}") from e

        logger.info(f"💳 Created Stripe payout: {payout.id}")
        return payout.id


def create_stripe_processor(settings: Settings) -> StripePaymentProcessor | None:
    """
    Build the Stripe processor from settings.

    Returns None when STRIPE_SECRET_KEY is not set; callers treat a missing
    processor as "card payments unsupported / manual payouts only".
    """
    if not settings.STRIPE_SECRET_KEY:
        logger.warning("STRIPE_SECRET_KEY is not set; Stripe processing disabled")
        return None

    client = stripe.StripeClient(
        settings.STRIPE_SECRET_KEY,
        http_client=stripe.RequestsClient(timeout=settings.STRIPE_TIMEOUT_SECONDS),
    )
    return StripePaymentProcessor(client)
