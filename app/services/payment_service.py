# app/services/payment_service.py
import logging

from app.core.errors import PaymentNotConfirmed, UnsupportedPaymentMethod
from app.core.payment_client import PaymentProcessor

logger = logging.getLogger(__name__)

# PaymentIntent status that means the money has been captured
CONFIRMED_STATUS = "succeeded"


class PaymentVerifier:
    """
    Confirms that an order's payment has cleared.

    Supported methods:
      - stripe : PaymentIntent status must be 'succeeded'
      - paypal : transaction id must be present (captured at checkout)

    Read-only: never touches settlement state.
    """

    def __init__(self, processor: PaymentProcessor | None):
        self.processor = processor

    def verify(self, payment_method: str | None, payment_reference: str | None) -> bool:
        """
        Returns True when the payment is confirmed.

        Raises:
            UnsupportedPaymentMethod: unknown method, or stripe without a
                configured processor.
            PaymentNotConfirmed: missing reference or a non-succeeded
                processor status.
        """
        if payment_method == "stripe":
            return self._verify_stripe(payment_reference)
        if payment_method == "paypal":
            return self._verify_paypal(payment_reference)
        raise UnsupportedPaymentMethod(payment_method)

    def _verify_stripe(self, payment_reference: str | None) -> bool:
        if self.processor is None:
            raise UnsupportedPaymentMethod("stripe", reason="payment processor not configured")
        if not payment_reference:
            raise PaymentNotConfirmed("missing_reference")

        status = self.processor.get_payment_status(payment_reference)
        if status != CONFIRMED_STATUS:
            raise PaymentNotConfirmed(status)

        logger.info(f"✅ Stripe payment {payment_reference} confirmed")
        return True

    def _verify_paypal(self, payment_reference: str | None) -> bool:
        if not payment_reference:
            raise PaymentNotConfirmed("missing_reference")
        return True
