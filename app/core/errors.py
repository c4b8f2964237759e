# app/core/errors.py
"""
Error taxonomy for the fulfillment pipeline.

Terminal for the order (order -> 'failed'):
  - PaymentNotConfirmed, UnsupportedPaymentMethod
  - SupplierDispatchFailed, SupplierRejected
  - InvalidAmount

Recorded, not escalated:
  - PayoutFailed (stored as a 'failed' ProfitTransfer)

Infrastructure:
  - StoreUnavailable (order stays in its last persisted state)
"""


class FulfillmentError(Exception):
    """Base class for every pipeline failure."""


class PaymentNotConfirmed(FulfillmentError):
    def __init__(self, raw_status: str, detail: str | None = None):
        self.raw_status = raw_status
        self.detail = detail
        message = f"Payment not completed: {raw_status}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class UnsupportedPaymentMethod(FulfillmentError):
    def __init__(self, method: str | None, reason: str | None = None):
        self.method = method
        message = f"Unsupported payment method: {method}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class SupplierUnavailable(FulfillmentError):
    """
    One transient failure talking to a supplier (network, 5xx, throttling).
    The dispatcher retries these.
    """


class SupplierRejected(FulfillmentError):
    """Permanent rejection from the supplier, e.g. out of stock."""

    def __init__(self, supplier: str, reason: str):
        self.supplier = supplier
        self.reason = reason
        super().__init__(f"Supplier {supplier} rejected the order: {reason}")


class SupplierDispatchFailed(FulfillmentError):
    """Transient supplier failures exhausted the retry budget."""

    def __init__(self, item_id, supplier: str, attempts: int, last_error: Exception):
        self.item_id = item_id
        self.supplier = supplier
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Supplier order for item {item_id} ({supplier}) failed "
            f"after {attempts} attempts: {last_error}"
        )


class SupplierOrderNotFound(FulfillmentError):
    def __init__(self, supplier_order_id: str):
        self.supplier_order_id = supplier_order_id
        super().__init__(f"Supplier order not found: {supplier_order_id}")


class PayoutFailed(FulfillmentError):
    """The payment processor refused or could not create the payout."""


class InvalidAmount(FulfillmentError, ValueError):
    """Malformed numeric input (NaN, infinite, negative, non-numeric)."""


class StoreUnavailable(FulfillmentError):
    """The ledger store could not be reached or failed mid-operation."""
