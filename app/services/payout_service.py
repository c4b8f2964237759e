# app/services/payout_service.py
import logging

from sqlmodel import Session

from app.core.errors import PayoutFailed
from app.core.payment_client import PaymentProcessor
from app.models.order import Order
from app.models.transfer import ProfitTransfer
from app.repositories.order_repo import OrderRepository

logger = logging.getLogger(__name__)

# How an order's payment method settles profit
SETTLEMENT_METHODS: dict[str, str] = {
    "stripe": "processor",
    "paypal": "manual",
}


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


def idempotency_key(order: Order, attempt: int) -> str:
    return f"{order.id}:{attempt}"


class PayoutInitiator:
    """
    Moves an order's profit to the operator and records the attempt.

    Exactly one ProfitTransfer row is written per initiate() call:
      - processor : payout created         -> 'pending'
                    payout refused/failed  -> 'failed' (reason in notes)
                    no processor configured-> 'pending_manual'
      - manual    : always                 -> 'pending_manual'
    """

    def __init__(
        self,
        ledger: OrderRepository,
        processor: PaymentProcessor | None,
        currency: str = "usd",
    ):
        self.ledger = ledger
        self.processor = processor
        self.currency = currency

    def initiate(self, session: Session, order: Order, amount: float) -> ProfitTransfer:
        previous = self.ledger.list_transfers(session, order.id)
        attempt = len(previous) + 1
        key = idempotency_key(order, attempt)
        method = SETTLEMENT_METHODS.get(order.payment_method, "manual")

        if method == "processor" and self.processor is not None:
            transfer = self._processor_transfer(order, amount, attempt, key)
        elif method == "processor":
            transfer = ProfitTransfer(
                order_id=order.id,
                amount=amount,
                method="manual",
                transfer_reference=None,
                status="pending_manual",
                attempt=attempt,
                idempotency_key=key,
                notes="Payment processor not configured; manual transfer required",
            )
        else:
            transfer = ProfitTransfer(
                order_id=order.id,
                amount=amount,
                method="manual",
                transfer_reference=f"PP-{order.order_number}",
                status="pending_manual",
                attempt=attempt,
                idempotency_key=key,
                notes="Manual PayPal transfer required",
            )

        transfer = self.ledger.insert_transfer(session, transfer)

        if transfer.status == "failed":
            logger.error(
                f"❌ Profit transfer failed for order {order.order_number} "
                f"(attempt {attempt}): {transfer.notes}"
            )
        else:
            logger.info(
                f"💰 Profit transfer initiated: ${amount:.2f} for order {order.order_number} "
                f"({transfer.status})"
            )
        return transfer

    def _processor_transfer(
        self,
        order: Order,
        amount: float,
        attempt: int,
        key: str,
    ) -> ProfitTransfer:
        transfer = ProfitTransfer(
            order_id=order.id,
            amount=amount,
            method="processor",
            attempt=attempt,
            idempotency_key=key,
        )
        try:
            transfer.transfer_reference = self.processor.create_payout(
                to_cents(amount),
                self.currency,
                metadata={
                    "order_id": str(order.id),
                    "order_number": order.order_number,
                    "profit_amount": str(amount),
                },
                idempotency_key=key,
            )
            transfer.status = "pending"
        except PayoutFailed as e:
            transfer.status = "failed"
            transfer.notes = str(e)
        except Exception as e:
            # Processor outages are recorded like refusals; the order still completes
            logger.exception(f"❌ Unexpected payout error for order {order.order_number}")
            transfer.status = "failed"
            transfer.notes = f"Payout error: {e.__class__.__name__}: {e}"
        return transfer
