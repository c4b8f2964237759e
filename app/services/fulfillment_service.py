# app/services/fulfillment_service.py
import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, NamedTuple

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlmodel import Session

from app.core.errors import (
    InvalidAmount,
    PaymentNotConfirmed,
    StoreUnavailable,
    SupplierDispatchFailed,
    SupplierRejected,
    UnsupportedPaymentMethod,
)
from app.models.order import Order, utcnow
from app.models.transfer import ProfitTransfer
from app.repositories.order_repo import OrderRepository
from app.schemas.fulfillment import FulfillmentRunSummary, OrderOutcome
from app.services.payment_service import PaymentVerifier
from app.services.payout_service import PayoutInitiator
from app.services.profit_service import DEFAULT_PROFIT_MARGIN, calculate_profit
from app.services.supplier_service import SupplierDispatcher

logger = logging.getLogger(__name__)

# Forward-only lifecycle; 'failed' is absorbing and sits outside it
LIFECYCLE = ("pending", "payment_verifying", "paid", "fulfilling", "completed")

# Errors that end an order's fulfillment with status 'failed'
ORDER_FAILURES: tuple[type[Exception], ...] = (
    PaymentNotConfirmed,
    UnsupportedPaymentMethod,
    SupplierRejected,
    SupplierDispatchFailed,
    InvalidAmount,
)


class _Seen(NamedTuple):
    """Order identity and status as read when the batch was fetched."""

    order_id: uuid.UUID
    order_number: str
    status: str


def _is_before(current: str, target: str) -> bool:
    if current not in LIFECYCLE:
        return False
    return LIFECYCLE.index(current) < LIFECYCLE.index(target)


class FulfillmentService:
    """
    Drives orders through the fulfillment pipeline.

    Per order:
      0. claim (compare-and-set, so concurrent runs never double-dispatch)
      1. verify payment, unless payment_status is already 'paid'
      2. compute + persist profit_amount
      3. dispatch items in order, skipping already dispatched ones;
         the first failing item fails the whole order
      4. settle profit (a failed payout never fails the order)
      5. mark 'completed'

    Every phase is committed before the next begins, so an interrupted
    run can be resumed from the last persisted status.
    """

    def __init__(
        self,
        ledger: OrderRepository,
        verifier: PaymentVerifier,
        dispatcher: SupplierDispatcher,
        payouts: PayoutInitiator,
        default_margin: float = DEFAULT_PROFIT_MARGIN,
        batch_size: int = 10,
        stale_after: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ledger = ledger
        self.verifier = verifier
        self.dispatcher = dispatcher
        self.payouts = payouts
        self.default_margin = default_margin
        self.batch_size = batch_size
        self.stale_after = stale_after
        self.clock = clock

    # -------- Batch triggers --------

    def process_pending_orders(self, session: Session) -> FulfillmentRunSummary:
        """
        Process up to batch_size 'pending' orders, oldest first.

        One order failing never stops the rest of the batch.
        """
        summary = FulfillmentRunSummary()
        try:
            orders = self.ledger.fetch_pending(session, self.batch_size)
        except StoreUnavailable as e:
            logger.error(f"❌ Error in order processing: {e}")
            return summary

        batch = [_Seen(o.id, o.order_number, "pending") for o in orders]
        summary.fetched = len(batch)
        logger.info(f"📦 Processing {len(batch)} pending orders...")

        for seen in batch:
            summary.record(self._claim_and_process(session, seen))

        logger.info(
            f"✅ Order processing completed: {summary.completed} completed, "
            f"{summary.failed} failed, {summary.skipped} skipped, "
            f"{summary.interrupted} interrupted"
        )
        return summary

    def resume_stalled_orders(self, session: Session) -> FulfillmentRunSummary:
        """
        Pick up orders an interrupted run left in payment_verifying / paid /
        fulfilling, and continue each from its persisted phase.
        """
        summary = FulfillmentRunSummary()
        cutoff = self.clock() - self.stale_after
        try:
            orders = self.ledger.fetch_stalled(session, cutoff, self.batch_size)
        except StoreUnavailable as e:
            logger.error(f"❌ Error resuming stalled orders: {e}")
            return summary

        batch = [_Seen(o.id, o.order_number, o.status) for o in orders]
        summary.fetched = len(batch)
        logger.info(f"🔄 Resuming {len(batch)} stalled orders...")

        for seen in batch:
            summary.record(self._claim_and_process(session, seen, stale_before=cutoff))

        logger.info(
            f"✅ Stalled order recovery completed: {summary.completed} completed, "
            f"{summary.failed} failed, {summary.skipped} skipped, "
            f"{summary.interrupted} interrupted"
        )
        return summary

    # -------- Single order --------

    def process_order(self, session: Session, order: Order) -> OrderOutcome:
        """
        Run the remaining phases for an order this process has claimed.
        """
        return self._run_phases(session, order, order.id, order.order_number)

    def _claim_and_process(
        self,
        session: Session,
        seen: _Seen,
        stale_before: datetime | None = None,
    ) -> OrderOutcome:
        # A pending order is claimed by entering payment_verifying; a stalled
        # one keeps its status and only gets a fresh updated_at.
        to_status = "payment_verifying" if seen.status == "pending" else seen.status

        try:
            claimed = self.ledger.claim(
                session,
                seen.order_id,
                expected_status=seen.status,
                to_status=to_status,
                stale_before=stale_before,
            )
            order = self.ledger.get_by_id(session, seen.order_id) if claimed else None
        except StoreUnavailable as e:
            return self._interrupted(seen.order_id, seen.order_number, e)

        if order is None:
            logger.info(f"Order {seen.order_number} was claimed by another run, skipping")
            return OrderOutcome(
                order_id=seen.order_id,
                order_number=seen.order_number,
                outcome="skipped",
            )

        return self._run_phases(session, order, seen.order_id, seen.order_number)

    def _run_phases(
        self,
        session: Session,
        order: Order,
        order_id: uuid.UUID,
        order_number: str,
    ) -> OrderOutcome:
        logger.info(f"Processing order {order_number}...")

        try:
            self._verify_payment(session, order)
            profit = self._record_profit(session, order)
            self._dispatch_items(session, order)
            transfer = self._settle_profit(session, order, profit)
            self.ledger.update_order(
                session,
                order_id,
                status="completed",
                completed_at=self.clock(),
                error_message=None,
            )
        except ORDER_FAILURES as e:
            return self._fail(session, order_id, order_number, e)
        except StoreUnavailable as e:
            return self._interrupted(order_id, order_number, e)
        except (OperationalError, InterfaceError) as e:
            # Lazy reload of an expired attribute hit a dead connection
            session.rollback()
            return self._interrupted(order_id, order_number, StoreUnavailable(str(e)))
        except Exception as e:
            logger.exception(f"❌ Unexpected error processing order {order_number}")
            session.rollback()
            return self._fail(session, order_id, order_number, e)

        logger.info(f"✅ Order {order_number} processed successfully")
        return OrderOutcome(
            order_id=order_id,
            order_number=order_number,
            outcome="completed",
            status="completed",
            profit_amount=profit,
            transfer_status=transfer.status if transfer else None,
        )

    # -------- Phases --------

    def _verify_payment(self, session: Session, order: Order) -> None:
        if order.payment_status != "paid":
            self.verifier.verify(order.payment_method, order.payment_reference)
            self.ledger.update_order(session, order.id, payment_status="paid", status="paid")
            logger.info(f"✅ Payment processed for order {order.order_number}")
        elif _is_before(order.status, "paid"):
            self.ledger.update_order(session, order.id, status="paid")

    def _record_profit(self, session: Session, order: Order) -> float:
        profit = calculate_profit(order.items, order.total_amount, self.default_margin)
        self.ledger.update_order(session, order.id, profit_amount=profit)
        return profit

    def _dispatch_items(self, session: Session, order: Order) -> None:
        if _is_before(order.status, "fulfilling"):
            self.ledger.update_order(session, order.id, status="fulfilling")

        for item in list(order.items):
            if item.supplier_order_id:
                continue
            self.dispatcher.dispatch(session, order, item)

    def _settle_profit(
        self,
        session: Session,
        order: Order,
        profit: float,
    ) -> ProfitTransfer | None:
        if profit <= 0:
            logger.info(f"No profit to transfer for order {order.order_number}")
            return None

        for transfer in self.ledger.list_transfers(session, order.id):
            if transfer.status != "failed":
                logger.info(
                    f"Order {order.order_number} already has transfer "
                    f"{transfer.idempotency_key} ({transfer.status})"
                )
                return transfer

        return self.payouts.initiate(session, order, profit)

    # -------- Outcomes --------

    def _fail(
        self,
        session: Session,
        order_id: uuid.UUID,
        order_number: str,
        error: Exception,
    ) -> OrderOutcome:
        logger.error(f"❌ Error processing order {order_number}: {error}")
        try:
            self.ledger.update_order(
                session,
                order_id,
                status="failed",
                error_message=str(error),
            )
        except StoreUnavailable as e:
            return self._interrupted(order_id, order_number, e)

        return OrderOutcome(
            order_id=order_id,
            order_number=order_number,
            outcome="failed",
            status="failed",
            error_message=str(error),
        )

    def _interrupted(
        self,
        order_id: uuid.UUID,
        order_number: str,
        error: StoreUnavailable,
    ) -> OrderOutcome:
        logger.error(f"❌ Store unavailable while processing order {order_number}: {error}")
        return OrderOutcome(
            order_id=order_id,
            order_number=order_number,
            outcome="interrupted",
            error_message=str(error),
        )
