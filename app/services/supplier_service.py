# app/services/supplier_service.py
import logging
import secrets
import string
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from sqlmodel import Session

from app.core.errors import (
    SupplierDispatchFailed,
    SupplierOrderNotFound,
    SupplierRejected,
    SupplierUnavailable,
)
from app.core.retry import RetryError, retry_call
from app.models.order import Order, OrderItem, utcnow
from app.models.supplier_order import SupplierOrder
from app.repositories.order_repo import OrderRepository
from app.repositories.supplier_order_repo import SupplierOrderRepository
from app.schemas.fulfillment import TrackingEvent, TrackingInfo

logger = logging.getLogger(__name__)

# Supplier-order id prefix per upstream supplier
SUPPLIER_PREFIXES: dict[str, str] = {
    "amazon": "AMZ",
    "aliexpress": "ALX",
    "mercadolibre": "ML",
    "ebay": "EBY",
}
DEFAULT_PREFIX = "SUP"

# Estimated delivery offset (days) per upstream supplier
DELIVERY_DAYS: dict[str, int] = {
    "amazon": 2,
    "aliexpress": 7,
    "mercadolibre": 3,
    "ebay": 5,
}
DEFAULT_DELIVERY_DAYS = 5

# Failures worth another attempt; everything else surfaces immediately
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    SupplierUnavailable,
    TimeoutError,
    ConnectionError,
)

_ID_ALPHABET = string.ascii_uppercase + string.digits


def as_utc(value: datetime) -> datetime:
    """
    Some backends (SQLite) hand datetimes back naive; they are stored as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_supplier_order_id(supplier: str, now: datetime | None = None) -> str:
    """
    Supplier prefix + last 8 digits of the epoch millis + 6 random chars.

    Example: AMZ48213377K2J9QX
    """
    now = now or utcnow()
    prefix = SUPPLIER_PREFIXES.get(supplier.lower(), DEFAULT_PREFIX)
    timestamp = str(int(now.timestamp() * 1000))[-8:]
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"{prefix}{timestamp}{suffix}"


def estimate_delivery(supplier: str, now: datetime | None = None) -> datetime:
    now = now or utcnow()
    days = DELIVERY_DAYS.get(supplier.lower(), DEFAULT_DELIVERY_DAYS)
    return now + timedelta(days=days)


class SupplierGateway(Protocol):
    """
    Transport to the upstream suppliers.

    submit() raises SupplierUnavailable / TimeoutError / ConnectionError for
    transient problems and SupplierRejected for permanent ones.
    """

    def submit(self, supplier_order: SupplierOrder, timeout: float) -> None:
        ...

    def fetch_tracking(self, supplier_order: SupplierOrder, timeout: float) -> TrackingInfo:
        ...


class SimulatedSupplierGateway:
    """
    Gateway used until real supplier APIs are wired in.

    - submit: accepts every request.
    - fetch_tracking: derives a timeline from the supplier order itself:
        created_at          -> order_processed (Supplier warehouse)
        created_at + 1 day  -> shipped         (Origin facility)
        estimated_delivery  -> delivered       (Destination)
      Only events in the past are reported, so polling is stable.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    def submit(self, supplier_order: SupplierOrder, timeout: float) -> None:
        logger.info(
            f"Submitted {supplier_order.id} to {supplier_order.supplier} "
            f"(total {supplier_order.total_amount:.2f})"
        )

    def fetch_tracking(self, supplier_order: SupplierOrder, timeout: float) -> TrackingInfo:
        now = self.clock()
        created_at = as_utc(supplier_order.created_at)
        eta = as_utc(supplier_order.estimated_delivery)
        shipped_at = created_at + timedelta(days=1)

        status = "ordered"
        events = [
            TrackingEvent(
                timestamp=created_at,
                status="order_processed",
                location="Supplier warehouse",
            )
        ]
        if now >= shipped_at:
            status = "in_transit"
            events.append(
                TrackingEvent(timestamp=shipped_at, status="shipped", location="Origin facility")
            )
        if now >= eta:
            status = "delivered"
            events.append(
                TrackingEvent(timestamp=eta, status="delivered", location="Destination")
            )

        tracking_number = supplier_order.tracking_number
        if status != "ordered" and not tracking_number:
            tracking_number = f"TRK{supplier_order.id}"

        return TrackingInfo(
            supplier_order_id=supplier_order.id,
            supplier=supplier_order.supplier,
            status=status,
            tracking_number=tracking_number,
            estimated_delivery=eta,
            tracking_events=events,
        )


class SupplierDispatcher:
    """
    Places one supplier order per order item and answers tracking queries.

    Dispatch rules:
      - transient gateway failures are retried (max_attempts, exponential
        backoff from retry_delay) -> SupplierDispatchFailed when exhausted
      - SupplierRejected is not retried
      - success writes supplier_order_id + supplier_status='ordered' back
        onto the item; failure marks only that item ('rejected' / 'failed')
    """

    def __init__(
        self,
        ledger: OrderRepository,
        supplier_orders: SupplierOrderRepository,
        gateway: SupplierGateway,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 15.0,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.ledger = ledger
        self.supplier_orders = supplier_orders
        self.gateway = gateway
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.clock = clock
        self.sleep = sleep

    def dispatch(self, session: Session, order: Order, item: OrderItem) -> SupplierOrder:
        now = self.clock()
        supplier_order = SupplierOrder(
            id=generate_supplier_order_id(item.supplier, now),
            order_item_id=item.id,
            supplier=item.supplier,
            items=[
                {
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                }
            ],
            shipping_address=order.shipping_address,
            total_amount=item.total_price,
            status="ordered",
            estimated_delivery=estimate_delivery(item.supplier, now),
            created_at=now,
            updated_at=now,
        )

        try:
            retry_call(
                self.gateway.submit,
                supplier_order,
                timeout=self.timeout,
                max_attempts=self.max_attempts,
                delay=self.retry_delay,
                exceptions=TRANSIENT_ERRORS,
                sleep=self.sleep,
            )
        except SupplierRejected as e:
            logger.error(f"❌ Supplier rejected item {item.id} of order {order.order_number}: {e.reason}")
            self.ledger.update_item(session, item.id, supplier_status="rejected")
            raise
        except RetryError as e:
            logger.error(
                f"❌ Supplier order for item {item.id} of order {order.order_number} "
                f"failed after {e.attempts} attempts: {e.last_exception}"
            )
            self.ledger.update_item(session, item.id, supplier_status="failed")
            raise SupplierDispatchFailed(item.id, item.supplier, e.attempts, e.last_exception) from e
        except Exception as e:
            logger.error(
                f"❌ Unexpected supplier error for item {item.id} of order {order.order_number}: {e}"
            )
            self.ledger.update_item(session, item.id, supplier_status="failed")
            raise

        supplier_order = self.supplier_orders.create(session, supplier_order)
        self.ledger.update_item(
            session,
            item.id,
            supplier_order_id=supplier_order.id,
            supplier_status="ordered",
        )

        logger.info(f"📦 Created supplier order: {supplier_order.id} for {item.quantity} units")
        return supplier_order

    def track_shipment(
        self,
        session: Session,
        supplier_order_id: str,
        supplier: str | None = None,
    ) -> TrackingInfo:
        """
        Fetch the latest tracking snapshot and mirror status / tracking number
        onto the supplier order and its order item. Writes only on change.

        Raises:
            SupplierOrderNotFound: unknown id, or id belongs to another supplier.
        """
        supplier_order = self.supplier_orders.get_by_id(session, supplier_order_id)
        if supplier_order is None or (
            supplier and supplier_order.supplier.lower() != supplier.lower()
        ):
            raise SupplierOrderNotFound(supplier_order_id)

        info = self.gateway.fetch_tracking(supplier_order, timeout=self.timeout)

        if (supplier_order.status, supplier_order.tracking_number) != (
            info.status,
            info.tracking_number,
        ):
            self.supplier_orders.update(
                session,
                supplier_order.id,
                status=info.status,
                tracking_number=info.tracking_number,
            )

        item = session.get(OrderItem, supplier_order.order_item_id)
        if item is not None and (item.supplier_status, item.tracking_number) != (
            info.status,
            info.tracking_number,
        ):
            self.ledger.update_item(
                session,
                item.id,
                supplier_status=info.status,
                tracking_number=info.tracking_number,
            )

        return info
