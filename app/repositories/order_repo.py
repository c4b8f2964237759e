# app/repositories/order_repo.py
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from sqlalchemy import update
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlmodel import Session, select

from app.core.errors import StoreUnavailable
from app.models.order import Order, OrderItem, utcnow
from app.models.transfer import ProfitTransfer

# Statuses an order can be left in by an interrupted run
IN_FLIGHT_STATUSES = ("payment_verifying", "paid", "fulfilling")


@contextmanager
def store_guard(session: Session, action: str) -> Iterator[None]:
    """
    Translate connection-level database errors into StoreUnavailable.

    The session is rolled back so it stays usable for the next order.
    """
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        session.rollback()
        raise StoreUnavailable(f"Ledger store unavailable during {action}: {e.orig or e}") from e


class OrderRepository:
    """
    Ledger store for orders, order_items and profit_transfers.

    NOTE:
      - Unlike the read-only repos, every write here commits immediately.
        Each fulfillment phase must be durable before the next one starts.
    """

    # ---- Orders ----

    def fetch_pending(self, session: Session, limit: int = 10) -> list[Order]:
        """
        Oldest-first batch of orders waiting for fulfillment (items preloaded).
        """
        stmt = (
            select(Order)
            .where(Order.status == "pending")
            .order_by(Order.created_at.asc())
            .limit(limit)
        )
        with store_guard(session, "fetch_pending"):
            return list(session.exec(stmt).all())

    def fetch_stalled(
        self,
        session: Session,
        older_than: datetime,
        limit: int = 10,
    ) -> list[Order]:
        """
        Orders left mid-pipeline whose last update is older than `older_than`.
        """
        stmt = (
            select(Order)
            .where(
                Order.status.in_(IN_FLIGHT_STATUSES),
                Order.updated_at < older_than,
            )
            .order_by(Order.updated_at.asc())
            .limit(limit)
        )
        with store_guard(session, "fetch_stalled"):
            return list(session.exec(stmt).all())

    def list_orders(
        self,
        session: Session,
        status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = select(Order)
        if status is not None:
            stmt = stmt.where(Order.status == status)
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        with store_guard(session, "get_order"):
            return session.get(Order, order_id)

    def get_by_number(self, session: Session, order_number: str) -> Order | None:
        stmt = select(Order).where(Order.order_number == order_number)
        return session.exec(stmt).first()

    def create_order(
        self,
        session: Session,
        order: Order,
        items: list[OrderItem],
    ) -> Order:
        """
        Insert an order together with its items in one transaction.
        """
        with store_guard(session, "create_order"):
            session.add(order)
            session.flush()  # Assign PK
            for position, item in enumerate(items):
                item.order_id = order.id
                item.position = position
            session.add_all(items)
            session.commit()
            session.refresh(order)
        return order

    def claim(
        self,
        session: Session,
        order_id: uuid.UUID,
        expected_status: str,
        to_status: str,
        stale_before: datetime | None = None,
    ) -> bool:
        """
        Atomic compare-and-set of the order status.

        Succeeds only if the row still has `expected_status` (and, for stalled
        orders, has not been touched since `stale_before`). Always bumps
        updated_at, so a second claimer of a stalled order fails too.

        Returns False when another run got there first.
        """
        conditions = [Order.id == order_id, Order.status == expected_status]
        if stale_before is not None:
            conditions.append(Order.updated_at < stale_before)

        stmt = (
            update(Order)
            .where(*conditions)
            .values(status=to_status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        with store_guard(session, "claim"):
            result = session.exec(stmt)
            session.commit()
        return result.rowcount == 1

    def update_order(self, session: Session, order_id: uuid.UUID, **fields) -> Order:
        """
        Partial update; always bumps updated_at.
        """
        with store_guard(session, "update_order"):
            order = session.get(Order, order_id)
            if order is None:
                raise LookupError(f"Order {order_id} not found")
            for name, value in fields.items():
                setattr(order, name, value)
            order.updated_at = utcnow()
            session.add(order)
            session.commit()
            session.refresh(order)
        return order

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = (
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.position)
        )
        return list(session.exec(stmt).all())

    def update_item(self, session: Session, item_id: uuid.UUID, **fields) -> OrderItem:
        with store_guard(session, "update_item"):
            item = session.get(OrderItem, item_id)
            if item is None:
                raise LookupError(f"Order item {item_id} not found")
            for name, value in fields.items():
                setattr(item, name, value)
            item.updated_at = utcnow()
            session.add(item)
            session.commit()
            session.refresh(item)
        return item

    # ---- Profit transfers ----

    def list_transfers(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[ProfitTransfer]:
        stmt = (
            select(ProfitTransfer)
            .where(ProfitTransfer.order_id == order_id)
            .order_by(ProfitTransfer.attempt)
        )
        with store_guard(session, "list_transfers"):
            return list(session.exec(stmt).all())

    def get_transfer(
        self,
        session: Session,
        transfer_id: uuid.UUID,
    ) -> ProfitTransfer | None:
        return session.get(ProfitTransfer, transfer_id)

    def insert_transfer(self, session: Session, transfer: ProfitTransfer) -> ProfitTransfer:
        """
        Append-only insert.
        """
        with store_guard(session, "insert_transfer"):
            session.add(transfer)
            session.commit()
            session.refresh(transfer)
        return transfer

    def update_transfer(
        self,
        session: Session,
        transfer_id: uuid.UUID,
        **fields,
    ) -> ProfitTransfer:
        with store_guard(session, "update_transfer"):
            transfer = session.get(ProfitTransfer, transfer_id)
            if transfer is None:
                raise LookupError(f"Profit transfer {transfer_id} not found")
            for name, value in fields.items():
                setattr(transfer, name, value)
            transfer.updated_at = utcnow()
            session.add(transfer)
            session.commit()
            session.refresh(transfer)
        return transfer
