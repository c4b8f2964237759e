# app/services/order_service.py
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.errors import SupplierOrderNotFound
from app.models.order import Order, OrderItem
from app.models.transfer import ProfitTransfer
from app.repositories.order_repo import OrderRepository
from app.schemas.fulfillment import TrackingInfo
from app.schemas.order import (
    OrderCreate,
    OrderItemRead,
    OrderRead,
    OrderStatusRead,
    OrderWithItemsRead,
    SupplierOrderSummary,
    TransferReconcile,
)
from app.services.supplier_service import SupplierDispatcher

# Manual reconciliation: which transfer statuses an operator may settle
RECONCILABLE = {
    "pending": {"completed", "failed"},
    "pending_manual": {"completed", "failed"},
    "completed": set(),
    "failed": set(),
}


class OrderService:
    """
    Operator-facing order operations.

    Responsibilities:
      - Ingest orders into the pipeline (status='pending')
      - Order status / supplier-order queries
      - Supplier shipment tracking
      - Manual reconciliation of profit transfers
    """

    def __init__(self, order_repo: OrderRepository, dispatcher: SupplierDispatcher):
        self.order_repo = order_repo
        self.dispatcher = dispatcher

    # -------- Intake --------

    def create_order(self, session: Session, payload: OrderCreate) -> OrderWithItemsRead:
        """
        Ingest an order.

        Steps:
          1. Reject duplicate order_number (409).
          2. Build items, total_price = quantity * unit_price.
          3. total_amount = explicit value, else sum of item totals.
          4. Persist order + items in one commit.
        """
        if self.order_repo.get_by_number(session, payload.order_number):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Order number {payload.order_number} already exists",
            )

        items = [
            OrderItem(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.quantity * line.unit_price,
                profit_margin=line.profit_margin,
                supplier=line.supplier,
            )
            for line in payload.items
        ]

        total_amount = payload.total_amount
        if total_amount is None:
            total_amount = sum(item.total_price for item in items)

        order = Order(
            order_number=payload.order_number,
            customer_email=payload.customer_email,
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            shipping_address=payload.shipping_address,
            total_amount=total_amount,
            status="pending",
            payment_status=payload.payment_status,
            payment_method=payload.payment_method,
            payment_reference=payload.payment_reference,
        )
        order = self.order_repo.create_order(session, order, items)
        return self._build_order_with_items_dto(order)

    # -------- Queries --------

    def list_orders(
        self,
        session: Session,
        order_status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        orders = self.order_repo.list_orders(session, order_status, skip, limit)
        return orders  # type: ignore[return-value]

    def get_order_status(self, session: Session, order_id: uuid.UUID) -> OrderStatusRead:
        """
        Order with items plus the supplier side of every item.

        - 404 if order not found.
        """
        order = self._get_order_or_404(session, order_id)
        supplier_orders = [
            SupplierOrderSummary(
                order_item_id=item.id,
                supplier_order_id=item.supplier_order_id,
                supplier=item.supplier,
                status=item.supplier_status,
                tracking_number=item.tracking_number,
            )
            for item in order.items
        ]
        return OrderStatusRead(
            order=self._build_order_with_items_dto(order),
            supplier_orders=supplier_orders,
        )

    def track_supplier_order(
        self,
        session: Session,
        supplier_order_id: str,
        supplier: str | None = None,
    ) -> TrackingInfo:
        try:
            return self.dispatcher.track_shipment(session, supplier_order_id, supplier)
        except SupplierOrderNotFound:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Supplier order not found",
            )

    def list_transfers(self, session: Session, order_id: uuid.UUID) -> list[ProfitTransfer]:
        self._get_order_or_404(session, order_id)
        return self.order_repo.list_transfers(session, order_id)

    # -------- Reconciliation --------

    def reconcile_transfer(
        self,
        session: Session,
        transfer_id: uuid.UUID,
        payload: TransferReconcile,
    ) -> ProfitTransfer:
        """
        Operator settles a transfer by hand:

          pending        -> completed, failed
          pending_manual -> completed, failed
          completed      -> (no change)
          failed         -> (no change)

        Any other transition raises 400.
        """
        transfer = self.order_repo.get_transfer(session, transfer_id)
        if not transfer:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Profit transfer not found",
            )

        current = transfer.status
        new = payload.status
        if new not in RECONCILABLE.get(current, set()):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid transfer transition: {current} -> {new}",
            )

        fields: dict = {"status": new}
        if payload.transfer_reference:
            fields["transfer_reference"] = payload.transfer_reference
        if payload.notes:
            fields["notes"] = payload.notes
        return self.order_repo.update_transfer(session, transfer.id, **fields)

    # -------- Helpers --------

    def _get_order_or_404(self, session: Session, order_id: uuid.UUID) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    def _build_order_with_items_dto(self, order: Order) -> OrderWithItemsRead:
        """
        Compose OrderWithItemsRead from ORM models.
        """
        item_dtos = [OrderItemRead.model_validate(it, from_attributes=True) for it in order.items]
        data = OrderRead.model_validate(order, from_attributes=True).model_dump()
        return OrderWithItemsRead(**data, items=item_dtos)
