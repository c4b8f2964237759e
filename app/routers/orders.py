# app/routers/orders.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import require_operator
from app.core.dependencies import get_order_service
from app.database import get_session
from app.schemas.order import (
    OrderCreate,
    OrderRead,
    OrderStatus,
    OrderStatusRead,
    OrderWithItemsRead,
    ProfitTransferRead,
)
from app.services.order_service import OrderService

router = APIRouter(
    prefix="/orders",
    tags=["Orders"],
    dependencies=[Depends(require_operator)],
)


@router.post(
    "",
    response_model=OrderWithItemsRead,
    status_code=status.HTTP_201_CREATED,
)
def create_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    service: OrderService = Depends(get_order_service),
):
    """
    Ingest an order into the fulfillment pipeline (status='pending').
    """
    return service.create_order(session, payload)


@router.get(
    "",
    response_model=list[OrderRead],
)
def list_orders(
    order_status: OrderStatus | None = None,
    skip: int = 0,
    limit: int = 50,
    session: Session = Depends(get_session),
    service: OrderService = Depends(get_order_service),
):
    """
    List orders, newest first, optionally filtered by status.
    """
    return service.list_orders(session, order_status, skip, limit)


@router.get(
    "/{order_id}/status",
    response_model=OrderStatusRead,
)
def get_order_status(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    service: OrderService = Depends(get_order_service),
):
    """
    Order (with items) plus supplier order id / status / tracking per item.
    """
    return service.get_order_status(session, order_id)


@router.get(
    "/{order_id}/transfers",
    response_model=list[ProfitTransferRead],
)
def list_order_transfers(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    service: OrderService = Depends(get_order_service),
):
    """
    Every profit transfer attempt for the order, oldest first.
    """
    return service.list_transfers(session, order_id)
