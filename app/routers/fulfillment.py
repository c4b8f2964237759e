# app/routers/fulfillment.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_operator
from app.core.dependencies import get_fulfillment_service, get_order_service
from app.database import get_session
from app.schemas.fulfillment import FulfillmentRunSummary, TrackingInfo
from app.schemas.order import ProfitTransferRead, TransferReconcile
from app.services.fulfillment_service import FulfillmentService
from app.services.order_service import OrderService

router = APIRouter(
    prefix="/fulfillment",
    tags=["Fulfillment"],
    dependencies=[Depends(require_operator)],
)


@router.post(
    "/run",
    response_model=FulfillmentRunSummary,
)
def run_pending_orders(
    session: Session = Depends(get_session),
    service: FulfillmentService = Depends(get_fulfillment_service),
):
    """
    Manual trigger: process the next batch of pending orders.
    """
    return service.process_pending_orders(session)


@router.post(
    "/resume",
    response_model=FulfillmentRunSummary,
)
def resume_stalled_orders(
    session: Session = Depends(get_session),
    service: FulfillmentService = Depends(get_fulfillment_service),
):
    """
    Manual trigger: resume orders an interrupted run left mid-pipeline.
    """
    return service.resume_stalled_orders(session)


@router.get(
    "/supplier-orders/{supplier_order_id}/tracking",
    response_model=TrackingInfo,
)
def track_supplier_order(
    supplier_order_id: str,
    supplier: str | None = None,
    session: Session = Depends(get_session),
    service: OrderService = Depends(get_order_service),
):
    """
    Latest shipment tracking for a supplier order. Safe to poll.
    """
    return service.track_supplier_order(session, supplier_order_id, supplier)


@router.patch(
    "/transfers/{transfer_id}",
    response_model=ProfitTransferRead,
)
def reconcile_transfer(
    transfer_id: uuid.UUID,
    payload: TransferReconcile,
    session: Session = Depends(get_session),
    service: OrderService = Depends(get_order_service),
):
    """
    Settle a profit transfer by hand.

      pending        -> completed, failed

      pending_manual -> completed, failed
    """
    return service.reconcile_transfer(session, transfer_id, payload)
