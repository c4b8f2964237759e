# app/schemas/fulfillment.py
import uuid
from datetime import datetime
from typing import Literal

from sqlmodel import SQLModel

from app.schemas.order import OrderStatus, TransferStatus

# completed   : order reached 'completed'
# failed      : order moved to 'failed' (see error_message)
# skipped     : another run claimed the order first
# interrupted : store failure, order left in its last persisted state
OutcomeKind = Literal["completed", "failed", "skipped", "interrupted"]


class OrderOutcome(SQLModel):
    order_id: uuid.UUID
    order_number: str
    outcome: OutcomeKind
    status: OrderStatus | None = None
    error_message: str | None = None
    profit_amount: float | None = None
    transfer_status: TransferStatus | None = None


class FulfillmentRunSummary(SQLModel):
    """
    Result of one batch trigger.
    """

    fetched: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    interrupted: int = 0
    outcomes: list[OrderOutcome] = []

    def record(self, outcome: OrderOutcome) -> None:
        self.outcomes.append(outcome)
        setattr(self, outcome.outcome, getattr(self, outcome.outcome) + 1)


class TrackingEvent(SQLModel):
    timestamp: datetime
    status: str
    location: str


class TrackingInfo(SQLModel):
    """
    Shipment tracking snapshot for one supplier order.
    Events are ordered oldest first.
    """

    supplier_order_id: str
    supplier: str
    status: str
    tracking_number: str | None
    estimated_delivery: datetime
    tracking_events: list[TrackingEvent]
