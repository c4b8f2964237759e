# app/models/transfer.py
import uuid
from datetime import datetime

from sqlmodel import SQLModel, Field

from app.models.order import utcnow


class ProfitTransfer(SQLModel, table=True):
    """
    Record of moving an order's profit to the operator.

    Append-only: every payout attempt gets its own row
    (idempotency_key = "<order id>:<attempt>"). Rows are never deleted.
    """

    __tablename__ = "profit_transfers"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    amount: float = Field(ge=0)

    # processor | manual
    method: str = Field(max_length=20)

    transfer_reference: str | None = Field(
        default=None,
        max_length=255,
        description="Payout id from the processor, or manual reference",
    )

    # pending | pending_manual | completed | failed
    status: str = Field(default="pending", index=True)

    attempt: int = Field(default=1, ge=1)
    idempotency_key: str = Field(max_length=100, unique=True)

    notes: str | None = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
