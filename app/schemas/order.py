# app/schemas/order.py
import math
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

OrderStatus = Literal[
    "pending",
    "payment_verifying",
    "paid",
    "fulfilling",
    "completed",
    "failed",
]
PaymentStatus = Literal["pending", "paid"]
PaymentMethod = Literal["stripe", "paypal"]
TransferMethod = Literal["processor", "manual"]
TransferStatus = Literal["pending", "pending_manual", "completed", "failed"]


class OrderItemCreate(SQLModel):
    """
    One line of a manually ingested order.

    total_price is derived (quantity * unit_price), never accepted.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: str
    product_name: str | None = None
    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)
    profit_margin: float | None = Field(default=None, ge=0, le=1)
    supplier: str

    @field_validator("product_id", "supplier")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("unit_price", "profit_margin")
    @classmethod
    def finite(cls, v: float | None) -> float | None:
        if v is not None and not math.isfinite(v):
            raise ValueError("must be a finite number")
        return v


class OrderCreate(SQLModel):
    """
    Payload for ingesting an order into the fulfillment pipeline.

    Backend derives:
      - status = 'pending'
      - total_amount from items (unless given explicitly, e.g. with shipping)
      - per-item total_price

    payment_status is trusted as sent: intake sits behind an operator token
    and receives orders from the storefront checkout, which has already
    captured the payment when it sends 'paid'. Such orders skip payment
    verification in the pipeline.
    """

    model_config = ConfigDict(extra="forbid")

    order_number: str
    customer_email: str
    customer_name: str
    customer_phone: str | None = None
    shipping_address: str
    payment_method: PaymentMethod
    payment_reference: str | None = None
    payment_status: PaymentStatus = "pending"
    total_amount: float | None = Field(default=None, ge=0)
    items: list[OrderItemCreate] = Field(min_length=1)

    @field_validator("order_number", "customer_email", "customer_name", "shipping_address")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("customer_phone", "payment_reference")
    @classmethod
    def normalize_optional(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None

    @field_validator("total_amount")
    @classmethod
    def finite(cls, v: float | None) -> float | None:
        if v is not None and not math.isfinite(v):
            raise ValueError("must be a finite number")
        return v


class OrderItemRead(SQLModel):
    id: uuid.UUID
    order_id: uuid.UUID
    position: int
    product_id: str
    product_name: str | None
    quantity: int
    unit_price: float
    total_price: float
    profit_margin: float | None
    supplier: str
    supplier_order_id: str | None
    supplier_status: str
    tracking_number: str | None


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    order_number: str
    customer_email: str
    customer_name: str
    customer_phone: str | None
    shipping_address: str
    total_amount: float
    profit_amount: float | None
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: str
    payment_reference: str | None
    error_message: str | None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None


class OrderWithItemsRead(OrderRead):
    items: list[OrderItemRead]


class SupplierOrderSummary(SQLModel):
    """
    Per-item view of the supplier side of an order.
    """

    order_item_id: uuid.UUID
    supplier_order_id: str | None
    supplier: str
    status: str
    tracking_number: str | None


class OrderStatusRead(SQLModel):
    order: OrderWithItemsRead
    supplier_orders: list[SupplierOrderSummary]


class ProfitTransferRead(SQLModel):
    id: uuid.UUID
    order_id: uuid.UUID
    amount: float
    method: TransferMethod
    transfer_reference: str | None
    status: TransferStatus
    attempt: int
    idempotency_key: str
    notes: str | None
    created_at: datetime
    updated_at: datetime


class TransferReconcile(SQLModel):
    """
    Operator payload to settle a transfer by hand.
    """

    model_config = ConfigDict(extra="forbid")

    status: Literal["completed", "failed"]
    transfer_reference: str | None = None
    notes: str | None = None
