# app/models/supplier_order.py
import uuid
from datetime import datetime

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from app.models.order import utcnow


class SupplierOrder(SQLModel, table=True):
    """
    Fulfillment request placed with an upstream supplier for one order item.

    Owned by the supplier dispatcher; OrderItem only keeps the id.
    """

    __tablename__ = "supplier_orders"

    # e.g. AMZ48213377K2J9QX
    id: str = Field(primary_key=True, max_length=64)

    order_item_id: uuid.UUID = Field(
        foreign_key="order_items.id",
        index=True,
    )

    supplier: str = Field(max_length=100, index=True)

    # [{"product_id": ..., "quantity": ..., "unit_price": ...}]
    items: list[dict] = Field(default_factory=list, sa_column=Column(JSON))

    shipping_address: str
    total_amount: float = Field(ge=0)

    # ordered | in_transit | delivered
    status: str = Field(default="ordered")
    estimated_delivery: datetime
    tracking_number: str | None = Field(default=None, max_length=255)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
