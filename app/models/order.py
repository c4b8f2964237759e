# app/models/order.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field, Relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(SQLModel, table=True):
    """
    Customer order moving through the fulfillment pipeline.

    Lifecycle (status):
      pending -> payment_verifying -> paid -> fulfilling -> completed
      any non-terminal state -> failed

    profit_amount stays NULL until the profit phase has run.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_number: str = Field(
        max_length=100,
        unique=True,
        index=True,
        description="Human-readable order number (unique)",
    )

    customer_email: str = Field(max_length=255)
    customer_name: str = Field(max_length=255)
    customer_phone: str | None = Field(default=None, max_length=50)
    shipping_address: str = Field(description="Full shipping address")

    total_amount: float = Field(
        ge=0,
        description="Amount charged to the customer",
    )
    profit_amount: float | None = Field(
        default=None,
        description="Operator margin, set by the profit phase",
    )

    # pending | payment_verifying | paid | fulfilling | completed | failed
    status: str = Field(
        default="pending",
        index=True,
        description="Fulfillment lifecycle status",
    )

    # pending | paid
    payment_status: str = Field(default="pending")

    # stripe | paypal
    payment_method: str = Field(max_length=50)
    payment_reference: str | None = Field(
        default=None,
        max_length=255,
        description="Stripe PaymentIntent id or PayPal transaction id",
    )

    error_message: str | None = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow, index=True)
    completed_at: datetime | None = Field(default=None)

    items: list["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"order_by": "OrderItem.position", "lazy": "selectin"},
    )


class OrderItem(SQLModel, table=True):
    """
    One product line inside an order.

    total_price = quantity * unit_price, computed at intake.
    supplier_order_id / tracking_number stay NULL until dispatch / shipping.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    # Dispatch order within the parent order
    position: int = Field(default=0, ge=0)

    product_id: str = Field(
        max_length=255,
        description="Catalog reference of the product",
    )
    product_name: str | None = Field(default=None, max_length=500)

    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)
    total_price: float = Field(ge=0)

    profit_margin: float | None = Field(
        default=None,
        description="Margin fraction (0..1); default policy value when NULL",
    )

    # amazon | aliexpress | mercadolibre | ebay | ...
    supplier: str = Field(max_length=100)
    supplier_order_id: str | None = Field(default=None, max_length=255, index=True)

    # pending | ordered | in_transit | delivered | rejected | failed
    supplier_status: str = Field(default="pending")
    tracking_number: str | None = Field(default=None, max_length=255)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    order: Order | None = Relationship(back_populates="items")
