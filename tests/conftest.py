"""Pytest fixtures for the fulfillment pipeline tests."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import app.database  # noqa: F401  (registers all table models)
from app.core.errors import PayoutFailed
from app.models.order import Order, OrderItem
from app.repositories.order_repo import OrderRepository
from app.repositories.supplier_order_repo import SupplierOrderRepository
from app.services.fulfillment_service import FulfillmentService
from app.services.payment_service import PaymentVerifier
from app.services.payout_service import PayoutInitiator
from app.services.supplier_service import SimulatedSupplierGateway, SupplierDispatcher

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FakePaymentProcessor:
    """In-memory stand-in for the Stripe processor."""

    def __init__(self):
        self.statuses: dict[str, str] = {}
        self.status_calls: list[str] = []
        self.payouts: list[dict] = []
        self.payout_error: str | None = None

    def get_payment_status(self, payment_reference: str) -> str:
        self.status_calls.append(payment_reference)
        return self.statuses.get(payment_reference, "succeeded")

    def create_payout(self, amount_cents, currency, metadata, idempotency_key):
        if self.payout_error:
            raise PayoutFailed(self.payout_error)
        self.payouts.append(
            {
                "amount_cents": amount_cents,
                "currency": currency,
                "metadata": metadata,
                "idempotency_key": idempotency_key,
            }
        )
        return f"po_{len(self.payouts)}"


class FakeSupplierGateway(SimulatedSupplierGateway):
    """
    Scriptable gateway.

    failures[product_id] is a list of exceptions raised by successive
    submit() calls for that product; once exhausted, submit() succeeds.
    """

    def __init__(self, clock=lambda: NOW):
        super().__init__(clock=clock)
        self.failures: dict[str, list[Exception]] = {}
        self.submitted: list[str] = []
        self.attempts: list[str] = []
        self.tracking_calls = 0

    def submit(self, supplier_order, timeout):
        product_id = supplier_order.items[0]["product_id"]
        self.attempts.append(product_id)
        queue = self.failures.get(product_id)
        if queue:
            raise queue.pop(0)
        self.submitted.append(product_id)

    def fetch_tracking(self, supplier_order, timeout):
        self.tracking_calls += 1
        return super().fetch_tracking(supplier_order, timeout)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def ledger():
    return OrderRepository()


@pytest.fixture
def processor():
    return FakePaymentProcessor()


@pytest.fixture
def gateway():
    return FakeSupplierGateway()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def dispatcher(ledger, gateway, sleeps):
    return SupplierDispatcher(
        ledger,
        SupplierOrderRepository(),
        gateway,
        max_attempts=3,
        retry_delay=0.5,
        timeout=5.0,
        clock=lambda: NOW,
        sleep=sleeps.append,
    )


@pytest.fixture
def verifier(processor):
    return PaymentVerifier(processor)


@pytest.fixture
def payouts(ledger, processor):
    return PayoutInitiator(ledger, processor, currency="usd")


@pytest.fixture
def fulfillment(ledger, verifier, dispatcher, payouts):
    return FulfillmentService(
        ledger,
        verifier,
        dispatcher,
        payouts,
        default_margin=0.25,
        batch_size=10,
        stale_after=timedelta(minutes=30),
    )


@pytest.fixture
def make_order(session, ledger):
    """
    Factory for persisted orders.

    items: list of dicts with unit_price / quantity and optional
    profit_margin, supplier, product_id.
    """
    counter = {"n": 0}

    def _make(
        items=None,
        payment_method="stripe",
        payment_reference="pi_test",
        payment_status="pending",
        status="pending",
        total_amount=None,
        created_at=None,
        updated_at=None,
    ) -> Order:
        counter["n"] += 1
        n = counter["n"]
        if items is None:
            items = [{"unit_price": 10.0, "quantity": 1}]

        order_items = []
        for idx, line in enumerate(items):
            quantity = line.get("quantity", 1)
            unit_price = line.get("unit_price", 10.0)
            order_items.append(
                OrderItem(
                    product_id=line.get("product_id", f"prod-{n}-{idx}"),
                    quantity=quantity,
                    unit_price=unit_price,
                    total_price=line.get("total_price", quantity * unit_price),
                    profit_margin=line.get("profit_margin"),
                    supplier=line.get("supplier", "amazon"),
                )
            )

        if total_amount is None:
            total_amount = sum(it.total_price for it in order_items)

        created = created_at or datetime.now(timezone.utc) - timedelta(minutes=60 - n)
        order = Order(
            order_number=f"ORD-{n:04d}",
            customer_email=f"customer{n}@example.com",
            customer_name=f"Customer {n}",
            shipping_address="1 Main St, Springfield",
            total_amount=total_amount,
            status=status,
            payment_status=payment_status,
            payment_method=payment_method,
            payment_reference=payment_reference,
            created_at=created,
            updated_at=updated_at or datetime.now(timezone.utc),
        )
        return ledger.create_order(session, order, order_items)

    return _make
