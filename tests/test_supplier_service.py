"""Tests for the supplier dispatcher and shipment tracking."""

import re
from datetime import timedelta

import pytest

from app.core.errors import (
    SupplierDispatchFailed,
    SupplierOrderNotFound,
    SupplierRejected,
    SupplierUnavailable,
)
from app.models.order import OrderItem
from app.models.supplier_order import SupplierOrder
from app.services.supplier_service import (
    SupplierDispatcher,
    as_utc,
    estimate_delivery,
    generate_supplier_order_id,
)
from app.repositories.supplier_order_repo import SupplierOrderRepository
from tests.conftest import NOW


class TestSupplierPolicy:

    @pytest.mark.parametrize(
        "supplier, prefix",
        [("amazon", "AMZ"), ("AliExpress", "ALX"), ("mercadolibre", "ML"), ("ebay", "EBY"), ("acme", "SUP")],
    )
    def test_id_prefix_per_supplier(self, supplier, prefix) -> None:
        supplier_order_id = generate_supplier_order_id(supplier, NOW)
        assert re.fullmatch(rf"{prefix}\d{{8}}[A-Z0-9]{{6}}", supplier_order_id)

    def test_ids_are_unique(self) -> None:
        ids = {generate_supplier_order_id("amazon", NOW) for _ in range(200)}
        assert len(ids) == 200

    @pytest.mark.parametrize(
        "supplier, days",
        [("amazon", 2), ("aliexpress", 7), ("mercadolibre", 3), ("ebay", 5), ("unknown", 5)],
    )
    def test_estimated_delivery_offset(self, supplier, days) -> None:
        assert estimate_delivery(supplier, NOW) == NOW + timedelta(days=days)


class TestDispatch:

    def test_success_records_supplier_order_and_updates_item(
        self, session, make_order, dispatcher, gateway
    ) -> None:
        order = make_order(items=[{"unit_price": 12.5, "quantity": 2, "supplier": "ebay"}])
        item = order.items[0]

        supplier_order = dispatcher.dispatch(session, order, item)

        stored = session.get(SupplierOrder, supplier_order.id)
        assert stored is not None
        assert stored.supplier == "ebay"
        assert stored.total_amount == 25.0
        assert stored.shipping_address == "1 Main St, Springfield"
        assert stored.items == [
            {"product_id": item.product_id, "quantity": 2, "unit_price": 12.5}
        ]
        assert as_utc(stored.estimated_delivery) == NOW + timedelta(days=5)

        refreshed = session.get(OrderItem, item.id)
        assert refreshed.supplier_order_id == supplier_order.id
        assert refreshed.supplier_status == "ordered"
        assert gateway.submitted == [item.product_id]

    def test_transient_failures_are_retried_with_backoff(
        self, session, make_order, dispatcher, gateway, sleeps
    ) -> None:
        order = make_order()
        item = order.items[0]
        gateway.failures[item.product_id] = [SupplierUnavailable("502"), TimeoutError("slow")]

        dispatcher.dispatch(session, order, item)

        assert gateway.attempts == [item.product_id] * 3
        assert sleeps == [0.5, 1.0]
        assert session.get(OrderItem, item.id).supplier_status == "ordered"

    def test_exhausted_retries_raise_dispatch_failed(
        self, session, make_order, dispatcher, gateway
    ) -> None:
        order = make_order()
        item = order.items[0]
        gateway.failures[item.product_id] = [ConnectionError("reset")] * 5

        with pytest.raises(SupplierDispatchFailed) as exc_info:
            dispatcher.dispatch(session, order, item)

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, ConnectionError)
        assert len(gateway.attempts) == 3

        refreshed = session.get(OrderItem, item.id)
        assert refreshed.supplier_status == "failed"
        assert refreshed.supplier_order_id is None
        assert SupplierOrderRepository().list_for_items(session, [item.id]) == []

    def test_rejection_is_not_retried(
        self, session, make_order, dispatcher, gateway, sleeps
    ) -> None:
        order = make_order()
        item = order.items[0]
        gateway.failures[item.product_id] = [SupplierRejected("amazon", "out of stock")]

        with pytest.raises(SupplierRejected):
            dispatcher.dispatch(session, order, item)

        assert gateway.attempts == [item.product_id]
        assert sleeps == []
        assert session.get(OrderItem, item.id).supplier_status == "rejected"

    def test_unexpected_gateway_error_marks_item_failed(
        self, session, make_order, dispatcher, gateway, sleeps
    ) -> None:
        order = make_order()
        item = order.items[0]
        gateway.failures[item.product_id] = [ValueError("malformed supplier response")]

        with pytest.raises(ValueError):
            dispatcher.dispatch(session, order, item)

        assert gateway.attempts == [item.product_id]
        assert sleeps == []
        refreshed = session.get(OrderItem, item.id)
        assert refreshed.supplier_status == "failed"
        assert refreshed.supplier_order_id is None

    def test_single_attempt_budget(self, session, make_order, ledger, gateway) -> None:
        dispatcher = SupplierDispatcher(
            ledger,
            SupplierOrderRepository(),
            gateway,
            max_attempts=1,
            clock=lambda: NOW,
            sleep=lambda _: None,
        )
        order = make_order()
        item = order.items[0]
        gateway.failures[item.product_id] = [SupplierUnavailable("down")]

        with pytest.raises(SupplierDispatchFailed):
            dispatcher.dispatch(session, order, item)
        assert len(gateway.attempts) == 1


class TestTracking:

    def _dispatched(self, session, make_order, dispatcher, supplier="amazon"):
        order = make_order(items=[{"supplier": supplier}])
        item = order.items[0]
        supplier_order = dispatcher.dispatch(session, order, item)
        return item, supplier_order.id

    def test_fresh_order_is_only_processed(self, session, make_order, dispatcher) -> None:
        _, supplier_order_id = self._dispatched(session, make_order, dispatcher)

        info = dispatcher.track_shipment(session, supplier_order_id)

        assert info.status == "ordered"
        assert info.tracking_number is None
        assert [e.status for e in info.tracking_events] == ["order_processed"]

    def test_in_transit_updates_item_and_supplier_order(
        self, session, make_order, dispatcher, gateway
    ) -> None:
        item, supplier_order_id = self._dispatched(session, make_order, dispatcher)
        gateway.clock = lambda: NOW + timedelta(days=1, hours=1)

        info = dispatcher.track_shipment(session, supplier_order_id, supplier="Amazon")

        assert info.status == "in_transit"
        assert info.tracking_number == f"TRK{supplier_order_id}"
        assert [e.status for e in info.tracking_events] == ["order_processed", "shipped"]
        timestamps = [e.timestamp for e in info.tracking_events]
        assert timestamps == sorted(timestamps)

        refreshed = session.get(OrderItem, item.id)
        assert refreshed.supplier_status == "in_transit"
        assert refreshed.tracking_number == f"TRK{supplier_order_id}"
        assert session.get(SupplierOrder, supplier_order_id).status == "in_transit"

    def test_delivered_after_estimated_delivery(
        self, session, make_order, dispatcher, gateway
    ) -> None:
        _, supplier_order_id = self._dispatched(session, make_order, dispatcher)
        gateway.clock = lambda: NOW + timedelta(days=3)

        info = dispatcher.track_shipment(session, supplier_order_id)

        assert info.status == "delivered"
        assert [e.status for e in info.tracking_events] == [
            "order_processed",
            "shipped",
            "delivered",
        ]

    def test_polling_is_idempotent(self, session, make_order, dispatcher, gateway) -> None:
        item, supplier_order_id = self._dispatched(session, make_order, dispatcher)
        gateway.clock = lambda: NOW + timedelta(days=1, hours=1)

        first = dispatcher.track_shipment(session, supplier_order_id)
        updated_at = session.get(OrderItem, item.id).updated_at
        second = dispatcher.track_shipment(session, supplier_order_id)

        assert first == second
        assert session.get(OrderItem, item.id).updated_at == updated_at
        assert gateway.tracking_calls == 2

    def test_unknown_supplier_order(self, session, dispatcher) -> None:
        with pytest.raises(SupplierOrderNotFound):
            dispatcher.track_shipment(session, "AMZ00000000XXXXXX")

    def test_supplier_mismatch_is_not_found(self, session, make_order, dispatcher) -> None:
        _, supplier_order_id = self._dispatched(session, make_order, dispatcher)

        with pytest.raises(SupplierOrderNotFound):
            dispatcher.track_shipment(session, supplier_order_id, supplier="ebay")
