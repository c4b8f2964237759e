"""Tests for the profit payout initiator."""

from app.services.payout_service import PayoutInitiator, idempotency_key, to_cents


class TestPayoutInitiator:

    def test_stripe_order_creates_processor_payout(
        self, session, make_order, payouts, processor, ledger
    ) -> None:
        order = make_order()

        transfer = payouts.initiate(session, order, 12.5)

        assert transfer.status == "pending"
        assert transfer.method == "processor"
        assert transfer.transfer_reference == "po_1"
        assert transfer.attempt == 1
        assert transfer.idempotency_key == f"{order.id}:1"

        assert processor.payouts == [
            {
                "amount_cents": 1250,
                "currency": "usd",
                "metadata": {
                    "order_id": str(order.id),
                    "order_number": order.order_number,
                    "profit_amount": "12.5",
                },
                "idempotency_key": f"{order.id}:1",
            }
        ]
        assert [t.id for t in ledger.list_transfers(session, order.id)] == [transfer.id]

    def test_paypal_order_is_recorded_for_manual_settlement(
        self, session, make_order, payouts, processor
    ) -> None:
        order = make_order(payment_method="paypal", payment_reference="PAYID-1")

        transfer = payouts.initiate(session, order, 7.25)

        assert transfer.status == "pending_manual"
        assert transfer.method == "manual"
        assert transfer.transfer_reference == f"PP-{order.order_number}"
        assert transfer.notes == "Manual PayPal transfer required"
        assert processor.payouts == []

    def test_processor_failure_is_recorded_not_raised(
        self, session, make_order, payouts, processor
    ) -> None:
        processor.payout_error = "Insufficient funds in Stripe account"
        order = make_order()

        transfer = payouts.initiate(session, order, 3.0)

        assert transfer.status == "failed"
        assert transfer.transfer_reference is None
        assert "Insufficient funds" in transfer.notes

    def test_unexpected_processor_error_is_recorded(
        self, session, make_order, payouts, processor, ledger, monkeypatch
    ) -> None:
        def create_payout(amount_cents, currency, metadata, idempotency_key):
            raise TimeoutError("read timed out")

        monkeypatch.setattr(processor, "create_payout", create_payout)
        order = make_order()

        transfer = payouts.initiate(session, order, 3.0)

        assert transfer.status == "failed"
        assert transfer.notes == "Payout error: TimeoutError: read timed out"
        assert len(ledger.list_transfers(session, order.id)) == 1

    def test_each_attempt_gets_its_own_row(
        self, session, make_order, payouts, processor, ledger
    ) -> None:
        processor.payout_error = "card_declined"
        order = make_order()
        first = payouts.initiate(session, order, 5.0)

        processor.payout_error = None
        second = payouts.initiate(session, order, 5.0)

        assert (first.attempt, first.status) == (1, "failed")
        assert (second.attempt, second.status) == (2, "pending")
        assert second.idempotency_key == f"{order.id}:2"
        assert len(ledger.list_transfers(session, order.id)) == 2

    def test_without_processor_stripe_falls_back_to_manual(
        self, session, make_order, ledger
    ) -> None:
        payouts = PayoutInitiator(ledger, processor=None)
        order = make_order()

        transfer = payouts.initiate(session, order, 9.99)

        assert transfer.status == "pending_manual"
        assert transfer.method == "manual"
        assert "not configured" in transfer.notes


def test_to_cents_rounds_to_nearest_cent() -> None:
    assert to_cents(12.5) == 1250
    assert to_cents(0.1 + 0.2) == 30
    assert to_cents(19.999) == 2000


def test_idempotency_key_is_order_scoped(session, make_order) -> None:
    order = make_order()
    assert idempotency_key(order, 3) == f"{order.id}:3"
