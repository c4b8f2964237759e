# app/core/dependencies.py
from datetime import timedelta
from functools import lru_cache

from app.core.config import Settings, get_settings
from app.core.payment_client import create_stripe_processor
from app.repositories.order_repo import OrderRepository
from app.repositories.supplier_order_repo import SupplierOrderRepository
from app.services.fulfillment_service import FulfillmentService
from app.services.order_service import OrderService
from app.services.payment_service import PaymentVerifier
from app.services.payout_service import PayoutInitiator
from app.services.supplier_service import SimulatedSupplierGateway, SupplierDispatcher


def build_supplier_dispatcher(settings: Settings) -> SupplierDispatcher:
    return SupplierDispatcher(
        OrderRepository(),
        SupplierOrderRepository(),
        SimulatedSupplierGateway(),
        max_attempts=settings.SUPPLIER_MAX_ATTEMPTS,
        retry_delay=settings.SUPPLIER_RETRY_DELAY_SECONDS,
        timeout=settings.SUPPLIER_TIMEOUT_SECONDS,
    )


def build_fulfillment_service(settings: Settings) -> FulfillmentService:
    """
    Wire the pipeline from settings.

    Used by the API (cached below) and by the cron entry point.
    """
    processor = create_stripe_processor(settings)
    ledger = OrderRepository()
    return FulfillmentService(
        ledger,
        PaymentVerifier(processor),
        build_supplier_dispatcher(settings),
        PayoutInitiator(ledger, processor, currency=settings.PAYOUT_CURRENCY),
        default_margin=settings.DEFAULT_PROFIT_MARGIN,
        batch_size=settings.ORDER_BATCH_SIZE,
        stale_after=timedelta(minutes=settings.STALE_ORDER_MINUTES),
    )


@lru_cache
def get_fulfillment_service() -> FulfillmentService:
    return build_fulfillment_service(get_settings())


@lru_cache
def get_order_service() -> OrderService:
    return OrderService(OrderRepository(), build_supplier_dispatcher(get_settings()))
