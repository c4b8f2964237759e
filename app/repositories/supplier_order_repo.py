# app/repositories/supplier_order_repo.py
import uuid

from sqlmodel import Session, select

from app.models.order import utcnow
from app.models.supplier_order import SupplierOrder
from app.repositories.order_repo import store_guard


class SupplierOrderRepository:

    def get_by_id(self, session: Session, supplier_order_id: str) -> SupplierOrder | None:
        return session.get(SupplierOrder, supplier_order_id)

    def list_for_items(
        self,
        session: Session,
        item_ids: list[uuid.UUID],
    ) -> list[SupplierOrder]:
        if not item_ids:
            return []
        stmt = select(SupplierOrder).where(SupplierOrder.order_item_id.in_(item_ids))
        return list(session.exec(stmt).all())

    def create(self, session: Session, supplier_order: SupplierOrder) -> SupplierOrder:
        with store_guard(session, "create_supplier_order"):
            session.add(supplier_order)
            session.commit()
            session.refresh(supplier_order)
        return supplier_order

    def update(self, session: Session, supplier_order_id: str, **fields) -> SupplierOrder:
        with store_guard(session, "update_supplier_order"):
            supplier_order = session.get(SupplierOrder, supplier_order_id)
            if supplier_order is None:
                raise LookupError(f"Supplier order {supplier_order_id} not found")
            for name, value in fields.items():
                setattr(supplier_order, name, value)
            supplier_order.updated_at = utcnow()
            session.add(supplier_order)
            session.commit()
            session.refresh(supplier_order)
        return supplier_order
