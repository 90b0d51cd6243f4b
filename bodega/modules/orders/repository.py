from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional, Tuple
import logging

from bodega.core.exceptions import CustomerNotFound, ProductNotFound, SupplierNotFound, WarehouseNotFound
from bodega.shared.database.models import (
    Customer, Order, OrderLine, Pallet, PickAssignment, Product, Supplier, Warehouse
)
from bodega.shared.schemas.common import AssignmentState, PalletStatus

logger = logging.getLogger(__name__)

# Una tarima RESERVADA aún puede tener unidades libres
ASSIGNABLE_STATUSES = (PalletStatus.ACTIVE.value, PalletStatus.RESERVED.value)


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def ensure_references(self, warehouse_id: str, customer_id: str):
        if not self.db.query(Warehouse.id).filter(Warehouse.id == warehouse_id).first():
            raise WarehouseNotFound(warehouse_id)
        if not self.db.query(Customer.id).filter(Customer.id == customer_id).first():
            raise CustomerNotFound(customer_id)

    def ensure_line_references(self, product_id: str, supplier_id: Optional[str] = None):
        if not self.db.query(Product.id).filter(Product.id == product_id).first():
            raise ProductNotFound(product_id)
        if supplier_id and not self.db.query(Supplier.id).filter(Supplier.id == supplier_id).first():
            raise SupplierNotFound(supplier_id)

    def next_order_number(self) -> str:
        count = self.db.query(func.count(Order.id)).scalar() or 0
        return f"PED-{count + 1:06d}"

    def create_order(self, **fields) -> Order:
        order = Order(**fields)
        self.db.add(order)
        self.db.flush()
        return order

    def create_line(self, **fields) -> OrderLine:
        line = OrderLine(**fields)
        self.db.add(line)
        self.db.flush()
        return line

    def create_assignment(self, **fields) -> PickAssignment:
        assignment = PickAssignment(**fields)
        self.db.add(assignment)
        self.db.flush()
        return assignment

    def get_line_assignments(self, line_id: str) -> List[PickAssignment]:
        return (
            self.db.query(PickAssignment)
            .filter(PickAssignment.order_line_id == line_id)
            .order_by(PickAssignment.created_at.asc())
            .all()
        )

    def get_order_assignments(self, order_id: str, state: Optional[str] = None) -> List[PickAssignment]:
        query = (
            self.db.query(PickAssignment)
            .join(OrderLine, PickAssignment.order_line_id == OrderLine.id)
            .filter(OrderLine.order_id == order_id)
        )
        if state:
            query = query.filter(PickAssignment.state == state)
        return query.order_by(PickAssignment.created_at.asc()).all()

    def count_open_assignments(self, order_id: str) -> int:
        return len(self.get_order_assignments(order_id, AssignmentState.OPEN.value))

    def fifo_pallets(self, warehouse_id: str, product_id: str) -> List[Pallet]:
        """Tarimas con inventario del producto, la más antigua primero"""
        return (
            self.db.query(Pallet)
            .filter(
                Pallet.warehouse_id == warehouse_id,
                Pallet.product_id == product_id,
                Pallet.status.in_(ASSIGNABLE_STATUSES)
            )
            .order_by(Pallet.received_at.asc())
            .with_for_update()
            .all()
        )

    def list_orders(
        self,
        warehouse_id: Optional[str] = None,
        status: Optional[str] = None,
        customer_id: Optional[str] = None,
        page: int = 1,
        limit: int = 50
    ) -> Tuple[List[Order], int]:
        query = self.db.query(Order)
        if warehouse_id:
            query = query.filter(Order.warehouse_id == warehouse_id)
        if status:
            query = query.filter(Order.status == status)
        if customer_id:
            query = query.filter(Order.customer_id == customer_id)

        total = query.count()
        orders = (
            query.order_by(Order.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return orders, total
