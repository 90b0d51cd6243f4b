from sqlalchemy.orm import Session
from sqlalchemy import and_, func, or_
from typing import Any, Dict, List, Optional, Tuple
import logging

from bodega.core.exceptions import (
    WarehouseNotFound, ProductNotFound, SupplierNotFound, LocationNotFound
)
from bodega.shared.database.models import (
    Pallet, PalletEvent, PickAssignment, Warehouse, Product, Supplier, Location
)
from bodega.shared.schemas.common import EventType

logger = logging.getLogger(__name__)

OUTFLOW_EVENT_TYPES = (
    EventType.PICK.value,
    EventType.EXIT.value,
    EventType.SHRINKAGE.value,
    EventType.NEGATIVE_ADJUSTMENT.value,
)


class PalletRepository:
    def __init__(self, db: Session):
        self.db = db

    def ensure_references(
        self,
        warehouse_id: str,
        product_id: str,
        supplier_id: str,
        location_id: Optional[str] = None
    ) -> Product:
        """Validar que existan almacén, producto, proveedor y ubicación"""
        if not self.db.query(Warehouse.id).filter(Warehouse.id == warehouse_id).first():
            raise WarehouseNotFound(warehouse_id)
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise ProductNotFound(product_id)
        if not self.db.query(Supplier.id).filter(Supplier.id == supplier_id).first():
            raise SupplierNotFound(supplier_id)
        if location_id and not self.db.query(Location.id).filter(Location.id == location_id).first():
            raise LocationNotFound(location_id)
        return product

    def create_pallet(self, **fields) -> Pallet:
        pallet = Pallet(**fields)
        self.db.add(pallet)
        self.db.flush()
        return pallet

    def list_pallets(
        self,
        warehouse_id: Optional[str] = None,
        status: Optional[str] = None,
        product_id: Optional[str] = None,
        page: int = 1,
        limit: int = 50
    ) -> Tuple[List[Pallet], int]:
        query = self.db.query(Pallet)
        if warehouse_id:
            query = query.filter(Pallet.warehouse_id == warehouse_id)
        if status:
            query = query.filter(Pallet.status == status)
        if product_id:
            query = query.filter(Pallet.product_id == product_id)

        total = query.count()
        pallets = (
            query.order_by(Pallet.received_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return pallets, total

    def count_outflows(self, pallet_id: str) -> int:
        """Eventos que sacaron producto de la tarima (PICK, SALIDA, MERMA, ajustes negativos)"""
        return self.db.query(PalletEvent).filter(
            PalletEvent.pallet_id == pallet_id,
            or_(
                PalletEvent.type.in_(OUTFLOW_EVENT_TYPES),
                and_(PalletEvent.type == EventType.ADJUSTMENT.value, PalletEvent.quantity < 0)
            )
        ).count()

    def count_assignments_by_state(self, pallet_id: str) -> Dict[str, int]:
        rows = (
            self.db.query(PickAssignment.state, func.count(PickAssignment.id))
            .filter(PickAssignment.pallet_id == pallet_id)
            .group_by(PickAssignment.state)
            .all()
        )
        return {state: count for state, count in rows}

    def delete_pallet_cascade(self, pallet: Pallet) -> Dict[str, Any]:
        """Borrar eventos y la tarima (limpieza administrativa)"""
        deleted_events = self.db.query(PalletEvent).filter(
            PalletEvent.pallet_id == pallet.id
        ).delete()
        self.db.query(Pallet).filter(Pallet.id == pallet.id).delete()
        self.db.flush()
        return {"deleted_events": deleted_events}
