from sqlalchemy.orm import Session
from typing import List, Optional, Tuple

from bodega.shared.database.models import Order, OrderLine, Pallet, PickAssignment
from bodega.shared.schemas.common import AssignmentState


class PickingRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_pending_assignments(
        self,
        warehouse_id: Optional[str] = None,
        pallet_id: Optional[str] = None
    ) -> List[Tuple[PickAssignment, OrderLine, Order, Pallet]]:
        """Asignaciones ABIERTAS, primero las de pedidos más antiguos"""
        query = (
            self.db.query(PickAssignment, OrderLine, Order, Pallet)
            .join(OrderLine, PickAssignment.order_line_id == OrderLine.id)
            .join(Order, OrderLine.order_id == Order.id)
            .join(Pallet, PickAssignment.pallet_id == Pallet.id)
            .filter(PickAssignment.state == AssignmentState.OPEN.value)
        )
        if warehouse_id:
            query = query.filter(Pallet.warehouse_id == warehouse_id)
        if pallet_id:
            query = query.filter(PickAssignment.pallet_id == pallet_id)

        return query.order_by(Order.created_at.asc(), PickAssignment.created_at.asc()).all()
