from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Callable, List, Optional, TypeVar
from datetime import datetime
import logging

from bodega.core.exceptions import (
    PalletNotFound, AssignmentNotFound, OrderLineNotFound, OrderNotFound
)
from bodega.shared.database.models import (
    Pallet, PalletEvent, PickAssignment, OrderLine, Order
)
from bodega.shared.database.transaction import run_atomic
from bodega.shared.schemas.common import AssignmentState, EventType

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerRepository:
    """
    Acceso a datos del ledger de tarimas.

    Los métodos solo hacen flush; la transacción la abre y la cierra atomic().
    """

    def __init__(self, db: Session):
        self.db = db

    # ==================== TRANSACCIONES ====================

    def atomic(self, operation: Callable[[], T], max_attempts: Optional[int] = None) -> T:
        """Una operación completa por transacción, con reintento ante conflictos"""
        return run_atomic(self.db, operation, max_attempts)

    # ==================== TARIMAS ====================

    def get_pallet(self, pallet_id: str, lock: bool = False) -> Pallet:
        query = self.db.query(Pallet).filter(Pallet.id == pallet_id)
        if lock:
            query = query.with_for_update()  # LOCK: valida y agrega sin carreras
        pallet = query.first()
        if not pallet:
            raise PalletNotFound(pallet_id)
        return pallet

    def get_pallet_by_qr(self, qr_code: str) -> Pallet:
        pallet = self.db.query(Pallet).filter(Pallet.qr_code == qr_code).first()
        if not pallet:
            raise PalletNotFound(qr_code)
        return pallet

    def update_pallet_status(self, pallet: Pallet, status: str) -> Pallet:
        if pallet.status != status:
            logger.info(f"Tarima {pallet.id}: {pallet.status} -> {status}")
            pallet.status = status
        self.db.flush()
        return pallet

    # ==================== EVENTOS ====================

    def create_event(self, pallet: Pallet, event_type: str, user_id: str, user_role: str, **fields) -> PalletEvent:
        event = PalletEvent(
            pallet_id=pallet.id,
            warehouse_id=pallet.warehouse_id,
            type=event_type,
            user_id=user_id,
            user_role=user_role,
            **fields
        )
        if event.logical_timestamp is None:
            event.logical_timestamp = datetime.utcnow()
        self.db.add(event)
        pallet.last_event_at = datetime.utcnow()
        self.db.flush()
        return event

    def list_events_for_pallet(self, pallet_id: str) -> List[PalletEvent]:
        return (
            self.db.query(PalletEvent)
            .filter(PalletEvent.pallet_id == pallet_id)
            .order_by(PalletEvent.logical_timestamp.asc(), PalletEvent.created_at.asc())
            .all()
        )

    def has_event_of_type(self, pallet_id: str, event_type: str) -> bool:
        return self.db.query(PalletEvent.id).filter(
            PalletEvent.pallet_id == pallet_id,
            PalletEvent.type == event_type
        ).first() is not None

    def has_receipt(self, pallet_id: str) -> bool:
        return self.has_event_of_type(pallet_id, EventType.RECEIPT.value)

    def list_events(
        self,
        pallet_id: Optional[str] = None,
        warehouse_id: Optional[str] = None,
        event_type: Optional[str] = None,
        user_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 100
    ):
        query = self.db.query(PalletEvent)
        if pallet_id:
            query = query.filter(PalletEvent.pallet_id == pallet_id)
        if warehouse_id:
            query = query.filter(PalletEvent.warehouse_id == warehouse_id)
        if event_type:
            query = query.filter(PalletEvent.type == event_type)
        if user_id:
            query = query.filter(PalletEvent.user_id == user_id)
        if date_from:
            query = query.filter(PalletEvent.logical_timestamp >= date_from)
        if date_to:
            query = query.filter(PalletEvent.logical_timestamp <= date_to)

        total = query.count()
        events = (
            query.order_by(PalletEvent.logical_timestamp.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return events, total

    # ==================== ASIGNACIONES ====================

    def get_assignment(self, assignment_id: str, lock: bool = False) -> PickAssignment:
        query = self.db.query(PickAssignment).filter(PickAssignment.id == assignment_id)
        if lock:
            query = query.with_for_update()
        assignment = query.first()
        if not assignment:
            raise AssignmentNotFound(assignment_id)
        return assignment

    def update_assignment(self, assignment: PickAssignment, **fields) -> PickAssignment:
        for key, value in fields.items():
            setattr(assignment, key, value)
        self.db.flush()
        return assignment

    def has_open_assignments(self, pallet_id: str) -> bool:
        return self.db.query(PickAssignment.id).filter(
            PickAssignment.pallet_id == pallet_id,
            PickAssignment.state == AssignmentState.OPEN.value
        ).first() is not None

    def open_assigned_quantity(self, pallet_id: str) -> int:
        total = self.db.query(func.coalesce(func.sum(PickAssignment.assigned_quantity), 0)).filter(
            PickAssignment.pallet_id == pallet_id,
            PickAssignment.state == AssignmentState.OPEN.value
        ).scalar()
        return int(total or 0)

    # ==================== PEDIDOS ====================

    def get_order(self, order_id: str, lock: bool = False) -> Order:
        query = self.db.query(Order).filter(Order.id == order_id)
        if lock:
            query = query.with_for_update()
        order = query.first()
        if not order:
            raise OrderNotFound(order_id)
        return order

    def get_order_line(self, line_id: str) -> OrderLine:
        line = self.db.query(OrderLine).filter(OrderLine.id == line_id).first()
        if not line:
            raise OrderLineNotFound(line_id)
        return line

    def get_order_lines(self, order_id: str) -> List[OrderLine]:
        return (
            self.db.query(OrderLine)
            .filter(OrderLine.order_id == order_id)
            .order_by(OrderLine.created_at.asc())
            .all()
        )

    def update_order_line(self, line: OrderLine, fulfilled_delta: int) -> OrderLine:
        line.fulfilled_quantity = (line.fulfilled_quantity or 0) + fulfilled_delta
        self.db.flush()
        return line

    def confirmed_quantity_for_line(self, line_id: str) -> int:
        total = self.db.query(func.coalesce(func.sum(PickAssignment.confirmed_quantity), 0)).filter(
            PickAssignment.order_line_id == line_id,
            PickAssignment.state == AssignmentState.CONFIRMED.value
        ).scalar()
        return int(total or 0)

    def update_order_status(self, order: Order, status: str) -> Order:
        if order.status != status:
            logger.info(f"Pedido {order.number}: {order.status} -> {status}")
            order.status = status
        self.db.flush()
        return order
