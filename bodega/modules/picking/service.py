# bodega/modules/picking/service.py
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
import logging

from .repository import PickingRepository
from .schemas import (
    AssignmentResponse, ConfirmPickResponse, PendingAssignment,
    PendingAssignmentsResponse, ScanResponse
)
from bodega.core.auth.policy import Operation, effective_cosigner, enforce_escalation
from bodega.core.exceptions import AlreadyProcessed
from bodega.modules.ledger.service import LedgerService
from bodega.modules.pallets.service import PalletService
from bodega.shared.database.models import Order, User
from bodega.shared.schemas.common import AssignmentState, OrderStatus

logger = logging.getLogger(__name__)

# Estados que la verificación de completitud nunca mueve
TERMINAL_ORDER_STATUSES = {OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value}


class PickingService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = PickingRepository(db)
        self.ledger = LedgerService(db)

    def recompute_order_completion(self, order: Order) -> OrderStatus:
        """
        Marcar el pedido COMPLETADO cuando cada línea tiene confirmado al menos
        lo solicitado. Nunca regresa un pedido completado a otro estado.
        """
        if order.status in TERMINAL_ORDER_STATUSES:
            return OrderStatus(order.status)

        lines = self.ledger.repository.get_order_lines(order.id)
        if lines and all(
            self.ledger.repository.confirmed_quantity_for_line(line.id) >= line.requested_quantity
            for line in lines
        ):
            self.ledger.repository.update_order_status(order, OrderStatus.COMPLETED.value)
            logger.info(f"Pedido {order.number} completado")

        return OrderStatus(order.status)

    def confirm_pick_assignment(
        self,
        assignment_id: str,
        confirmed_quantity: int,
        actor: User,
        supervisor_id: Optional[str] = None
    ) -> ConfirmPickResponse:
        """
        Confirmar el surtido de una asignación.

        Proceso (una sola transacción):
        1. La asignación debe estar ABIERTA
        2. Más de lo asignado requiere supervisor para OPERARIO
        3. Asignación -> CONFIRMADA con la cantidad real
        4. Evento PICK validado contra la proyección
        5. Cantidad surtida de la línea
        6. Estado de la tarima
        7. Completitud del pedido
        """
        repository = self.ledger.repository

        def operation():
            assignment = repository.get_assignment(assignment_id, lock=True)
            if assignment.state != AssignmentState.OPEN.value:
                raise AlreadyProcessed(assignment.state)

            enforce_escalation(
                actor.role, Operation.PICK, supervisor_id,
                magnitude=confirmed_quantity,
                assigned_quantity=assignment.assigned_quantity
            )

            line = repository.get_order_line(assignment.order_line_id)
            pallet = repository.get_pallet(assignment.pallet_id, lock=True)

            repository.update_assignment(
                assignment,
                state=AssignmentState.CONFIRMED.value,
                confirmed_quantity=confirmed_quantity,
                confirmed_by_id=actor.id,
                confirmed_at=datetime.utcnow()
            )
            event = self.ledger.append_pick(
                pallet, confirmed_quantity, actor,
                order_id=line.order_id,
                supervisor_id=effective_cosigner(actor, supervisor_id)
            )
            repository.update_order_line(line, confirmed_quantity)
            pallet_status = self.ledger.recompute_pallet_status(pallet)

            order = repository.get_order(line.order_id, lock=True)
            order_status = self.recompute_order_completion(order)

            return ConfirmPickResponse(
                success=True,
                message="Pick confirmado",
                assignment=AssignmentResponse.model_validate(assignment),
                event_id=event.id,
                pallet_status=pallet_status,
                pallet_inventory=self.ledger.current_projection(pallet.id),
                line_fulfilled_quantity=line.fulfilled_quantity,
                order_status=order_status
            )

        result = repository.atomic(operation)
        logger.info(
            f"Asignación {assignment_id} confirmada por {actor.id}: "
            f"{confirmed_quantity} unidades, pedido {result.order_status.value}"
        )
        return result

    # ==================== CONSULTAS ====================

    def _pending(self, warehouse_id: Optional[str] = None, pallet_id: Optional[str] = None):
        rows = self.repository.get_pending_assignments(warehouse_id, pallet_id)
        return [
            PendingAssignment(
                id=assignment.id,
                order_line_id=assignment.order_line_id,
                pallet_id=assignment.pallet_id,
                assigned_quantity=assignment.assigned_quantity,
                confirmed_quantity=assignment.confirmed_quantity,
                state=assignment.state,
                order_id=order.id,
                order_number=order.number,
                customer_name=order.customer.name if order.customer else None,
                product_id=line.product_id,
                product_name=line.product.name if line.product else None,
                pallet_qr_code=pallet.qr_code,
                location_id=pallet.location_id,
                order_created_at=order.created_at
            )
            for assignment, line, order, pallet in rows
        ]

    def get_pending_assignments(self, warehouse_id: Optional[str] = None) -> PendingAssignmentsResponse:
        assignments = self._pending(warehouse_id=warehouse_id)
        return PendingAssignmentsResponse(
            success=True,
            message=f"{len(assignments)} asignaciones pendientes",
            assignments=assignments,
            total=len(assignments)
        )

    def scan_pallet(self, qr_code: str) -> ScanResponse:
        """Escanear QR: tarima con inventario y sus asignaciones pendientes"""
        pallet = PalletService(self.db).get_by_qr(qr_code)
        return ScanResponse(
            success=True,
            message=f"Tarima {pallet.qr_code}",
            pallet=pallet,
            pending_assignments=self._pending(pallet_id=pallet.id)
        )
