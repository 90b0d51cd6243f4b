# bodega/modules/orders/service.py
from sqlalchemy.orm import Session
from typing import List, Optional
from decimal import Decimal
from datetime import datetime
import logging
import math

from .repository import OrderRepository
from .schemas import (
    OrderCreateRequest, OrderResponse, OrderLineResponse, OrderOperationResponse,
    AssignOrderResponse, Shortage, OrderListResponse
)
from bodega.core.exceptions import DomainError, InvalidStateTransition, PermissionDenied
from bodega.modules.credits.service import PaymentService
from bodega.modules.ledger.service import LedgerService
from bodega.modules.picking.schemas import AssignmentResponse
from bodega.modules.picking.service import PickingService
from bodega.shared.database.models import Order, User
from bodega.shared.schemas.common import AssignmentState, EventType, OrderStatus, Role

logger = logging.getLogger(__name__)


def append_note(notes: Optional[str], note: str) -> str:
    return f"{notes}\n\n{note}" if notes else note


class OrderService:
    """
    Pedidos: creación, asignación FIFO a tarimas, revisión, cierre y cancelación.

    Todas las operaciones que tocan inventario pasan por el ledger dentro de una
    sola transacción.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repository = OrderRepository(db)
        self.ledger = LedgerService(db)
        self.picking = PickingService(db)
        self.payments = PaymentService(db)

    # ==================== RESPUESTAS ====================

    def _to_response(self, order: Order) -> OrderResponse:
        lines = []
        for line in self.ledger.repository.get_order_lines(order.id):
            lines.append(OrderLineResponse(
                id=line.id,
                product_id=line.product_id,
                product_name=line.product.name if line.product else None,
                supplier_id=line.supplier_id,
                requested_quantity=line.requested_quantity,
                fulfilled_quantity=line.fulfilled_quantity or 0,
                unit_price=line.unit_price or Decimal("0"),
                unit_cost=line.unit_cost,
                subtotal=line.subtotal or Decimal("0"),
                assignments=[
                    AssignmentResponse.model_validate(a)
                    for a in self.repository.get_line_assignments(line.id)
                ]
            ))

        return OrderResponse(
            id=order.id,
            number=order.number,
            warehouse_id=order.warehouse_id,
            customer_id=order.customer_id,
            customer_name=order.customer.name if order.customer else None,
            notes=order.notes,
            required_date=order.required_date,
            delivery_type=order.delivery_type,
            subtotal=order.subtotal or Decimal("0"),
            discount=order.discount or Decimal("0"),
            total=order.total or Decimal("0"),
            status=order.status,
            payment_status=order.payment_status,
            created_by_id=order.created_by_id,
            created_at=order.created_at,
            lines=lines
        )

    def _result(self, order: Order, message: str) -> OrderOperationResponse:
        return OrderOperationResponse(success=True, message=message, order=self._to_response(order))

    # ==================== CREACIÓN ====================

    def create_order(self, data: OrderCreateRequest, actor: User) -> OrderOperationResponse:
        """
        Crear pedido.

        Si alguna línea trae asignaciones manuales es una venta directa: las
        asignaciones nacen CONFIRMADAS y se descuenta inventario con SALIDA.
        """
        direct_sale = any(line.assignments for line in data.lines)

        def operation():
            self.repository.ensure_references(data.warehouse_id, data.customer_id)

            line_subtotals = []
            for line in data.lines:
                self.repository.ensure_line_references(line.product_id, line.supplier_id)
                if line.subtotal is not None:
                    line_subtotals.append(line.subtotal)
                else:
                    line_subtotals.append((line.unit_price or Decimal("0")) * line.requested_quantity)

            subtotal = data.subtotal if data.subtotal is not None else sum(line_subtotals, Decimal("0"))
            total = data.total if data.total is not None else max(subtotal - data.discount, Decimal("0"))

            order = self.repository.create_order(
                number=self.repository.next_order_number(),
                warehouse_id=data.warehouse_id,
                customer_id=data.customer_id,
                notes=data.notes,
                required_date=data.required_date,
                delivery_type=data.delivery_type.value,
                subtotal=subtotal,
                discount=data.discount,
                total=total,
                status=OrderStatus.CREATED.value,
                created_by_id=actor.id
            )

            for line_data, line_subtotal in zip(data.lines, line_subtotals):
                line = self.repository.create_line(
                    order_id=order.id,
                    product_id=line_data.product_id,
                    supplier_id=line_data.supplier_id,
                    requested_quantity=line_data.requested_quantity,
                    fulfilled_quantity=0,
                    unit_price=line_data.unit_price or Decimal("0"),
                    unit_cost=line_data.unit_cost,
                    subtotal=line_subtotal
                )
                for manual in line_data.assignments:
                    self._direct_sale_assignment(order, line, manual.pallet_id, manual.quantity, actor)

            if direct_sale:
                self.ledger.repository.update_order_status(order, OrderStatus.SENT_TO_WAREHOUSE.value)
                self.picking.recompute_order_completion(order)

            if data.payments:
                self.payments.add_payments(order, data.payments, actor)
            self.payments.recompute_payment_status(order)

            return self._result(order, "Pedido creado")

        result = self.ledger.repository.atomic(operation)
        logger.info(
            f"Pedido {result.order.number} creado por {actor.id} "
            f"({'venta directa' if direct_sale else 'pendiente de asignación'})"
        )
        return result

    def _direct_sale_assignment(self, order: Order, line, pallet_id: str, quantity: int, actor: User):
        pallet = self.ledger.repository.get_pallet(pallet_id, lock=True)
        if pallet.product_id != line.product_id or pallet.warehouse_id != order.warehouse_id:
            raise DomainError(
                f"La tarima {pallet.qr_code} no corresponde al producto o almacén del pedido",
                {"pallet_id": pallet.id, "order_line_id": line.id}
            )

        self.repository.create_assignment(
            order_line_id=line.id,
            pallet_id=pallet.id,
            assigned_quantity=quantity,
            confirmed_quantity=quantity,
            state=AssignmentState.CONFIRMED.value,
            confirmed_by_id=actor.id,
            confirmed_at=datetime.utcnow()
        )
        self.ledger.append_exit(
            pallet, quantity, actor,
            order_id=order.id,
            reason=f"Venta - Pedido {order.number}"
        )
        self.ledger.repository.update_order_line(line, quantity)

    # ==================== ASIGNACIÓN ====================

    def assign_order(self, order_id: str, actor: User) -> AssignOrderResponse:
        """
        Asignar líneas a tarimas por FIFO (fecha de ingreso).

        Disponible = inventario proyectado - asignaciones abiertas. Si algún
        producto no alcanza el pedido queda EN_REVISION.
        """
        ledger_repository = self.ledger.repository

        def operation():
            order = ledger_repository.get_order(order_id, lock=True)
            if order.status != OrderStatus.CREATED.value:
                raise InvalidStateTransition(
                    "El pedido ya fue asignado",
                    {"status": order.status}
                )

            created = 0
            shortages: List[Shortage] = []

            for line in ledger_repository.get_order_lines(order.id):
                pending = line.requested_quantity

                for pallet in self.repository.fifo_pallets(order.warehouse_id, line.product_id):
                    if pending <= 0:
                        break
                    available = (
                        self.ledger.current_projection(pallet.id)
                        - ledger_repository.open_assigned_quantity(pallet.id)
                    )
                    if available <= 0:
                        continue

                    quantity = min(available, pending)
                    self.repository.create_assignment(
                        order_line_id=line.id,
                        pallet_id=pallet.id,
                        assigned_quantity=quantity,
                        state=AssignmentState.OPEN.value
                    )
                    self.ledger.append_audit(
                        pallet, EventType.PICK_ASSIGNED, actor,
                        quantity=quantity,
                        order_id=order.id
                    )
                    self.ledger.recompute_pallet_status(pallet)
                    created += 1
                    pending -= quantity

                if pending > 0:
                    shortages.append(Shortage(
                        order_line_id=line.id,
                        product_id=line.product_id,
                        product_name=line.product.name if line.product else None,
                        requested=line.requested_quantity,
                        missing=pending
                    ))

            ledger_repository.update_order_status(
                order,
                OrderStatus.IN_REVIEW.value if shortages else OrderStatus.SENT_TO_WAREHOUSE.value
            )

            return AssignOrderResponse(
                success=True,
                message=(
                    "Asignación parcial - hay productos sin stock suficiente"
                    if shortages else "Asignación completa"
                ),
                order=self._to_response(order),
                assignments_created=created,
                shortages=shortages
            )

        result = ledger_repository.atomic(operation)
        if result.shortages:
            logger.warning(f"Pedido {result.order.number} con faltantes: {len(result.shortages)} líneas")
        return result

    # ==================== TRANSICIONES ====================

    def close_order(self, order_id: str, actor: User) -> OrderOperationResponse:
        ledger_repository = self.ledger.repository

        def operation():
            order = ledger_repository.get_order(order_id, lock=True)
            if order.status in (OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value):
                raise InvalidStateTransition(
                    f"No se puede cerrar un pedido {order.status}",
                    {"status": order.status}
                )
            open_assignments = self.repository.count_open_assignments(order.id)
            if open_assignments:
                raise InvalidStateTransition(
                    "No se puede cerrar el pedido",
                    {"open_assignments": open_assignments}
                )
            ledger_repository.update_order_status(order, OrderStatus.COMPLETED.value)
            return self._result(order, "Pedido cerrado")

        return ledger_repository.atomic(operation)

    def send_to_review(self, order_id: str, reason: str, actor: User) -> OrderOperationResponse:
        """Bodega reporta un problema con el pedido"""
        ledger_repository = self.ledger.repository

        def operation():
            order = ledger_repository.get_order(order_id, lock=True)
            if order.status != OrderStatus.SENT_TO_WAREHOUSE.value:
                raise InvalidStateTransition(
                    "Solo se pueden enviar a revisión pedidos en estado ENVIADO_BODEGA",
                    {"status": order.status}
                )
            order.notes = append_note(order.notes, f"[REVISIÓN] {reason} - Reportado por: {actor.name}")
            ledger_repository.update_order_status(order, OrderStatus.IN_REVIEW.value)
            return self._result(order, "Pedido enviado a revisión")

        return ledger_repository.atomic(operation)

    def resolve_review(self, order_id: str, resolution: str, actor: User) -> OrderOperationResponse:
        if actor.role == Role.OPERATOR.value:
            raise PermissionDenied("No tienes permisos para resolver revisiones", {"role": actor.role})
        ledger_repository = self.ledger.repository

        def operation():
            order = ledger_repository.get_order(order_id, lock=True)
            if order.status != OrderStatus.IN_REVIEW.value:
                raise InvalidStateTransition(
                    "Solo se pueden resolver pedidos en estado EN_REVISION",
                    {"status": order.status}
                )
            order.notes = append_note(order.notes, f"[RESUELTO] {resolution} - Por: {actor.name}")
            ledger_repository.update_order_status(order, OrderStatus.SENT_TO_WAREHOUSE.value)
            return self._result(order, "Revisión resuelta, pedido devuelto a bodega")

        return ledger_repository.atomic(operation)

    def cancel_order(self, order_id: str, actor: User, reason: Optional[str] = None) -> OrderOperationResponse:
        """
        Cancelar pedido.

        Asignaciones ABIERTAS se cancelan. Las CONFIRMADAS devuelven su cantidad
        con un evento ENTRADA compensatorio antes de cancelarse.
        """
        if actor.role == Role.OPERATOR.value:
            raise PermissionDenied("No tienes permisos para cancelar pedidos", {"role": actor.role})
        ledger_repository = self.ledger.repository

        def operation():
            order = ledger_repository.get_order(order_id, lock=True)
            if order.status == OrderStatus.COMPLETED.value:
                raise InvalidStateTransition("No se puede cancelar un pedido completado", {"status": order.status})
            if order.status == OrderStatus.CANCELLED.value:
                raise InvalidStateTransition("El pedido ya está cancelado", {"status": order.status})

            for assignment in self.repository.get_order_assignments(order.id):
                if assignment.state == AssignmentState.CANCELLED.value:
                    continue
                pallet = ledger_repository.get_pallet(assignment.pallet_id, lock=True)
                if assignment.state == AssignmentState.CONFIRMED.value:
                    returned = (
                        assignment.assigned_quantity if assignment.confirmed_quantity is None
                        else assignment.confirmed_quantity
                    )
                    if returned > 0:
                        self.ledger.append_entry(
                            pallet, returned, actor,
                            reason=f"Cancelación de pedido {order.number}",
                            order_id=order.id
                        )
                ledger_repository.update_assignment(assignment, state=AssignmentState.CANCELLED.value)
                self.ledger.recompute_pallet_status(pallet)

            order.notes = append_note(
                order.notes, f"[CANCELADO] {reason or 'Sin motivo'} - Por: {actor.name}"
            )
            ledger_repository.update_order_status(order, OrderStatus.CANCELLED.value)
            return self._result(order, "Pedido cancelado correctamente")

        result = ledger_repository.atomic(operation)
        logger.warning(f"Pedido {result.order.number} cancelado por {actor.id}")
        return result

    # ==================== CONSULTAS ====================

    def get_order(self, order_id: str) -> OrderResponse:
        return self._to_response(self.ledger.repository.get_order(order_id))

    def list_orders(
        self,
        warehouse_id: Optional[str] = None,
        status: Optional[str] = None,
        customer_id: Optional[str] = None,
        page: int = 1,
        limit: int = 50
    ) -> OrderListResponse:
        orders, total = self.repository.list_orders(warehouse_id, status, customer_id, page, limit)
        return OrderListResponse(
            success=True,
            orders=[self._to_response(o) for o in orders],
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if total else 0
        )
