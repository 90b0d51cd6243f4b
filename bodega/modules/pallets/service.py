# bodega/modules/pallets/service.py
from sqlalchemy.orm import Session
from typing import Optional
from decimal import Decimal
from datetime import datetime
import logging
import math
import time
import uuid

from .repository import PalletRepository
from .schemas import (
    PalletCreateRequest, PalletResponse, PalletOperationResponse,
    PalletListResponse, PalletDeleteResponse
)
from bodega.core.auth.policy import Operation, effective_cosigner, enforce_escalation
from bodega.core.exceptions import InvalidReason, InvalidStateTransition, PermissionDenied
from bodega.modules.ledger.service import LedgerService
from bodega.shared.database.models import Pallet, User
from bodega.shared.schemas.common import EventType, PalletStatus, Role

logger = logging.getLogger(__name__)


def generate_qr_code() -> str:
    return f"DL-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8].upper()}"


class PalletService:
    """Operaciones sobre tarimas. Cada una es una transacción completa."""

    def __init__(self, db: Session):
        self.db = db
        self.repository = PalletRepository(db)
        self.ledger = LedgerService(db)

    def _to_response(self, pallet: Pallet, inventory: Optional[int] = None) -> PalletResponse:
        if inventory is None:
            inventory = self.ledger.current_projection(pallet.id)
        return PalletResponse(
            id=pallet.id,
            qr_code=pallet.qr_code,
            warehouse_id=pallet.warehouse_id,
            product_id=pallet.product_id,
            product_name=pallet.product.name if pallet.product else None,
            supplier_id=pallet.supplier_id,
            location_id=pallet.location_id,
            capacity=pallet.capacity,
            unit_price=pallet.unit_price or Decimal("0"),
            deposit_per_container=pallet.deposit_per_container or Decimal("0"),
            lot=pallet.lot,
            production_date=pallet.production_date,
            expiry_date=pallet.expiry_date,
            status=pallet.status,
            received_at=pallet.received_at,
            current_inventory=inventory
        )

    def _operation_result(self, pallet_id: str, event_id: Optional[str], message: str) -> PalletOperationResponse:
        pallet = self.ledger.repository.get_pallet(pallet_id)
        return PalletOperationResponse(
            success=True,
            message=message,
            pallet=self._to_response(pallet),
            event_id=event_id
        )

    # ==================== RECEPCIÓN ====================

    def receive_pallet(self, data: PalletCreateRequest, actor: User) -> PalletOperationResponse:
        """
        Recibir una tarima nueva.

        Crea la tarima ACTIVA con su QR y registra CREACION y RECEPCION por la
        capacidad total, en una sola transacción.
        """
        def operation():
            self.repository.ensure_references(
                data.warehouse_id, data.product_id, data.supplier_id, data.location_id
            )
            pallet = self.repository.create_pallet(
                qr_code=generate_qr_code(),
                warehouse_id=data.warehouse_id,
                product_id=data.product_id,
                supplier_id=data.supplier_id,
                location_id=data.location_id,
                capacity=data.capacity,
                unit_price=data.unit_price or Decimal("0"),
                deposit_per_container=data.deposit_per_container or Decimal("0"),
                lot=data.lot,
                production_date=data.production_date,
                expiry_date=data.expiry_date,
                notes=data.notes,
                status=PalletStatus.ACTIVE.value,
                received_at=datetime.utcnow()
            )
            self.ledger.append_audit(pallet, EventType.CREATION, actor, quantity=data.capacity)
            event = self.ledger.append_receipt(pallet, data.capacity, actor, location_id=data.location_id)
            return pallet.id, event.id

        pallet_id, event_id = self.ledger.repository.atomic(operation)
        logger.info(f"Tarima {pallet_id} recibida por {actor.id} ({data.capacity} unidades)")
        return self._operation_result(pallet_id, event_id, "Tarima recibida")

    # ==================== MOVIMIENTOS ====================

    def pick_from_pallet(
        self,
        pallet_id: str,
        quantity: int,
        actor: User,
        order_id: Optional[str] = None,
        supervisor_id: Optional[str] = None
    ) -> PalletOperationResponse:
        def operation():
            pallet = self.ledger.repository.get_pallet(pallet_id, lock=True)
            event = self.ledger.append_pick(
                pallet, quantity, actor,
                order_id=order_id,
                supervisor_id=effective_cosigner(actor, supervisor_id)
            )
            return event.id

        event_id = self.ledger.repository.atomic(operation)
        return self._operation_result(pallet_id, event_id, f"Pick de {quantity} registrado")

    def record_shrinkage(
        self,
        pallet_id: str,
        quantity: int,
        reason: str,
        actor: User,
        supervisor_id: Optional[str] = None,
        min_reason_length: int = 1
    ) -> PalletOperationResponse:
        def operation():
            pallet = self.ledger.repository.get_pallet(pallet_id, lock=True)
            event = self.ledger.append_shrinkage(
                pallet, quantity, reason, actor,
                supervisor_id=effective_cosigner(actor, supervisor_id),
                min_reason_length=min_reason_length
            )
            return event.id

        event_id = self.ledger.repository.atomic(operation)
        return self._operation_result(pallet_id, event_id, f"Merma de {quantity} registrada")

    def adjust_inventory(
        self,
        pallet_id: str,
        signed_quantity: int,
        reason: str,
        actor: User,
        supervisor_id: Optional[str] = None
    ) -> PalletOperationResponse:
        def operation():
            pallet = self.ledger.repository.get_pallet(pallet_id, lock=True)
            event = self.ledger.append_adjustment(
                pallet, signed_quantity, reason, actor,
                supervisor_id=effective_cosigner(actor, supervisor_id)
            )
            return event.id

        event_id = self.ledger.repository.atomic(operation)
        return self._operation_result(pallet_id, event_id, f"Ajuste de {signed_quantity:+d} registrado")

    def relocate_pallet(
        self,
        pallet_id: str,
        location_id: str,
        actor: User,
        reason: Optional[str] = None
    ) -> PalletOperationResponse:
        def operation():
            pallet = self.ledger.repository.get_pallet(pallet_id, lock=True)
            return self.ledger.append_relocation(pallet, location_id, actor, reason=reason).id

        event_id = self.ledger.repository.atomic(operation)
        return self._operation_result(pallet_id, event_id, "Tarima reubicada")

    # ==================== CAMBIOS ADMINISTRATIVOS ====================

    def change_status(
        self,
        pallet_id: str,
        status: PalletStatus,
        reason: str,
        actor: User,
        supervisor_id: Optional[str] = None
    ) -> PalletOperationResponse:
        """
        Cambio manual de estado. Queda como evento AJUSTE de auditoría; el
        siguiente evento que mueva cantidad vuelve a derivar el estado.
        """
        if not (reason or "").strip():
            raise InvalidReason()
        enforce_escalation(actor.role, Operation.STATUS_CHANGE, supervisor_id)

        def operation():
            pallet = self.ledger.repository.get_pallet(pallet_id, lock=True)
            self.ledger.repository.update_pallet_status(pallet, status.value)
            event = self.ledger.append_audit(
                pallet, EventType.ADJUSTMENT, actor,
                supervisor_id=effective_cosigner(actor, supervisor_id),
                reason=f"Cambio de estado a {status.value}: {reason.strip()}"
            )
            return event.id

        event_id = self.ledger.repository.atomic(operation)
        return self._operation_result(pallet_id, event_id, f"Estado cambiado a {status.value}")

    def change_price(
        self,
        pallet_id: str,
        unit_price: Decimal,
        actor: User,
        supervisor_id: Optional[str] = None
    ) -> PalletOperationResponse:
        enforce_escalation(actor.role, Operation.PRICE_CHANGE, supervisor_id)

        def operation():
            pallet = self.ledger.repository.get_pallet(pallet_id, lock=True)
            previous = pallet.unit_price or Decimal("0")
            pallet.unit_price = unit_price
            event = self.ledger.append_audit(
                pallet, EventType.ADJUSTMENT, actor,
                supervisor_id=effective_cosigner(actor, supervisor_id),
                reason=f"Precio actualizado de ${previous} a ${unit_price}"
            )
            return event.id

        event_id = self.ledger.repository.atomic(operation)
        return self._operation_result(pallet_id, event_id, "Precio actualizado")

    def delete_pallet(self, pallet_id: str, actor: User, reason: Optional[str] = None) -> PalletDeleteResponse:
        """
        Limpieza administrativa de una tarima capturada por error.

        Solo SUPERVISOR/ADMIN, y solo si nunca salió producto de ella ni está
        referenciada por asignaciones de pedidos (las asignaciones pertenecen a
        la línea del pedido).
        """
        if actor.role == Role.OPERATOR.value:
            raise PermissionDenied("No tienes permisos para eliminar tarimas", {"role": actor.role})

        def operation():
            pallet = self.ledger.repository.get_pallet(pallet_id, lock=True)
            outflows = self.repository.count_outflows(pallet_id)
            if outflows:
                raise InvalidStateTransition(
                    "No se puede eliminar una tarima que ya tiene salidas de producto",
                    {"outflow_events": outflows}
                )
            assignments = self.repository.count_assignments_by_state(pallet_id)
            if assignments:
                raise InvalidStateTransition(
                    "No se puede eliminar una tarima asignada a pedidos",
                    {"assignments": assignments}
                )
            return self.repository.delete_pallet_cascade(pallet)

        result = self.ledger.repository.atomic(operation)
        logger.warning(f"Tarima {pallet_id} eliminada por {actor.id}. Motivo: {reason or 'sin motivo'}")
        return PalletDeleteResponse(
            success=True,
            message="Tarima eliminada correctamente",
            pallet_id=pallet_id,
            **result
        )

    # ==================== CONSULTAS ====================

    def get_pallet(self, pallet_id: str) -> PalletResponse:
        return self._to_response(self.ledger.repository.get_pallet(pallet_id))

    def get_by_qr(self, qr_code: str) -> PalletResponse:
        return self._to_response(self.ledger.repository.get_pallet_by_qr(qr_code))

    def list_pallets(
        self,
        warehouse_id: Optional[str] = None,
        status: Optional[str] = None,
        product_id: Optional[str] = None,
        page: int = 1,
        limit: int = 50
    ) -> PalletListResponse:
        pallets, total = self.repository.list_pallets(warehouse_id, status, product_id, page, limit)
        return PalletListResponse(
            success=True,
            message=f"{total} tarimas",
            pallets=[self._to_response(p) for p in pallets],
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if total else 0
        )
