# bodega/modules/ledger/service.py
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError
from typing import Any, Dict, List, Optional
from datetime import datetime
import logging
import time

from .repository import LedgerRepository
from .schemas import (
    SyncEvent, SyncPickEvent, SyncShrinkageEvent, SyncAdjustmentEvent,
    SyncRelocationEvent, SyncItemResult, SyncItemStatus, SyncResponse,
    sync_event_adapter
)
from bodega.core.auth.policy import Operation, effective_cosigner, enforce_escalation
from bodega.core.exceptions import (
    DomainError, InsufficientInventory, InvalidReason, InvalidAmount,
    LocationNotFound, PermissionDenied, ReceiptAlreadyRecorded
)
from bodega.shared.database.models import Location, Pallet, PalletEvent, User
from bodega.shared.schemas.common import EventType, PalletStatus, Role
from bodega.shared.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)


def _require_reason(reason: Optional[str], min_length: int = 1) -> str:
    cleaned = (reason or "").strip()
    if len(cleaned) < min_length:
        raise InvalidReason(
            "Se requiere un motivo" if min_length <= 1
            else f"El motivo debe tener al menos {min_length} caracteres"
        )
    return cleaned


class LedgerService:
    """
    Ledger de eventos de tarimas.

    Los métodos append_* validan contra la proyección actual y agregan el evento
    dentro de la transacción en curso (no hacen commit). Quien llama abre la
    transacción con repository.atomic(). bulk_sync maneja su propia transacción.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repository = LedgerRepository(db)

    # ==================== PROYECCIÓN ====================

    def current_projection(self, pallet_id: str) -> int:
        return InventoryService.project(self.repository.list_events_for_pallet(pallet_id))

    def current_running_total(self, pallet_id: str) -> int:
        return InventoryService.running_total(self.repository.list_events_for_pallet(pallet_id))

    def recompute_pallet_status(self, pallet: Pallet) -> PalletStatus:
        """AGOTADA con 0, RESERVADA con asignaciones abiertas, ACTIVA en otro caso"""
        quantity = self.current_projection(pallet.id)
        status = InventoryService.derive_pallet_status(
            quantity, self.repository.has_open_assignments(pallet.id)
        )
        self.repository.update_pallet_status(pallet, status.value)
        return status

    # ==================== APPENDS ====================

    def append_receipt(
        self,
        pallet: Pallet,
        quantity: int,
        actor: User,
        location_id: Optional[str] = None,
        logical_timestamp: Optional[datetime] = None
    ) -> PalletEvent:
        """Recepción: solo una vez, al crear la tarima"""
        if quantity <= 0:
            raise InvalidAmount("La cantidad recibida debe ser mayor a 0")
        if self.repository.has_receipt(pallet.id):
            raise ReceiptAlreadyRecorded(pallet.id)

        event = self.repository.create_event(
            pallet, EventType.RECEIPT.value, actor.id, actor.role,
            quantity=quantity,
            to_location_id=location_id,
            logical_timestamp=logical_timestamp
        )
        self.recompute_pallet_status(pallet)
        return event

    def _append_decrement(
        self,
        pallet: Pallet,
        event_type: EventType,
        quantity: int,
        actor: User,
        current: Optional[int] = None,
        **fields
    ) -> PalletEvent:
        if quantity <= 0:
            raise InvalidAmount("La cantidad debe ser mayor a 0")
        if current is None:
            current = self.current_projection(pallet.id)
        if quantity > current:
            raise InsufficientInventory(current, quantity)

        event = self.repository.create_event(
            pallet, event_type.value, actor.id, actor.role, quantity=quantity, **fields
        )
        self.recompute_pallet_status(pallet)
        return event

    def append_pick(
        self,
        pallet: Pallet,
        quantity: int,
        actor: User,
        order_id: Optional[str] = None,
        supervisor_id: Optional[str] = None,
        logical_timestamp: Optional[datetime] = None,
        sync_batch_id: Optional[str] = None
    ) -> PalletEvent:
        return self._append_decrement(
            pallet, EventType.PICK, quantity, actor,
            order_id=order_id,
            supervisor_id=supervisor_id,
            logical_timestamp=logical_timestamp,
            sync_batch_id=sync_batch_id
        )

    def append_exit(
        self,
        pallet: Pallet,
        quantity: int,
        actor: User,
        order_id: Optional[str] = None,
        reason: Optional[str] = None
    ) -> PalletEvent:
        """Salida directa por venta"""
        return self._append_decrement(pallet, EventType.EXIT, quantity, actor, order_id=order_id, reason=reason)

    def append_entry(
        self,
        pallet: Pallet,
        quantity: int,
        actor: User,
        reason: str,
        order_id: Optional[str] = None
    ) -> PalletEvent:
        """Entrada compensatoria (cancelaciones)"""
        if quantity <= 0:
            raise InvalidAmount("La cantidad debe ser mayor a 0")
        event = self.repository.create_event(
            pallet, EventType.ENTRY.value, actor.id, actor.role,
            quantity=quantity, order_id=order_id, reason=reason
        )
        self.recompute_pallet_status(pallet)
        return event

    def append_shrinkage(
        self,
        pallet: Pallet,
        quantity: int,
        reason: str,
        actor: User,
        supervisor_id: Optional[str] = None,
        min_reason_length: int = 1,
        logical_timestamp: Optional[datetime] = None,
        sync_batch_id: Optional[str] = None
    ) -> PalletEvent:
        reason = _require_reason(reason, min_reason_length)
        current = self.current_projection(pallet.id)
        if quantity > current:
            raise InsufficientInventory(current, quantity)

        enforce_escalation(
            actor.role, Operation.SHRINKAGE, supervisor_id,
            magnitude=quantity, current_inventory=current
        )

        event = self._append_decrement(
            pallet, EventType.SHRINKAGE, quantity, actor,
            current=current,
            reason=reason,
            supervisor_id=supervisor_id,
            logical_timestamp=logical_timestamp,
            sync_batch_id=sync_batch_id
        )
        logger.info(f"Merma de {quantity} en tarima {pallet.id} por {actor.id}")
        return event

    def append_adjustment(
        self,
        pallet: Pallet,
        signed_quantity: int,
        reason: str,
        actor: User,
        supervisor_id: Optional[str] = None,
        logical_timestamp: Optional[datetime] = None,
        sync_batch_id: Optional[str] = None
    ) -> PalletEvent:
        reason = _require_reason(reason)
        if signed_quantity == 0:
            raise InvalidAmount("El ajuste no puede ser 0")

        enforce_escalation(actor.role, Operation.ADJUSTMENT, supervisor_id)

        events = self.repository.list_events_for_pallet(pallet.id)
        running = InventoryService.running_total(events)
        if running + signed_quantity < 0:
            raise InsufficientInventory(InventoryService.project(events), -signed_quantity)

        event = self.repository.create_event(
            pallet, EventType.ADJUSTMENT.value, actor.id, actor.role,
            quantity=signed_quantity,
            reason=reason,
            supervisor_id=supervisor_id,
            logical_timestamp=logical_timestamp,
            sync_batch_id=sync_batch_id
        )
        self.recompute_pallet_status(pallet)
        logger.info(f"Ajuste de {signed_quantity:+d} en tarima {pallet.id} por {actor.id}")
        return event

    def append_relocation(
        self,
        pallet: Pallet,
        to_location_id: str,
        actor: User,
        from_location_id: Optional[str] = None,
        reason: Optional[str] = None,
        logical_timestamp: Optional[datetime] = None,
        sync_batch_id: Optional[str] = None
    ) -> PalletEvent:
        """Reubicación: evento de auditoría, además mueve la ubicación actual"""
        location = self.db.query(Location).filter(Location.id == to_location_id).first()
        if not location:
            raise LocationNotFound(to_location_id)

        event = self.repository.create_event(
            pallet, EventType.RELOCATION.value, actor.id, actor.role,
            from_location_id=from_location_id or pallet.location_id,
            to_location_id=to_location_id,
            reason=reason,
            logical_timestamp=logical_timestamp,
            sync_batch_id=sync_batch_id
        )
        pallet.location_id = to_location_id
        self.db.flush()
        return event

    def append_audit(self, pallet: Pallet, event_type: EventType, actor: User, **fields) -> PalletEvent:
        """Eventos que no mueven cantidad (CREACION, ASIGNACION_PICK, cambios de estado/precio)"""
        return self.repository.create_event(pallet, event_type.value, actor.id, actor.role, **fields)

    # ==================== SINCRONIZACIÓN OFFLINE ====================

    def _check_supervisor(self, supervisor_id: Optional[str]):
        if not supervisor_id:
            return
        supervisor = self.db.query(User).filter(User.id == supervisor_id).first()
        if (
            not supervisor
            or not supervisor.is_active
            or supervisor.role not in (Role.SUPERVISOR.value, Role.ADMIN.value)
        ):
            raise PermissionDenied(
                f"El usuario {supervisor_id} no puede autorizar operaciones",
                {"supervisor_id": supervisor_id}
            )

    def _apply_sync_event(self, event: SyncEvent, actor: User, batch_id: str) -> PalletEvent:
        self._check_supervisor(event.supervisor_id)
        pallet = self.repository.get_pallet(event.pallet_id, lock=True)
        cosigner = effective_cosigner(actor, event.supervisor_id)
        common = {
            "logical_timestamp": event.logical_timestamp,
            "sync_batch_id": batch_id,
        }

        if isinstance(event, SyncPickEvent):
            return self.append_pick(
                pallet, event.quantity, actor,
                order_id=event.order_id, supervisor_id=cosigner, **common
            )
        if isinstance(event, SyncShrinkageEvent):
            return self.append_shrinkage(
                pallet, event.quantity, event.reason, actor,
                supervisor_id=cosigner, **common
            )
        if isinstance(event, SyncAdjustmentEvent):
            return self.append_adjustment(
                pallet, event.quantity, event.reason, actor,
                supervisor_id=cosigner, **common
            )
        if isinstance(event, SyncRelocationEvent):
            return self.append_relocation(
                pallet, event.to_location_id, actor,
                from_location_id=event.from_location_id, reason=event.reason, **common
            )
        raise DomainError(f"Tipo de evento no soportado: {event.type}")

    def bulk_sync(self, raw_events: List[Dict[str, Any]], actor: User) -> SyncResponse:
        """
        Importar eventos capturados sin conexión.

        Se ordenan por timestamp lógico y se validan uno a uno, cada uno en su
        propio savepoint: un evento rechazado no afecta a los demás.
        """
        batch_id = f"SYNC-{int(time.time() * 1000)}-{actor.id[:8]}"
        results: List[SyncItemResult] = []
        parsed: List[SyncEvent] = []

        for raw in raw_events:
            try:
                parsed.append(sync_event_adapter.validate_python(raw))
            except ValidationError as e:
                local_id = raw.get("local_id") if isinstance(raw, dict) else None
                results.append(SyncItemResult(
                    local_id=local_id,
                    status=SyncItemStatus.ERROR,
                    message=f"Evento inválido: {e.errors()[0]['msg']}",
                    error_code="INVALID_EVENT"
                ))

        parsed.sort(key=lambda item: item.logical_timestamp)
        logger.info(f"Sincronizando {len(parsed)} eventos (lote {batch_id}) de usuario {actor.id}")

        for event in parsed:
            try:
                with self.db.begin_nested():
                    created = self._apply_sync_event(event, actor, batch_id)
                results.append(SyncItemResult(
                    local_id=event.local_id,
                    status=SyncItemStatus.OK,
                    server_id=created.id
                ))
            except DomainError as e:
                logger.info(f"Evento {event.local_id} rechazado: {e.message}")
                results.append(SyncItemResult(
                    local_id=event.local_id,
                    status=SyncItemStatus.ERROR,
                    message=e.message,
                    error_code=e.error_code
                ))
            except SQLAlchemyError as e:
                logger.error(f"Error de BD sincronizando evento {event.local_id}: {str(e)}")
                results.append(SyncItemResult(
                    local_id=event.local_id,
                    status=SyncItemStatus.ERROR,
                    message="Error de base de datos",
                    error_code="DATABASE_ERROR"
                ))

        self.db.commit()

        processed = sum(1 for r in results if r.status == SyncItemStatus.OK)
        errors = len(results) - processed
        logger.info(f"Lote {batch_id}: {processed} procesados, {errors} con error")

        return SyncResponse(
            success=errors == 0,
            message=f"{processed} eventos procesados, {errors} con error",
            sync_batch_id=batch_id,
            processed=processed,
            errors=errors,
            results=results
        )
