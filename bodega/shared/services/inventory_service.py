# bodega/shared/services/inventory_service.py
from typing import Iterable, Optional, Protocol

from bodega.shared.schemas.common import EventType, PalletStatus

INCREMENT_TYPES = frozenset({
    EventType.RECEIPT.value,
    EventType.ENTRY.value,
    EventType.POSITIVE_ADJUSTMENT.value,
})

DECREMENT_TYPES = frozenset({
    EventType.EXIT.value,
    EventType.PICK.value,
    EventType.SHRINKAGE.value,
    EventType.NEGATIVE_ADJUSTMENT.value,
})

SIGNED_TYPES = frozenset({EventType.ADJUSTMENT.value})


class LedgerEntry(Protocol):
    type: str
    quantity: Optional[int]


def _type_value(event_type) -> str:
    return event_type.value if isinstance(event_type, EventType) else str(event_type)


def quantity_delta(event_type, quantity: Optional[int]) -> int:
    """Efecto de un evento sobre la cantidad de la tarima (0 para auditoría)"""
    amount = quantity or 0
    kind = _type_value(event_type)

    if kind in INCREMENT_TYPES:
        return amount
    if kind in DECREMENT_TYPES:
        return -amount
    if kind in SIGNED_TYPES:
        return amount
    return 0


def affects_quantity(event_type) -> bool:
    kind = _type_value(event_type)
    return kind in INCREMENT_TYPES or kind in DECREMENT_TYPES or kind in SIGNED_TYPES


class InventoryService:
    """
    Proyector de inventario.

    La cantidad física de una tarima nunca se guarda: se obtiene recorriendo sus
    eventos. Las funciones son puras y no tocan la base de datos, así que pueden
    llamarse cuantas veces sea necesario con el mismo resultado.
    """

    @staticmethod
    def running_total(events: Iterable[LedgerEntry]) -> int:
        """Suma sin recortar. Es la que usa la validación de ajustes."""
        return sum(quantity_delta(event.type, event.quantity) for event in events)

    @staticmethod
    def project(events: Iterable[LedgerEntry]) -> int:
        """Cantidad expuesta de la tarima, nunca negativa"""
        return max(0, InventoryService.running_total(events))

    @staticmethod
    def derive_pallet_status(quantity: int, has_open_assignments: bool) -> PalletStatus:
        if quantity <= 0:
            return PalletStatus.DEPLETED
        if has_open_assignments:
            return PalletStatus.RESERVED
        return PalletStatus.ACTIVE


project = InventoryService.project
running_total = InventoryService.running_total
derive_pallet_status = InventoryService.derive_pallet_status
