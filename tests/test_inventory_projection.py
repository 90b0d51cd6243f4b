"""
Tests del proyector de inventario (funciones puras, sin base de datos).
"""
from types import SimpleNamespace

from bodega.shared.schemas.common import EventType, PalletStatus
from bodega.shared.services.inventory_service import (
    InventoryService, affects_quantity, derive_pallet_status, project, quantity_delta, running_total
)


def ev(event_type, quantity=None):
    kind = event_type.value if isinstance(event_type, EventType) else event_type
    return SimpleNamespace(type=kind, quantity=quantity)


class TestQuantityDelta:
    """Efecto de cada tipo de evento"""

    def test_increments(self):
        assert quantity_delta(EventType.RECEIPT, 10) == 10
        assert quantity_delta(EventType.ENTRY, 4) == 4
        assert quantity_delta(EventType.POSITIVE_ADJUSTMENT, 2) == 2

    def test_decrements(self):
        assert quantity_delta(EventType.PICK, 3) == -3
        assert quantity_delta(EventType.EXIT, 5) == -5
        assert quantity_delta(EventType.SHRINKAGE, 1) == -1
        assert quantity_delta(EventType.NEGATIVE_ADJUSTMENT, 7) == -7

    def test_signed_adjustment_keeps_sign(self):
        assert quantity_delta(EventType.ADJUSTMENT, -6) == -6
        assert quantity_delta(EventType.ADJUSTMENT, 6) == 6

    def test_audit_events_do_not_move_quantity(self):
        assert quantity_delta(EventType.CREATION, 100) == 0
        assert quantity_delta(EventType.PICK_ASSIGNED, 20) == 0
        assert quantity_delta(EventType.RELOCATION, None) == 0
        assert not affects_quantity(EventType.CREATION)
        assert affects_quantity(EventType.ADJUSTMENT)

    def test_unknown_type_is_ignored(self):
        assert quantity_delta("TIPO_NUEVO", 50) == 0

    def test_missing_quantity_counts_as_zero(self):
        assert quantity_delta(EventType.ADJUSTMENT, None) == 0


class TestProject:
    """Proyección de la cantidad de una tarima"""

    def test_empty_history(self):
        assert project([]) == 0

    def test_conservation(self):
        events = [
            ev(EventType.CREATION, 100),
            ev(EventType.RECEIPT, 100),
            ev(EventType.PICK, 30),
            ev(EventType.SHRINKAGE, 5),
            ev(EventType.ENTRY, 10),
            ev(EventType.ADJUSTMENT, -3),
        ]
        assert project(events) == max(0, 100 - 30 - 5 + 10 - 3)

    def test_never_negative(self):
        events = [ev(EventType.RECEIPT, 10), ev(EventType.PICK, 25)]
        assert running_total(events) == -15
        assert project(events) == 0

    def test_replay_is_idempotent(self):
        events = [ev(EventType.RECEIPT, 48), ev(EventType.PICK, 12), ev(EventType.ADJUSTMENT, 2)]
        first = InventoryService.project(events)
        second = InventoryService.project(events)
        assert first == second == 38

    def test_accepts_generators(self):
        events = (ev(EventType.RECEIPT, n) for n in (5, 5))
        assert project(events) == 10


class TestDerivePalletStatus:
    def test_depleted_when_zero(self):
        assert derive_pallet_status(0, True) == PalletStatus.DEPLETED

    def test_reserved_with_open_assignments(self):
        assert derive_pallet_status(5, True) == PalletStatus.RESERVED

    def test_active_otherwise(self):
        assert derive_pallet_status(5, False) == PalletStatus.ACTIVE
