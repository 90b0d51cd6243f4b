"""
Tests del ledger de tarimas a través de las operaciones de PalletService.
"""
from decimal import Decimal

import pytest

from bodega.core.exceptions import (
    EscalationRequired, InsufficientInventory, InvalidReason, InvalidStateTransition,
    LocationNotFound, PalletNotFound, PermissionDenied, ReceiptAlreadyRecorded
)
from bodega.modules.ledger.service import LedgerService
from bodega.modules.orders.schemas import ManualAssignment, OrderCreateRequest, OrderLineCreate
from bodega.modules.orders.service import OrderService
from bodega.modules.pallets.service import PalletService
from bodega.shared.database.models import Pallet, PalletEvent, PickAssignment
from bodega.shared.schemas.common import EventType, PalletStatus


def event_types(db, pallet_id):
    return [e.type for e in LedgerService(db).repository.list_events_for_pallet(pallet_id)]


class TestReceivePallet:
    def test_creates_active_pallet_with_creation_and_receipt(self, db, make_pallet):
        pallet = make_pallet(48)

        assert pallet.status == PalletStatus.ACTIVE
        assert pallet.current_inventory == 48
        assert pallet.qr_code.startswith("DL-")
        assert event_types(db, pallet.id) == [EventType.CREATION.value, EventType.RECEIPT.value]

    def test_receipt_only_once(self, db, make_pallet, supervisor):
        pallet = make_pallet(10)
        orm_pallet = db.query(Pallet).filter(Pallet.id == pallet.id).one()

        with pytest.raises(ReceiptAlreadyRecorded):
            LedgerService(db).append_receipt(orm_pallet, 10, supervisor)

    def test_unknown_pallet(self, db, operator):
        with pytest.raises(PalletNotFound):
            PalletService(db).pick_from_pallet("no-existe", 1, operator)


class TestExampleScenario:
    """RECEPCION 100 -> pick 30 -> merma 20 co-firmada -> ajuste -50 -> AGOTADA"""

    def test_full_flow(self, db, make_pallet, operator, supervisor):
        service = PalletService(db)
        pallet = make_pallet(100)

        result = service.pick_from_pallet(pallet.id, 30, operator)
        assert result.pallet.current_inventory == 70
        assert result.pallet.status == PalletStatus.ACTIVE

        with pytest.raises(EscalationRequired) as exc_info:
            service.record_shrinkage(pallet.id, 20, "Botellas rotas", operator)
        assert exc_info.value.threshold == 14
        assert service.get_pallet(pallet.id).current_inventory == 70

        result = service.record_shrinkage(
            pallet.id, 20, "Botellas rotas", operator, supervisor_id=supervisor.id
        )
        assert result.pallet.current_inventory == 50
        shrinkage = db.query(PalletEvent).filter(PalletEvent.id == result.event_id).one()
        assert shrinkage.supervisor_id == supervisor.id
        assert shrinkage.user_id == operator.id

        result = service.adjust_inventory(pallet.id, -50, "Conteo físico", supervisor)
        assert result.pallet.current_inventory == 0
        assert result.pallet.status == PalletStatus.DEPLETED


class TestDecrements:
    def test_pick_cannot_exceed_projection(self, db, make_pallet, operator):
        pallet = make_pallet(5)

        with pytest.raises(InsufficientInventory) as exc_info:
            PalletService(db).pick_from_pallet(pallet.id, 6, operator)

        assert exc_info.value.current_inventory == 5
        assert event_types(db, pallet.id) == [EventType.CREATION.value, EventType.RECEIPT.value]

    def test_shrinkage_within_threshold_needs_no_supervisor(self, db, make_pallet, operator):
        pallet = make_pallet(70)

        result = PalletService(db).record_shrinkage(pallet.id, 14, "Fuga", operator)

        assert result.pallet.current_inventory == 56

    def test_shrinkage_requires_reason(self, db, make_pallet, supervisor):
        pallet = make_pallet(10)

        with pytest.raises(InvalidReason):
            PalletService(db).record_shrinkage(pallet.id, 1, "   ", supervisor)

    def test_supervisor_records_self_as_cosigner(self, db, make_pallet, supervisor):
        pallet = make_pallet(10)

        result = PalletService(db).record_shrinkage(pallet.id, 9, "Caducado", supervisor)

        event = db.query(PalletEvent).filter(PalletEvent.id == result.event_id).one()
        assert event.supervisor_id == supervisor.id


class TestAdjustments:
    def test_operator_needs_supervisor(self, db, make_pallet, operator, supervisor):
        pallet = make_pallet(10)
        service = PalletService(db)

        with pytest.raises(EscalationRequired):
            service.adjust_inventory(pallet.id, 2, "Sobrante", operator)

        result = service.adjust_inventory(pallet.id, 2, "Sobrante", operator, supervisor_id=supervisor.id)
        assert result.pallet.current_inventory == 12

    def test_cannot_go_below_zero(self, db, make_pallet, supervisor):
        pallet = make_pallet(10)

        with pytest.raises(InsufficientInventory):
            PalletService(db).adjust_inventory(pallet.id, -11, "Conteo", supervisor)

    def test_positive_adjustment_reactivates_depleted_pallet(self, db, make_pallet, supervisor):
        pallet = make_pallet(3)
        service = PalletService(db)
        service.adjust_inventory(pallet.id, -3, "Conteo", supervisor)

        result = service.adjust_inventory(pallet.id, 4, "Reconteo", supervisor)

        assert result.pallet.status == PalletStatus.ACTIVE
        assert result.pallet.current_inventory == 4


class TestRelocation:
    def test_relocation_moves_pallet_without_changing_quantity(self, db, make_pallet, operator, locations):
        rack_a, rack_b = locations
        pallet = make_pallet(20)

        result = PalletService(db).relocate_pallet(pallet.id, rack_b.id, operator, reason="Reacomodo")

        assert result.pallet.location_id == rack_b.id
        assert result.pallet.current_inventory == 20
        event = db.query(PalletEvent).filter(PalletEvent.id == result.event_id).one()
        assert event.from_location_id == rack_a.id
        assert event.to_location_id == rack_b.id

    def test_unknown_location(self, db, make_pallet, operator):
        pallet = make_pallet(20)

        with pytest.raises(LocationNotFound):
            PalletService(db).relocate_pallet(pallet.id, "no-existe", operator)


class TestAdministrativeChanges:
    def test_status_change_is_audited(self, db, make_pallet, operator, supervisor):
        pallet = make_pallet(20)
        service = PalletService(db)

        with pytest.raises(EscalationRequired):
            service.change_status(pallet.id, PalletStatus.RESERVED, "Apartada", operator)

        result = service.change_status(
            pallet.id, PalletStatus.RESERVED, "Apartada", operator, supervisor_id=supervisor.id
        )
        assert result.pallet.status == PalletStatus.RESERVED
        event = db.query(PalletEvent).filter(PalletEvent.id == result.event_id).one()
        assert event.type == EventType.ADJUSTMENT.value
        assert event.quantity is None
        assert event.reason == "Cambio de estado a RESERVADA: Apartada"

    def test_next_quantity_event_rederives_status(self, db, make_pallet, supervisor):
        pallet = make_pallet(20)
        service = PalletService(db)
        service.change_status(pallet.id, PalletStatus.RESERVED, "Apartada", supervisor)

        result = service.pick_from_pallet(pallet.id, 1, supervisor)

        assert result.pallet.status == PalletStatus.ACTIVE

    def test_price_change(self, db, make_pallet, supervisor):
        pallet = make_pallet(20, unit_price=Decimal("18.50"))

        result = PalletService(db).change_price(pallet.id, Decimal("19.00"), supervisor)

        assert result.pallet.unit_price == Decimal("19.00")
        event = db.query(PalletEvent).filter(PalletEvent.id == result.event_id).one()
        assert event.reason == "Precio actualizado de $18.50 a $19.00"


class TestDeletePallet:
    def test_operator_cannot_delete(self, db, make_pallet, operator):
        pallet = make_pallet(5)

        with pytest.raises(PermissionDenied):
            PalletService(db).delete_pallet(pallet.id, operator)

    def test_delete_removes_events(self, db, make_pallet, admin):
        pallet = make_pallet(5)

        result = PalletService(db).delete_pallet(pallet.id, admin, reason="Captura duplicada")

        assert result.deleted_events == 2
        assert db.query(Pallet).filter(Pallet.id == pallet.id).first() is None
        assert db.query(PalletEvent).filter(PalletEvent.pallet_id == pallet.id).count() == 0

    def test_cannot_delete_after_picks(self, db, make_pallet, admin):
        pallet = make_pallet(5)
        service = PalletService(db)
        service.pick_from_pallet(pallet.id, 1, admin)

        with pytest.raises(InvalidStateTransition):
            service.delete_pallet(pallet.id, admin)

    def test_cannot_delete_after_direct_sale(self, db, make_pallet, admin, warehouse, customer, product):
        pallet = make_pallet(10)
        order = OrderService(db).create_order(
            OrderCreateRequest(
                warehouse_id=warehouse.id,
                customer_id=customer.id,
                lines=[OrderLineCreate(
                    product_id=product.id,
                    requested_quantity=4,
                    unit_price=Decimal("20"),
                    assignments=[ManualAssignment(pallet_id=pallet.id, quantity=4)]
                )]
            ),
            admin
        ).order

        with pytest.raises(InvalidStateTransition):
            PalletService(db).delete_pallet(pallet.id, admin)

        assert db.get(Pallet, pallet.id) is not None
        line_id = order.lines[0].id
        assert db.query(PickAssignment).filter(PickAssignment.order_line_id == line_id).count() == 1

    def test_cannot_delete_after_shrinkage(self, db, make_pallet, admin):
        pallet = make_pallet(10)
        service = PalletService(db)
        service.record_shrinkage(pallet.id, 1, "Botella rota", admin)

        with pytest.raises(InvalidStateTransition) as exc_info:
            service.delete_pallet(pallet.id, admin)

        assert exc_info.value.details == {"outflow_events": 1}

    def test_cannot_delete_with_assignments(self, db, make_pallet, admin, warehouse, customer, product):
        pallet = make_pallet(10)
        orders = OrderService(db)
        order = orders.create_order(
            OrderCreateRequest(
                warehouse_id=warehouse.id,
                customer_id=customer.id,
                lines=[OrderLineCreate(product_id=product.id, requested_quantity=3, unit_price=Decimal("20"))]
            ),
            admin
        ).order
        orders.assign_order(order.id, admin)
        orders.cancel_order(order.id, admin)

        with pytest.raises(InvalidStateTransition) as exc_info:
            PalletService(db).delete_pallet(pallet.id, admin)

        assert exc_info.value.details == {"assignments": {"CANCELADA": 1}}
