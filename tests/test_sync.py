"""
Tests de sincronización de eventos capturados sin conexión.
"""
from datetime import datetime

from bodega.modules.ledger.service import LedgerService
from bodega.shared.database.models import PalletEvent
from bodega.shared.schemas.common import EventType


def pick(local_id, pallet_id, quantity, minute):
    return {
        "local_id": local_id,
        "type": "PICK",
        "pallet_id": pallet_id,
        "quantity": quantity,
        "logical_timestamp": datetime(2024, 5, 10, 9, minute).isoformat(),
    }


class TestBulkSync:
    def test_sorted_by_logical_timestamp(self, db, make_pallet, operator):
        pallet = make_pallet(10)
        events = [
            pick("tablet-2", pallet.id, 8, 5),
            pick("tablet-1", pallet.id, 5, 0),
        ]

        result = LedgerService(db).bulk_sync(events, operator)

        # El pick de las 9:00 se aplica primero; el de las 9:05 ya no alcanza
        by_local = {r.local_id: r for r in result.results}
        assert by_local["tablet-1"].status == "ok"
        assert by_local["tablet-2"].status == "error"
        assert by_local["tablet-2"].error_code == "INSUFFICIENT_INVENTORY"
        assert LedgerService(db).current_projection(pallet.id) == 5

    def test_rejected_item_does_not_affect_batch(self, db, make_pallet, operator, locations):
        _, rack_b = locations
        pallet = make_pallet(70)
        events = [
            pick("a", pallet.id, 10, 0),
            {
                "local_id": "b",
                "type": "MERMA",
                "pallet_id": pallet.id,
                "quantity": 30,
                "reason": "Botellas rotas",
                "logical_timestamp": "2024-05-10T09:01:00",
            },
            {
                "local_id": "c",
                "type": "REUBICACION",
                "pallet_id": pallet.id,
                "to_location_id": rack_b.id,
                "logical_timestamp": "2024-05-10T09:02:00",
            },
            pick("d", "no-existe", 1, 3),
        ]

        result = LedgerService(db).bulk_sync(events, operator)

        assert result.processed == 2
        assert result.errors == 2
        assert not result.success
        by_local = {r.local_id: r for r in result.results}
        assert by_local["b"].error_code == "ESCALATION_REQUIRED"
        assert by_local["d"].error_code == "PALLET_NOT_FOUND"
        assert LedgerService(db).current_projection(pallet.id) == 60

        synced = db.query(PalletEvent).filter(PalletEvent.sync_batch_id == result.sync_batch_id).all()
        assert sorted(e.type for e in synced) == sorted([EventType.PICK.value, EventType.RELOCATION.value])
        assert result.sync_batch_id.startswith("SYNC-")

    def test_malformed_event(self, db, make_pallet, operator):
        pallet = make_pallet(10)
        events = [
            {"local_id": "roto", "type": "PICK", "pallet_id": pallet.id},
            {"local_id": "desconocido", "type": "TELEPORT", "pallet_id": pallet.id},
            pick("bien", pallet.id, 2, 0),
        ]

        result = LedgerService(db).bulk_sync(events, operator)

        by_local = {r.local_id: r for r in result.results}
        assert by_local["roto"].error_code == "INVALID_EVENT"
        assert by_local["desconocido"].error_code == "INVALID_EVENT"
        assert by_local["bien"].status == "ok"
        assert LedgerService(db).current_projection(pallet.id) == 8

    def test_cosigned_offline_and_invalid_cosigner(self, db, make_pallet, operator, supervisor):
        pallet = make_pallet(70)
        shrinkage = {
            "type": "MERMA",
            "pallet_id": pallet.id,
            "quantity": 20,
            "reason": "Caducado",
            "logical_timestamp": "2024-05-10T09:00:00Z",
        }
        events = [
            {**shrinkage, "local_id": "firmado", "supervisor_id": supervisor.id},
            {**shrinkage, "local_id": "auto-firmado", "supervisor_id": operator.id},
        ]

        result = LedgerService(db).bulk_sync(events, operator)

        by_local = {r.local_id: r for r in result.results}
        assert by_local["firmado"].status == "ok"
        assert by_local["auto-firmado"].error_code == "PERMISSION_DENIED"
        event = db.query(PalletEvent).filter(PalletEvent.id == by_local["firmado"].server_id).one()
        assert event.supervisor_id == supervisor.id
        assert event.logical_timestamp == datetime(2024, 5, 10, 9, 0)

    def test_supervisor_signs_own_offline_events(self, db, make_pallet, supervisor):
        pallet = make_pallet(40)

        result = LedgerService(db).bulk_sync(
            [{
                "local_id": "sup-1",
                "type": "AJUSTE",
                "pallet_id": pallet.id,
                "quantity": -5,
                "reason": "Conteo físico",
                "logical_timestamp": "2024-05-10T09:00:00",
            }],
            supervisor
        )

        event = db.query(PalletEvent).filter(PalletEvent.id == result.results[0].server_id).one()
        assert event.supervisor_id == supervisor.id
        assert LedgerService(db).current_projection(pallet.id) == 35
