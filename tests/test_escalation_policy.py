"""
Tests de la política de escalamiento a supervisor.
"""
import pytest

from bodega.core.auth.policy import (
    Operation, enforce_escalation, escalation_threshold, requires_escalation, shrinkage_threshold
)
from bodega.core.exceptions import EscalationRequired
from bodega.shared.schemas.common import Role


class TestShrinkageThreshold:
    def test_threshold_is_ceiling_of_twenty_percent(self):
        assert shrinkage_threshold(70) == 14
        assert shrinkage_threshold(71) == 15
        assert shrinkage_threshold(100) == 20
        assert shrinkage_threshold(1) == 1

    def test_empty_pallet(self):
        assert shrinkage_threshold(0) == 0

    def test_custom_ratio(self):
        assert shrinkage_threshold(70, ratio=0.5) == 35


class TestRequiresEscalation:
    def test_operator_shrinkage_at_threshold_is_allowed(self):
        assert not requires_escalation(Role.OPERATOR, Operation.SHRINKAGE, magnitude=14, current_inventory=70)

    def test_operator_shrinkage_above_threshold(self):
        assert requires_escalation(Role.OPERATOR, Operation.SHRINKAGE, magnitude=15, current_inventory=70)

    def test_operator_pick_over_assigned(self):
        assert requires_escalation("OPERARIO", Operation.PICK, magnitude=11, assigned_quantity=10)
        assert not requires_escalation("OPERARIO", Operation.PICK, magnitude=10, assigned_quantity=10)

    @pytest.mark.parametrize("operation", [
        Operation.ADJUSTMENT, Operation.STATUS_CHANGE, Operation.PRICE_CHANGE
    ])
    def test_operator_always_escalates(self, operation):
        assert requires_escalation(Role.OPERATOR, operation)

    @pytest.mark.parametrize("role", [Role.SUPERVISOR, Role.ADMIN])
    def test_supervisors_never_escalate(self, role):
        assert not requires_escalation(role, Operation.SHRINKAGE, magnitude=70, current_inventory=70)
        assert not requires_escalation(role, Operation.ADJUSTMENT)
        assert not requires_escalation(role, Operation.PICK, magnitude=99, assigned_quantity=1)


class TestEnforceEscalation:
    def test_raises_with_threshold(self):
        with pytest.raises(EscalationRequired) as exc_info:
            enforce_escalation(
                Role.OPERATOR, Operation.SHRINKAGE, None,
                magnitude=20, current_inventory=70
            )
        assert exc_info.value.threshold == 14
        assert exc_info.value.operation == "MERMA"
        assert "umbral: 14" in exc_info.value.message

    def test_cosigned_operation_passes(self):
        enforce_escalation(
            Role.OPERATOR, Operation.SHRINKAGE, "supervisor-id",
            magnitude=20, current_inventory=70
        )

    def test_threshold_for_pick_is_assigned_quantity(self):
        assert escalation_threshold(Operation.PICK, assigned_quantity=8) == 8
        assert escalation_threshold(Operation.ADJUSTMENT) is None
