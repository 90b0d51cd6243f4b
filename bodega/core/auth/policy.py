# bodega/core/auth/policy.py
"""
Política de escalamiento a supervisor.

Decide si una operación de un OPERARIO necesita la co-firma de un supervisor.
No verifica credenciales: solo recibe la identidad ya verificada (o None).
"""
from enum import Enum
from fractions import Fraction
from typing import Optional
import math

from bodega.config.settings import settings
from bodega.core.exceptions import EscalationRequired
from bodega.shared.schemas.common import Role


class Operation(str, Enum):
    PICK = "PICK"
    SHRINKAGE = "MERMA"
    ADJUSTMENT = "AJUSTE"
    STATUS_CHANGE = "CAMBIO_ESTADO"
    PRICE_CHANGE = "CAMBIO_PRECIO"


ALWAYS_ESCALATED = frozenset({
    Operation.ADJUSTMENT,
    Operation.STATUS_CHANGE,
    Operation.PRICE_CHANGE,
})


def _role_value(role) -> str:
    return role.value if isinstance(role, Role) else str(role)


def shrinkage_threshold(current_inventory: int, ratio: Optional[float] = None) -> int:
    """Máxima merma que un operario registra sin supervisor: ceil(ratio × inventario)"""
    ratio = settings.shrinkage_escalation_ratio if ratio is None else ratio
    return math.ceil(Fraction(str(ratio)) * max(current_inventory, 0))


def escalation_threshold(
    operation: Operation,
    current_inventory: Optional[int] = None,
    assigned_quantity: Optional[int] = None
) -> Optional[int]:
    if operation == Operation.SHRINKAGE and current_inventory is not None:
        return shrinkage_threshold(current_inventory)
    if operation == Operation.PICK:
        return assigned_quantity
    return None


def requires_escalation(
    role,
    operation: Operation,
    magnitude: Optional[int] = None,
    current_inventory: Optional[int] = None,
    assigned_quantity: Optional[int] = None
) -> bool:
    if _role_value(role) != Role.OPERATOR.value:
        return False

    if operation in ALWAYS_ESCALATED:
        return True

    if operation == Operation.SHRINKAGE:
        if magnitude is None or current_inventory is None:
            return False
        return magnitude > shrinkage_threshold(current_inventory)

    if operation == Operation.PICK:
        if magnitude is None or assigned_quantity is None:
            return False
        return magnitude > assigned_quantity

    return False


def enforce_escalation(
    role,
    operation: Operation,
    supervisor_id: Optional[str],
    magnitude: Optional[int] = None,
    current_inventory: Optional[int] = None,
    assigned_quantity: Optional[int] = None
):
    """Lanza EscalationRequired si la operación necesita co-firma y no la trae"""
    if supervisor_id:
        return
    if requires_escalation(role, operation, magnitude, current_inventory, assigned_quantity):
        raise EscalationRequired(
            operation.value,
            escalation_threshold(operation, current_inventory, assigned_quantity)
        )


def effective_cosigner(actor, supervisor_id: Optional[str]) -> Optional[str]:
    """Supervisores y admins firman sus propias operaciones"""
    if supervisor_id:
        return supervisor_id
    return actor.id if _role_value(actor.role) != Role.OPERATOR.value else None
