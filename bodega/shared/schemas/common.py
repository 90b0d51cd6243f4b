# bodega/shared/schemas/common.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum

# ==================== ENUMS DE DOMINIO ====================

class Role(str, Enum):
    OPERATOR = "OPERARIO"
    SUPERVISOR = "SUPERVISOR"
    ADMIN = "ADMIN"

class PalletStatus(str, Enum):
    ACTIVE = "ACTIVA"
    RESERVED = "RESERVADA"
    DEPLETED = "AGOTADA"

class EventType(str, Enum):
    CREATION = "CREACION"
    RECEIPT = "RECEPCION"
    ENTRY = "ENTRADA"
    EXIT = "SALIDA"
    PICK = "PICK"
    SHRINKAGE = "MERMA"
    ADJUSTMENT = "AJUSTE"
    POSITIVE_ADJUSTMENT = "AJUSTE_POSITIVO"
    NEGATIVE_ADJUSTMENT = "AJUSTE_NEGATIVO"
    RELOCATION = "REUBICACION"
    PALLET_CLOSED = "CIERRE_TARIMA"
    PICK_ASSIGNED = "ASIGNACION_PICK"

class AssignmentState(str, Enum):
    OPEN = "ABIERTA"
    CONFIRMED = "CONFIRMADA"
    CANCELLED = "CANCELADA"

class OrderStatus(str, Enum):
    CREATED = "CREADO"
    SENT_TO_WAREHOUSE = "ENVIADO_BODEGA"
    IN_REVIEW = "EN_REVISION"
    COMPLETED = "COMPLETADO"
    CANCELLED = "CANCELADO"

class PaymentStatus(str, Enum):
    PENDING = "PENDIENTE"
    PARTIAL = "PARCIAL"
    PAID = "PAGADO"
    CREDIT = "CREDITO"

class PaymentMethod(str, Enum):
    CASH = "EFECTIVO"
    TRANSFER = "TRANSFERENCIA"
    CARD = "TARJETA"
    CREDIT = "CREDITO"

class CreditStatus(str, Enum):
    PENDING = "PENDIENTE"
    PARTIAL = "PARCIAL"
    PAID = "PAGADO"

class DeliveryType(str, Enum):
    PICKUP = "RECOLECCION"
    SHIPPING = "ENVIO"

# ==================== RESPUESTAS BASE ====================

class BaseResponse(BaseModel):
    success: bool
    message: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)

class ErrorResponse(BaseResponse):
    success: bool = False
    error_code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

class PaginatedResponse(BaseModel):
    items: List[Any]
    total: int
    page: int
    size: int
    pages: int

class SupervisorCredentials(BaseModel):
    """Co-firma de supervisor para operaciones que requieren escalamiento"""
    supervisor_pin: Optional[str] = Field(None, min_length=4, max_length=6, description="PIN del supervisor")
    supervisor_email: Optional[str] = Field(None, description="Email del supervisor (alternativa al PIN)")
    supervisor_password: Optional[str] = Field(None, description="Contraseña del supervisor")
