# bodega/core/exceptions.py
from typing import Any, Dict, Optional
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from bodega.shared.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Error de reglas de negocio."""
    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ==================== NO ENCONTRADOS ====================

class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    entity = "Recurso"

    def __init__(self, entity_id: str):
        super().__init__(f"{self.entity} {entity_id} no encontrado", {"id": entity_id})


class PalletNotFound(NotFoundError):
    error_code = "PALLET_NOT_FOUND"
    entity = "Tarima"


class AssignmentNotFound(NotFoundError):
    error_code = "ASSIGNMENT_NOT_FOUND"
    entity = "Asignación"


class OrderLineNotFound(NotFoundError):
    error_code = "ORDER_LINE_NOT_FOUND"
    entity = "Línea de pedido"


class OrderNotFound(NotFoundError):
    error_code = "ORDER_NOT_FOUND"
    entity = "Pedido"


class CreditNotFound(NotFoundError):
    error_code = "CREDIT_NOT_FOUND"
    entity = "Crédito"


class PaymentNotFound(NotFoundError):
    error_code = "PAYMENT_NOT_FOUND"
    entity = "Pago"


class LocationNotFound(NotFoundError):
    error_code = "LOCATION_NOT_FOUND"
    entity = "Ubicación"


class WarehouseNotFound(NotFoundError):
    error_code = "WAREHOUSE_NOT_FOUND"
    entity = "Almacén"


class ProductNotFound(NotFoundError):
    error_code = "PRODUCT_NOT_FOUND"
    entity = "Producto"


class SupplierNotFound(NotFoundError):
    error_code = "SUPPLIER_NOT_FOUND"
    entity = "Proveedor"


class CustomerNotFound(NotFoundError):
    error_code = "CUSTOMER_NOT_FOUND"
    entity = "Cliente"


# ==================== VALIDACIÓN ====================

class InsufficientInventory(DomainError):
    error_code = "INSUFFICIENT_INVENTORY"

    def __init__(self, current_inventory: int, requested: int):
        super().__init__(
            f"Cantidad excede inventario disponible ({current_inventory})",
            {"current_inventory": current_inventory, "requested": requested}
        )
        self.current_inventory = current_inventory
        self.requested = requested


class InvalidReason(DomainError):
    error_code = "INVALID_REASON"

    def __init__(self, message: str = "Se requiere un motivo"):
        super().__init__(message)


class InvalidAmount(DomainError):
    error_code = "INVALID_AMOUNT"


# ==================== AUTORIZACIÓN ====================

class EscalationRequired(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "ESCALATION_REQUIRED"

    def __init__(self, operation: str, threshold: Optional[int] = None):
        message = "Se requiere autorización de supervisor"
        if threshold is not None:
            message = f"{message} (umbral: {threshold})"
        super().__init__(message, {"operation": operation, "threshold": threshold})
        self.operation = operation
        self.threshold = threshold


class PermissionDenied(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "PERMISSION_DENIED"


class InvalidCredentials(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_CREDENTIALS"


# ==================== ESTADO ====================

class AlreadyProcessed(DomainError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "ALREADY_PROCESSED"

    def __init__(self, state: str):
        super().__init__(f"Asignación ya procesada (estado {state})", {"state": state})
        self.state = state


class InvalidStateTransition(DomainError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "INVALID_STATE_TRANSITION"


class ReceiptAlreadyRecorded(DomainError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "RECEIPT_ALREADY_RECORDED"

    def __init__(self, pallet_id: str):
        super().__init__(f"La tarima {pallet_id} ya tiene recepción registrada", {"id": pallet_id})


class ConcurrentModification(DomainError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONCURRENT_MODIFICATION"

    def __init__(self, attempts: int):
        super().__init__(
            f"La operación no pudo completarse tras {attempts} intentos por modificaciones concurrentes",
            {"attempts": attempts}
        )


# ==================== HANDLER ====================

async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} - {exc.error_code}: {exc.message}")
    body = ErrorResponse(
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details or None
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(DomainError, domain_error_handler)
