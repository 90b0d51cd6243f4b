# bodega/modules/pallets/schemas.py
from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import date, datetime

from bodega.shared.schemas.common import BaseResponse, PalletStatus, SupervisorCredentials

# ==================== REQUESTS ====================

class PalletCreateRequest(BaseModel):
    warehouse_id: str = Field(..., description="Almacén que recibe la tarima")
    product_id: str = Field(..., description="Producto contenido")
    supplier_id: str = Field(..., description="Proveedor")
    location_id: Optional[str] = Field(None, description="Ubicación destino")
    capacity: int = Field(..., gt=0, description="Capacidad total recibida")
    unit_price: Optional[Decimal] = Field(None, gt=0, description="Precio unitario")
    deposit_per_container: Optional[Decimal] = Field(None, gt=0, description="Depósito por envase retornable")
    lot: Optional[str] = Field(None, max_length=100)
    production_date: Optional[date] = None
    expiry_date: Optional[date] = None
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "warehouse_id": "3f1c...",
                "product_id": "9a2b...",
                "supplier_id": "77de...",
                "capacity": 100,
                "unit_price": 18.5,
                "lot": "L-2024-118"
            }
        }

class PickRequest(SupervisorCredentials):
    quantity: int = Field(..., gt=0, description="Cantidad a retirar")
    order_id: Optional[str] = None

class ShrinkageRequest(SupervisorCredentials):
    quantity: int = Field(..., gt=0, description="Cantidad perdida")
    reason: str = Field(..., min_length=1, description="Motivo de la merma")

class AdjustmentRequest(SupervisorCredentials):
    quantity: int = Field(..., description="Cantidad con signo (+ entra, - sale)")
    reason: str = Field(..., min_length=1, description="Motivo del ajuste")

class RelocationRequest(BaseModel):
    location_id: str = Field(..., description="Nueva ubicación")
    reason: Optional[str] = None

class StatusChangeRequest(SupervisorCredentials):
    status: PalletStatus
    reason: str = Field(..., min_length=1)

class PriceChangeRequest(SupervisorCredentials):
    unit_price: Decimal = Field(..., gt=0)

class PalletDeleteRequest(BaseModel):
    reason: Optional[str] = None

# ==================== RESPONSES ====================

class PalletResponse(BaseModel):
    id: str
    qr_code: str
    warehouse_id: str
    product_id: str
    product_name: Optional[str] = None
    supplier_id: str
    location_id: Optional[str] = None
    capacity: int
    unit_price: Decimal
    deposit_per_container: Decimal
    lot: Optional[str] = None
    production_date: Optional[date] = None
    expiry_date: Optional[date] = None
    status: PalletStatus
    received_at: datetime
    current_inventory: int

class PalletOperationResponse(BaseResponse):
    pallet: PalletResponse
    event_id: Optional[str] = None

class PalletListResponse(BaseResponse):
    pallets: List[PalletResponse]
    total: int
    page: int
    limit: int
    pages: int

class PalletDeleteResponse(BaseResponse):
    pallet_id: str
    deleted_events: int
