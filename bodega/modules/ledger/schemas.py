# bodega/modules/ledger/schemas.py
from pydantic import BaseModel, Field, TypeAdapter, field_validator
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from datetime import datetime, timezone
from enum import Enum

from bodega.shared.schemas.common import BaseResponse

# ==================== EVENTOS ====================

class PalletEventResponse(BaseModel):
    id: str
    pallet_id: str
    warehouse_id: str
    type: str
    quantity: Optional[int] = None
    user_id: str
    user_role: str
    supervisor_id: Optional[str] = None
    order_id: Optional[str] = None
    from_location_id: Optional[str] = None
    to_location_id: Optional[str] = None
    reason: Optional[str] = None
    logical_timestamp: datetime
    sync_batch_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class EventListResponse(BaseResponse):
    events: List[PalletEventResponse]
    total: int
    page: int
    limit: int
    pages: int

# ==================== SINCRONIZACIÓN OFFLINE ====================

class _SyncEventBase(BaseModel):
    local_id: str = Field(..., description="Identificador asignado por el dispositivo")
    pallet_id: str = Field(..., description="Tarima afectada")
    logical_timestamp: datetime = Field(..., description="Momento en que ocurrió en el dispositivo")
    supervisor_id: Optional[str] = Field(None, description="Supervisor que co-firmó en el dispositivo")

    @field_validator("logical_timestamp")
    @classmethod
    def to_naive_utc(cls, value: datetime) -> datetime:
        # Se guarda en UTC sin zona para poder ordenar lotes mixtos
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

class SyncPickEvent(_SyncEventBase):
    type: Literal["PICK"]
    quantity: int = Field(..., gt=0)
    order_id: Optional[str] = None

class SyncShrinkageEvent(_SyncEventBase):
    type: Literal["MERMA"]
    quantity: int = Field(..., gt=0)
    reason: str = Field(..., description="Motivo de la merma")

class SyncAdjustmentEvent(_SyncEventBase):
    type: Literal["AJUSTE"]
    quantity: int = Field(..., description="Cantidad con signo")
    reason: str = Field(..., description="Motivo del ajuste")

class SyncRelocationEvent(_SyncEventBase):
    type: Literal["REUBICACION"]
    to_location_id: str
    from_location_id: Optional[str] = None
    reason: Optional[str] = None

SyncEvent = Annotated[
    Union[SyncPickEvent, SyncShrinkageEvent, SyncAdjustmentEvent, SyncRelocationEvent],
    Field(discriminator="type")
]

sync_event_adapter = TypeAdapter(SyncEvent)

class SyncRequest(BaseModel):
    # Se validan uno por uno para que un evento malformado no tumbe el lote
    events: List[Dict[str, Any]] = Field(..., description="Eventos capturados sin conexión")

class SyncItemStatus(str, Enum):
    OK = "ok"
    ERROR = "error"

class SyncItemResult(BaseModel):
    local_id: Optional[str] = None
    status: SyncItemStatus
    server_id: Optional[str] = None
    message: Optional[str] = None
    error_code: Optional[str] = None

class SyncResponse(BaseResponse):
    sync_batch_id: str
    processed: int
    errors: int
    results: List[SyncItemResult]
