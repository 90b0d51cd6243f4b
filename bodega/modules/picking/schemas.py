# bodega/modules/picking/schemas.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from bodega.shared.schemas.common import (
    AssignmentState, BaseResponse, OrderStatus, PalletStatus, SupervisorCredentials
)
from bodega.modules.pallets.schemas import PalletResponse

class ConfirmPickRequest(SupervisorCredentials):
    assignment_id: str = Field(..., description="Asignación a confirmar")
    quantity: int = Field(..., gt=0, description="Cantidad realmente surtida")

class PickingShrinkageRequest(SupervisorCredentials):
    pallet_id: str
    quantity: int = Field(..., gt=0)
    reason: str = Field(..., description="Motivo de la merma (mínimo 5 caracteres)")

class PickingAdjustmentRequest(BaseModel):
    pallet_id: str
    quantity: int = Field(..., description="Cantidad con signo")
    reason: str = Field(..., min_length=1)

class AssignmentResponse(BaseModel):
    id: str
    order_line_id: str
    pallet_id: str
    assigned_quantity: int
    confirmed_quantity: Optional[int] = None
    state: AssignmentState

    class Config:
        from_attributes = True

class PendingAssignment(AssignmentResponse):
    order_id: str
    order_number: str
    customer_name: Optional[str] = None
    product_id: str
    product_name: Optional[str] = None
    pallet_qr_code: str
    location_id: Optional[str] = None
    order_created_at: datetime

class PendingAssignmentsResponse(BaseResponse):
    assignments: List[PendingAssignment]
    total: int

class ConfirmPickResponse(BaseResponse):
    assignment: AssignmentResponse
    event_id: str
    pallet_status: PalletStatus
    pallet_inventory: int
    line_fulfilled_quantity: int
    order_status: OrderStatus

class ScanResponse(BaseResponse):
    pallet: PalletResponse
    pending_assignments: List[PendingAssignment]
