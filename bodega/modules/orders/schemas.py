# bodega/modules/orders/schemas.py
from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import date, datetime

from bodega.shared.schemas.common import (
    BaseResponse, DeliveryType, OrderStatus, PaymentStatus
)
from bodega.modules.credits.schemas import PaymentData
from bodega.modules.picking.schemas import AssignmentResponse

# ==================== REQUESTS ====================

class ManualAssignment(BaseModel):
    """Asignación directa a tarima (venta de mostrador)"""
    pallet_id: str
    quantity: int = Field(..., gt=0)

class OrderLineCreate(BaseModel):
    product_id: str
    requested_quantity: int = Field(..., gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0, description="Precio al público")
    unit_cost: Optional[Decimal] = Field(None, ge=0, description="Costo del proveedor")
    subtotal: Optional[Decimal] = Field(None, ge=0)
    supplier_id: Optional[str] = None
    assignments: List[ManualAssignment] = []

class OrderCreateRequest(BaseModel):
    warehouse_id: str
    customer_id: str
    notes: Optional[str] = None
    required_date: Optional[date] = None
    delivery_type: DeliveryType = DeliveryType.PICKUP
    subtotal: Optional[Decimal] = Field(None, ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0)
    total: Optional[Decimal] = Field(None, ge=0)
    lines: List[OrderLineCreate] = Field(..., min_length=1)
    payments: List[PaymentData] = []

class ReviewRequest(BaseModel):
    reason: str = Field(..., min_length=1, description="Problema reportado por bodega")

class ResolveReviewRequest(BaseModel):
    resolution: str = Field(..., min_length=1)

class CancelOrderRequest(BaseModel):
    reason: Optional[str] = None

# ==================== RESPONSES ====================

class OrderLineResponse(BaseModel):
    id: str
    product_id: str
    product_name: Optional[str] = None
    supplier_id: Optional[str] = None
    requested_quantity: int
    fulfilled_quantity: int
    unit_price: Decimal
    unit_cost: Optional[Decimal] = None
    subtotal: Decimal
    assignments: List[AssignmentResponse] = []

class OrderResponse(BaseModel):
    id: str
    number: str
    warehouse_id: str
    customer_id: str
    customer_name: Optional[str] = None
    notes: Optional[str] = None
    required_date: Optional[date] = None
    delivery_type: DeliveryType
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    status: OrderStatus
    payment_status: PaymentStatus
    created_by_id: str
    created_at: datetime
    lines: List[OrderLineResponse] = []

class OrderOperationResponse(BaseResponse):
    order: OrderResponse

class Shortage(BaseModel):
    order_line_id: str
    product_id: str
    product_name: Optional[str] = None
    requested: int
    missing: int

class AssignOrderResponse(BaseResponse):
    order: OrderResponse
    assignments_created: int
    shortages: List[Shortage]

class OrderListResponse(BaseResponse):
    orders: List[OrderResponse]
    total: int
    page: int
    limit: int
    pages: int
