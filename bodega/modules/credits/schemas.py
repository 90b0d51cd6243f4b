# bodega/modules/credits/schemas.py
from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import datetime
from enum import Enum

from bodega.shared.schemas.common import BaseResponse, CreditStatus, PaymentMethod, PaymentStatus

# ==================== PAGOS ====================

class PaymentData(BaseModel):
    method: PaymentMethod = Field(..., description="EFECTIVO, TRANSFERENCIA, TARJETA o CREDITO")
    amount: Decimal = Field(..., gt=0, description="Monto del pago")
    reference: Optional[str] = Field(None, description="Referencia del pago")
    notes: Optional[str] = Field(None, max_length=500)

class PaymentCreateRequest(PaymentData):
    order_id: str

class MultiplePaymentsRequest(BaseModel):
    order_id: str
    payments: List[PaymentData] = Field(..., min_length=1)

class PaymentResponse(BaseModel):
    id: str
    order_id: str
    method: PaymentMethod
    amount: Decimal
    reference: Optional[str] = None
    notes: Optional[str] = None
    registered_by_id: str
    created_at: datetime

    class Config:
        from_attributes = True

class PaymentTotals(BaseModel):
    cash: Decimal = Decimal("0")
    transfer: Decimal = Decimal("0")
    card: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    total: Decimal = Decimal("0")

class OrderPaymentsResponse(BaseResponse):
    order_id: str
    payment_status: PaymentStatus
    payments: List[PaymentResponse]
    totals: PaymentTotals

class PaymentRegisteredResponse(BaseResponse):
    payments: List[PaymentResponse]
    payment_status: PaymentStatus
    credit_ids: List[str] = []

# ==================== CRÉDITOS ====================

class RepaymentMethod(str, Enum):
    CASH = "EFECTIVO"
    TRANSFER = "TRANSFERENCIA"
    CARD = "TARJETA"

class RepaymentRequest(BaseModel):
    method: RepaymentMethod
    amount: Decimal = Field(..., gt=0)
    reference: Optional[str] = None
    notes: Optional[str] = None

class RepaymentResponse(BaseModel):
    id: str
    credit_id: str
    method: str
    amount: Decimal
    reference: Optional[str] = None
    registered_by_id: str
    created_at: datetime

    class Config:
        from_attributes = True

class CreditResponse(BaseModel):
    id: str
    customer_id: str
    order_id: str
    original_amount: Decimal
    pending_amount: Decimal
    status: CreditStatus
    created_at: datetime

    class Config:
        from_attributes = True

class CreditDetailResponse(CreditResponse):
    repayments: List[RepaymentResponse] = []

class RepaymentRegisteredResponse(BaseResponse):
    repayment: RepaymentResponse
    credit: CreditResponse
    order_payment_status: PaymentStatus

class CreditListResponse(BaseResponse):
    credits: List[CreditResponse]
    total: int
    page: int
    limit: int
    pages: int

class CreditSummaryResponse(BaseResponse):
    total_granted: Decimal
    total_pending: Decimal
    total_recovered: Decimal
    active_credits: int
    total_credits: int

class CustomerCreditsResponse(BaseResponse):
    customer_id: str
    credits: List[CreditDetailResponse]
    total_granted: Decimal
    total_pending: Decimal
    total_paid: Decimal
