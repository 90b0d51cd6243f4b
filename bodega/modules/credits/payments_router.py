# bodega/modules/credits/payments_router.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from bodega.config.database import get_db
from bodega.core.auth.dependencies import get_current_user
from bodega.shared.database.models import User
from .service import PaymentService
from .schemas import (
    PaymentCreateRequest, MultiplePaymentsRequest, PaymentData,
    PaymentRegisteredResponse, OrderPaymentsResponse
)

router = APIRouter()

@router.post("/", response_model=PaymentRegisteredResponse, status_code=status.HTTP_201_CREATED)
async def register_payment(
    request: PaymentCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Registrar un pago. Un pago CREDITO genera el crédito del cliente."""
    payment = PaymentData(
        method=request.method,
        amount=request.amount,
        reference=request.reference,
        notes=request.notes
    )
    return PaymentService(db).register_payments(request.order_id, [payment], current_user)

@router.post("/multiple", response_model=PaymentRegisteredResponse, status_code=status.HTTP_201_CREATED)
async def register_multiple_payments(
    request: MultiplePaymentsRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Registrar varios pagos de un pedido en una sola transacción"""
    return PaymentService(db).register_payments(request.order_id, request.payments, current_user)

@router.get("/order/{order_id}", response_model=OrderPaymentsResponse)
async def get_order_payments(
    order_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Pagos del pedido con totales por método"""
    return PaymentService(db).get_order_payments(order_id)

@router.delete("/{payment_id}")
async def void_payment(
    payment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Anular un pago

    **Permisos requeridos:** SUPERVISOR o ADMIN
    """
    payment_status = PaymentService(db).void_payment(payment_id, current_user)
    return {
        "success": True,
        "message": "Pago anulado",
        "payment_id": payment_id,
        "payment_status": payment_status.value
    }
