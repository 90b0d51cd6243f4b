# bodega/modules/credits/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from bodega.config.database import get_db
from bodega.config.settings import settings
from bodega.core.auth.dependencies import get_current_user
from bodega.shared.database.models import User
from bodega.shared.schemas.common import CreditStatus
from .service import CreditService
from .schemas import (
    RepaymentRequest, RepaymentRegisteredResponse, CreditDetailResponse,
    CreditListResponse, CreditSummaryResponse, CustomerCreditsResponse
)

router = APIRouter()

@router.get("/", response_model=CreditListResponse)
async def list_credits(
    credit_status: Optional[CreditStatus] = Query(None, alias="status"),
    customer_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return CreditService(db).list_credits(
        status=credit_status.value if credit_status else None,
        customer_id=customer_id,
        page=page,
        limit=limit
    )

@router.get("/summary", response_model=CreditSummaryResponse)
async def credits_summary(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Resumen global: otorgado, pendiente y recuperado"""
    return CreditService(db).summary()

@router.get("/customer/{customer_id}", response_model=CustomerCreditsResponse)
async def customer_credits(
    customer_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return CreditService(db).customer_credits(customer_id)

@router.get("/{credit_id}", response_model=CreditDetailResponse)
async def get_credit(
    credit_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Detalle del crédito con historial de abonos"""
    return CreditService(db).get_credit(credit_id)

@router.post("/{credit_id}/repayments", response_model=RepaymentRegisteredResponse)
async def register_repayment(
    credit_id: str,
    request: RepaymentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Registrar un abono a un crédito

    **Validaciones:**
    - El crédito no puede estar PAGADO
    - El monto no puede exceder el saldo pendiente
    """
    return CreditService(db).register_repayment(credit_id, request, current_user)
