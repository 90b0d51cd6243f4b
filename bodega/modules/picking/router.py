# bodega/modules/picking/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from bodega.config.database import get_db
from bodega.core.auth.dependencies import get_current_user, get_supervisor_user
from bodega.core.auth.service import SupervisorVerifier
from bodega.modules.pallets.schemas import PalletOperationResponse
from bodega.modules.pallets.service import PalletService
from bodega.shared.database.models import User
from .service import PickingService
from .schemas import (
    ConfirmPickRequest, ConfirmPickResponse, PendingAssignmentsResponse,
    PickingAdjustmentRequest, PickingShrinkageRequest, ScanResponse
)

router = APIRouter()

# Desde el piso de picking la merma exige un motivo más descriptivo
PICKING_SHRINKAGE_MIN_REASON = 5

@router.get("/pending", response_model=PendingAssignmentsResponse)
async def get_pending_assignments(
    warehouse_id: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Asignaciones abiertas, pedidos más antiguos primero"""
    return PickingService(db).get_pending_assignments(warehouse_id)

@router.post("/confirm", response_model=ConfirmPickResponse)
async def confirm_pick(
    request: ConfirmPickRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Confirmar un pick

    **Flujo:**
    - Asignación ABIERTA -> CONFIRMADA
    - Evento PICK en el ledger
    - Estado de tarima y completitud del pedido recalculados
    """
    supervisor = SupervisorVerifier(db).resolve(request)
    return PickingService(db).confirm_pick_assignment(
        request.assignment_id,
        request.quantity,
        current_user,
        supervisor_id=supervisor.id if supervisor else None
    )

@router.post("/shrinkage", response_model=PalletOperationResponse)
async def picking_shrinkage(
    request: PickingShrinkageRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    supervisor = SupervisorVerifier(db).resolve(request)
    return PalletService(db).record_shrinkage(
        request.pallet_id, request.quantity, request.reason, current_user,
        supervisor_id=supervisor.id if supervisor else None,
        min_reason_length=PICKING_SHRINKAGE_MIN_REASON
    )

@router.post("/adjustment", response_model=PalletOperationResponse)
async def picking_adjustment(
    request: PickingAdjustmentRequest,
    current_user: User = Depends(get_supervisor_user),
    db: Session = Depends(get_db)
):
    """Ajuste directo desde picking (solo supervisores)"""
    return PalletService(db).adjust_inventory(
        request.pallet_id, request.quantity, request.reason, current_user
    )

@router.get("/scan/{qr_code}", response_model=ScanResponse)
async def scan_pallet(
    qr_code: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return PickingService(db).scan_pallet(qr_code)
