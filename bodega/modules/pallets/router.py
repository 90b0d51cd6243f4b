# bodega/modules/pallets/router.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from bodega.config.database import get_db
from bodega.core.auth.dependencies import get_current_user, get_supervisor_user
from bodega.core.auth.service import SupervisorVerifier
from bodega.shared.database.models import User
from bodega.shared.schemas.common import PalletStatus
from .service import PalletService
from .schemas import (
    PalletCreateRequest, PickRequest, ShrinkageRequest, AdjustmentRequest,
    RelocationRequest, StatusChangeRequest, PriceChangeRequest, PalletDeleteRequest,
    PalletResponse, PalletOperationResponse, PalletListResponse, PalletDeleteResponse
)

router = APIRouter()


def _supervisor_id(db: Session, request) -> Optional[str]:
    supervisor = SupervisorVerifier(db).resolve(request)
    return supervisor.id if supervisor else None


@router.get("/", response_model=PalletListResponse)
async def list_pallets(
    warehouse_id: Optional[str] = Query(None),
    pallet_status: Optional[PalletStatus] = Query(None, alias="status"),
    product_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Listar tarimas con su inventario proyectado"""
    service = PalletService(db)
    return service.list_pallets(
        warehouse_id=warehouse_id,
        status=pallet_status.value if pallet_status else None,
        product_id=product_id,
        page=page,
        limit=limit
    )

@router.get("/qr/{qr_code}", response_model=PalletResponse)
async def get_pallet_by_qr(
    qr_code: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return PalletService(db).get_by_qr(qr_code)

@router.get("/{pallet_id}", response_model=PalletResponse)
async def get_pallet(
    pallet_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return PalletService(db).get_pallet(pallet_id)

@router.post("/", response_model=PalletOperationResponse, status_code=status.HTTP_201_CREATED)
async def receive_pallet(
    request: PalletCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Recibir una tarima nueva

    **Incluye:**
    - Código QR único
    - Eventos CREACION y RECEPCION por la capacidad total
    """
    return PalletService(db).receive_pallet(request, current_user)

@router.post("/{pallet_id}/pick", response_model=PalletOperationResponse)
async def pick_from_pallet(
    pallet_id: str,
    request: PickRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return PalletService(db).pick_from_pallet(
        pallet_id, request.quantity, current_user,
        order_id=request.order_id,
        supervisor_id=_supervisor_id(db, request)
    )

@router.post("/{pallet_id}/shrinkage", response_model=PalletOperationResponse)
async def record_shrinkage(
    pallet_id: str,
    request: ShrinkageRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Registrar merma

    Un OPERARIO necesita supervisor si la merma supera el 20% del inventario actual.
    """
    return PalletService(db).record_shrinkage(
        pallet_id, request.quantity, request.reason, current_user,
        supervisor_id=_supervisor_id(db, request)
    )

@router.post("/{pallet_id}/adjustment", response_model=PalletOperationResponse)
async def adjust_inventory(
    pallet_id: str,
    request: AdjustmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Ajuste de inventario (OPERARIO siempre requiere supervisor)"""
    return PalletService(db).adjust_inventory(
        pallet_id, request.quantity, request.reason, current_user,
        supervisor_id=_supervisor_id(db, request)
    )

@router.patch("/{pallet_id}/relocate", response_model=PalletOperationResponse)
async def relocate_pallet(
    pallet_id: str,
    request: RelocationRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return PalletService(db).relocate_pallet(pallet_id, request.location_id, current_user, request.reason)

@router.patch("/{pallet_id}/status", response_model=PalletOperationResponse)
async def change_status(
    pallet_id: str,
    request: StatusChangeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return PalletService(db).change_status(
        pallet_id, request.status, request.reason, current_user,
        supervisor_id=_supervisor_id(db, request)
    )

@router.patch("/{pallet_id}/price", response_model=PalletOperationResponse)
async def change_price(
    pallet_id: str,
    request: PriceChangeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return PalletService(db).change_price(
        pallet_id, request.unit_price, current_user,
        supervisor_id=_supervisor_id(db, request)
    )

@router.delete("/{pallet_id}", response_model=PalletDeleteResponse)
async def delete_pallet(
    pallet_id: str,
    request: Optional[PalletDeleteRequest] = None,
    current_user: User = Depends(get_supervisor_user),
    db: Session = Depends(get_db)
):
    """Eliminar tarima capturada por error (solo SUPERVISOR/ADMIN)"""
    return PalletService(db).delete_pallet(pallet_id, current_user, request.reason if request else None)
