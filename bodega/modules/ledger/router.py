# bodega/modules/ledger/router.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
import math

from bodega.config.database import get_db
from bodega.core.auth.dependencies import get_current_user
from bodega.shared.database.models import User
from .repository import LedgerRepository
from .service import LedgerService
from .schemas import EventListResponse, PalletEventResponse, SyncRequest, SyncResponse

router = APIRouter()

@router.get("/", response_model=EventListResponse)
async def list_events(
    pallet_id: Optional[str] = Query(None),
    warehouse_id: Optional[str] = Query(None),
    event_type: Optional[str] = Query(None, alias="type"),
    user_id: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Listar eventos del ledger (auditoría)"""
    repository = LedgerRepository(db)
    events, total = repository.list_events(
        pallet_id=pallet_id,
        warehouse_id=warehouse_id,
        event_type=event_type,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit
    )
    return EventListResponse(
        success=True,
        message=f"{total} eventos",
        events=[PalletEventResponse.model_validate(e) for e in events],
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit) if total else 0
    )

@router.get("/pallet/{pallet_id}", response_model=List[PalletEventResponse])
async def pallet_history(
    pallet_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Historial completo de una tarima en orden lógico"""
    repository = LedgerRepository(db)
    repository.get_pallet(pallet_id)
    return [PalletEventResponse.model_validate(e) for e in repository.list_events_for_pallet(pallet_id)]

@router.post("/sync", response_model=SyncResponse)
async def sync_offline_events(
    request: SyncRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Sincronizar eventos capturados sin conexión

    Cada evento se valida por separado; la respuesta indica por local_id cuáles
    se aceptaron y cuáles se rechazaron.
    """
    service = LedgerService(db)
    return service.bulk_sync(request.events, current_user)
