# bodega/modules/orders/router.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from bodega.config.database import get_db
from bodega.config.settings import settings
from bodega.core.auth.dependencies import get_current_user
from bodega.shared.database.models import User
from bodega.shared.schemas.common import OrderStatus
from .service import OrderService
from .schemas import (
    OrderCreateRequest, ReviewRequest, ResolveReviewRequest, CancelOrderRequest,
    OrderResponse, OrderOperationResponse, AssignOrderResponse, OrderListResponse
)

router = APIRouter()

@router.get("/", response_model=OrderListResponse)
async def list_orders(
    warehouse_id: Optional[str] = Query(None),
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    customer_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderService(db).list_orders(
        warehouse_id=warehouse_id,
        status=order_status.value if order_status else None,
        customer_id=customer_id,
        page=page,
        limit=limit
    )

@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderService(db).get_order(order_id)

@router.post("/", response_model=OrderOperationResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    request: OrderCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Crear un pedido

    **Venta directa:** si alguna línea trae asignaciones a tarimas, el inventario
    se descuenta al momento (SALIDA) y el pedido pasa a ENVIADO_BODEGA.

    **Pagos:** los pagos CREDITO generan un crédito del cliente.
    """
    return OrderService(db).create_order(request, current_user)

@router.post("/{order_id}/assign", response_model=AssignOrderResponse)
async def assign_order(
    order_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Asignación FIFO de las líneas a tarimas activas"""
    return OrderService(db).assign_order(order_id, current_user)

@router.post("/{order_id}/close", response_model=OrderOperationResponse)
async def close_order(
    order_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderService(db).close_order(order_id, current_user)

@router.post("/{order_id}/review", response_model=OrderOperationResponse)
async def send_to_review(
    order_id: str,
    request: ReviewRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderService(db).send_to_review(order_id, request.reason, current_user)

@router.post("/{order_id}/resolve-review", response_model=OrderOperationResponse)
async def resolve_review(
    order_id: str,
    request: ResolveReviewRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """**Permisos requeridos:** SUPERVISOR o ADMIN"""
    return OrderService(db).resolve_review(order_id, request.resolution, current_user)

@router.post("/{order_id}/cancel", response_model=OrderOperationResponse)
async def cancel_order(
    order_id: str,
    request: CancelOrderRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Cancelar un pedido

    **Permisos requeridos:** SUPERVISOR o ADMIN

    Las unidades ya surtidas regresan a su tarima con un evento ENTRADA.
    """
    return OrderService(db).cancel_order(order_id, current_user, request.reason)
