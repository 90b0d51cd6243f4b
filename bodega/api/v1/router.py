# bodega/api/v1/router.py
from fastapi import APIRouter
from bodega.api.v1.auth import router as auth_router
from bodega.modules.pallets.router import router as pallets_router
from bodega.modules.ledger.router import router as events_router
from bodega.modules.picking.router import router as picking_router
from bodega.modules.orders.router import router as orders_router
from bodega.modules.credits.router import router as credits_router
from bodega.modules.credits.payments_router import router as payments_router

from bodega.config.settings import settings

# Crear router principal de la API v1
api_router = APIRouter()

# ==================== AUTENTICACIÓN ====================

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

# ==================== INVENTARIO ====================

api_router.include_router(
    pallets_router,
    prefix="/pallets",
    tags=["Pallets"]
)

api_router.include_router(
    events_router,
    prefix="/events",
    tags=["Pallet Events"]
)

api_router.include_router(
    picking_router,
    prefix="/picking",
    tags=["Picking"]
)

# ==================== VENTAS ====================

api_router.include_router(
    orders_router,
    prefix="/orders",
    tags=["Orders"]
)

api_router.include_router(
    payments_router,
    prefix="/payments",
    tags=["Payments"]
)

api_router.include_router(
    credits_router,
    prefix="/credits",
    tags=["Credits"]
)

# ==================== ENDPOINTS RAÍZ ====================

@api_router.get("/")
async def api_root():
    """Root endpoint de la API"""
    return {
        "message": f"{settings.app_name} v1",
        "version": settings.version,
        "status": "active",
        "docs": "/docs",
        "available_endpoints": {
            "authentication": "/api/v1/auth",
            "pallets": "/api/v1/pallets",
            "events": "/api/v1/events",
            "picking": "/api/v1/picking",
            "orders": "/api/v1/orders",
            "payments": "/api/v1/payments",
            "credits": "/api/v1/credits"
        }
    }
