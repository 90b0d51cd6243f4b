# bodega/modules/picking/__init__.py
"""
Módulo de Picking

Máquina de estados de las asignaciones de surtido:
- Confirmación de picks (ABIERTA -> CONFIRMADA)
- Completitud de pedidos
- Escaneo de tarimas por QR
"""

from .router import router
from .service import PickingService

__all__ = [
    "router",
    "PickingService"
]
