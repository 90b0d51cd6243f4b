# bodega/modules/orders/__init__.py
"""
Módulo de Pedidos

- Creación de pedidos (con venta directa y pagos)
- Asignación FIFO a tarimas
- Revisión, cierre y cancelación
"""

from .router import router
from .service import OrderService

__all__ = [
    "router",
    "OrderService"
]
