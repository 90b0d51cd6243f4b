# bodega/modules/credits/__init__.py
"""
Módulo de Pagos y Créditos

- Pagos de pedidos (efectivo, transferencia, tarjeta, crédito)
- Créditos de clientes generados por pagos a crédito
- Abonos y estado de pago del pedido
"""

from .router import router
from .payments_router import router as payment_router
from .service import PaymentService, CreditService, derive_payment_status

__all__ = [
    "router",
    "payment_router",
    "PaymentService",
    "CreditService",
    "derive_payment_status"
]
