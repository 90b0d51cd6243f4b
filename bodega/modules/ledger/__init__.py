# bodega/modules/ledger/__init__.py
"""
Módulo Ledger - Eventos de Tarimas

Registro append-only de los eventos que afectan el inventario de cada tarima:
- Recepción, pick, merma, ajuste, reubicación
- Recalculo del estado derivado de la tarima
- Sincronización de eventos capturados sin conexión

Arquitectura:
- router.py: Endpoints de auditoría y sincronización
- service.py: Validación contra la proyección y append de eventos
- repository.py: Persistencia y transacciones con reintento
- schemas.py: Modelos de request/response
"""

from .router import router
from .service import LedgerService
from .repository import LedgerRepository

__all__ = [
    "router",
    "LedgerService",
    "LedgerRepository"
]
