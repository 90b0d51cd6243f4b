# bodega/modules/pallets/__init__.py
"""
Módulo de Tarimas

- Recepción de tarimas con QR
- Pick, merma, ajuste y reubicación sobre el ledger
- Cambios de estado y precio con co-firma de supervisor
- Limpieza administrativa de tarimas capturadas por error
"""

from .router import router
from .service import PalletService
from .repository import PalletRepository

__all__ = [
    "router",
    "PalletService",
    "PalletRepository"
]
