# bodega/shared/database/transaction.py
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.exc import SQLAlchemyError, DBAPIError
from typing import Callable, Optional, TypeVar
import logging

from bodega.config.settings import settings
from bodega.core.exceptions import DomainError, ConcurrentModification

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure y deadlock_detected de PostgreSQL
RETRYABLE_SQLSTATES = {"40001", "40P01"}


def is_retryable(error: Exception) -> bool:
    if isinstance(error, StaleDataError):
        return True
    if isinstance(error, DBAPIError):
        orig = getattr(error, "orig", None)
        code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        return code in RETRYABLE_SQLSTATES
    return False


def run_atomic(db: Session, operation: Callable[[], T], max_attempts: Optional[int] = None) -> T:
    """
    Ejecutar una operación completa en una sola transacción.

    Reintenta ante fallas de serialización, deadlocks o versión obsoleta de una
    fila versionada. Agotados los intentos lanza ConcurrentModification.
    Los errores de dominio y cualquier otro error de BD hacen rollback y se propagan.
    """
    attempts = max_attempts or settings.ledger_max_attempts

    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            db.commit()
            return result
        except DomainError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            if not is_retryable(e):
                logger.exception(f"Error de base de datos: {str(e)}")
                raise
            logger.warning(f"Conflicto concurrente (intento {attempt}/{attempts}): {str(e)}")

    raise ConcurrentModification(attempts)
