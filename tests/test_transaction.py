"""
Tests del ejecutor de transacciones con reintento.
"""
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from bodega.config.settings import settings
from bodega.core.exceptions import ConcurrentModification, DomainError
from bodega.shared.database.models import Warehouse
from bodega.shared.database.transaction import is_retryable, run_atomic


class Flaky:
    """Operación que falla las primeras `failures` llamadas"""

    def __init__(self, db, error, failures):
        self.db = db
        self.error = error
        self.failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        self.db.add(Warehouse(code=f"W{self.calls}", name=f"Almacén {self.calls}"))
        self.db.flush()
        if self.calls <= self.failures:
            raise self.error
        return self.calls


class TestRunAtomic:
    def test_gives_up_after_max_attempts(self, db):
        operation = Flaky(db, StaleDataError("versión obsoleta"), failures=100)

        with pytest.raises(ConcurrentModification) as exc_info:
            run_atomic(db, operation)

        assert operation.calls == settings.ledger_max_attempts
        assert exc_info.value.details == {"attempts": settings.ledger_max_attempts}
        assert db.query(Warehouse).count() == 0

    def test_retry_then_commit(self, db):
        operation = Flaky(db, StaleDataError("versión obsoleta"), failures=1)

        result = run_atomic(db, operation)

        assert result == 2
        assert [w.code for w in db.query(Warehouse).all()] == ["W2"]

    def test_serialization_failure_is_retried(self, db):
        error = DBAPIError("UPDATE pallets", None, SimpleNamespace(sqlstate="40001"))
        operation = Flaky(db, error, failures=2)

        assert run_atomic(db, operation, max_attempts=3) == 3
        assert db.query(Warehouse).count() == 1

    def test_domain_error_rolls_back_without_retry(self, db):
        operation = Flaky(db, DomainError("regla violada"), failures=100)

        with pytest.raises(DomainError):
            run_atomic(db, operation)

        assert operation.calls == 1
        assert db.query(Warehouse).count() == 0

    def test_other_database_errors_propagate(self, db):
        error = IntegrityError("INSERT", None, SimpleNamespace(sqlstate="23505"))
        operation = Flaky(db, error, failures=100)

        with pytest.raises(IntegrityError):
            run_atomic(db, operation)

        assert operation.calls == 1
        assert db.query(Warehouse).count() == 0


class TestIsRetryable:
    def test_codes(self):
        assert is_retryable(StaleDataError("x"))
        assert is_retryable(DBAPIError("s", None, SimpleNamespace(sqlstate="40P01")))
        assert not is_retryable(DBAPIError("s", None, SimpleNamespace(sqlstate="23505")))
        assert not is_retryable(ValueError("x"))
