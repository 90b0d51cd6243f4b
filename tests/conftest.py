import os

# Base en memoria: debe configurarse antes de importar la aplicación
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient

from bodega.config.database import Base, SessionLocal, engine, get_db
from bodega.core.auth.service import AuthService
from bodega.main import app
from bodega.modules.pallets.schemas import PalletCreateRequest
from bodega.modules.pallets.service import PalletService
from bodega.shared.database.models import (
    Customer, Location, Product, Supplier, User, Warehouse
)
from bodega.shared.schemas.common import Role

SUPERVISOR_PIN = "4321"
PASSWORD = "secreto123"


@pytest.fixture
def db():
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


def _user(db, email, name, role, pin=None):
    user = User(
        email=email,
        name=name,
        role=role.value,
        password_hash=AuthService.get_password_hash(PASSWORD),
        pin_hash=AuthService.get_password_hash(pin) if pin else None,
        is_active=True
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def operator(db):
    return _user(db, "operario@bodega.mx", "Juan Operario", Role.OPERATOR)


@pytest.fixture
def supervisor(db):
    return _user(db, "supervisor@bodega.mx", "Ana Supervisora", Role.SUPERVISOR, pin=SUPERVISOR_PIN)


@pytest.fixture
def admin(db):
    return _user(db, "admin@bodega.mx", "Admin", Role.ADMIN)


@pytest.fixture
def warehouse(db):
    warehouse = Warehouse(code="CEN", name="Bodega Central")
    db.add(warehouse)
    db.commit()
    return warehouse


@pytest.fixture
def locations(db, warehouse):
    rack_a = Location(warehouse_id=warehouse.id, code="A-01", name="Rack A nivel 1")
    rack_b = Location(warehouse_id=warehouse.id, code="B-03", name="Rack B nivel 3")
    db.add_all([rack_a, rack_b])
    db.commit()
    return rack_a, rack_b


@pytest.fixture
def product(db):
    product = Product(sku="REF-600-24", name="Refresco cola 600ml (24)")
    db.add(product)
    db.commit()
    return product


@pytest.fixture
def supplier(db):
    supplier = Supplier(name="Embotelladora del Norte")
    db.add(supplier)
    db.commit()
    return supplier


@pytest.fixture
def customer(db):
    customer = Customer(name="Abarrotes La Esperanza", phone="5551234567")
    db.add(customer)
    db.commit()
    return customer


@pytest.fixture
def make_pallet(db, warehouse, product, supplier, locations, supervisor):
    """Recibir una tarima con la capacidad indicada"""
    def _make(capacity=100, actor=None, **overrides):
        data = PalletCreateRequest(
            warehouse_id=overrides.pop("warehouse_id", warehouse.id),
            product_id=overrides.pop("product_id", product.id),
            supplier_id=supplier.id,
            location_id=overrides.pop("location_id", locations[0].id),
            capacity=capacity,
            **overrides
        )
        result = PalletService(db).receive_pallet(data, actor or supervisor)
        return result.pallet
    return _make


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {AuthService.token_for_user(user)}"}
    return _headers
