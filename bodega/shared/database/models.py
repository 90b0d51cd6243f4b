# bodega/shared/database/models.py
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date, Text,
    Numeric, ForeignKey, Index, func
)
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from bodega.config.database import Base


def generate_id() -> str:
    return str(uuid.uuid4())


# =====================================================
# MIXIN PARA TIMESTAMPS
# =====================================================
class TimestampMixin:
    """Mixin que agrega campos created_at y updated_at"""
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, server_default=func.current_timestamp())
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow, server_default=func.current_timestamp())


# =====================================================
# CATÁLOGOS
# =====================================================

class Warehouse(Base, TimestampMixin):
    """Almacén (la distribuidora opera dos sedes)"""
    __tablename__ = "warehouses"

    id = Column(String(36), primary_key=True, default=generate_id)
    code = Column(String(20), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)

    locations = relationship("Location", back_populates="warehouse")
    pallets = relationship("Pallet", back_populates="warehouse")


class Location(Base, TimestampMixin):
    """Ubicación física dentro de un almacén"""
    __tablename__ = "locations"

    id = Column(String(36), primary_key=True, default=generate_id)
    warehouse_id = Column(String(36), ForeignKey("warehouses.id"), nullable=False, index=True)
    code = Column(String(50), nullable=False)
    name = Column(String(255))

    warehouse = relationship("Warehouse", back_populates="locations")


class Product(Base, TimestampMixin):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=generate_id)
    sku = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)


class Supplier(Base, TimestampMixin):
    __tablename__ = "suppliers"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)


class Customer(Base, TimestampMixin):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    company_name = Column(String(255))
    phone = Column(String(50))
    email = Column(String(255))

    credits = relationship("Credit", back_populates="customer")


class User(Base, TimestampMixin):
    """Usuario del sistema (OPERARIO, SUPERVISOR o ADMIN)"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    # Solo supervisores y administradores configuran PIN
    pin_hash = Column(String(255))
    role = Column(String(20), nullable=False, default="OPERARIO")
    is_active = Column(Boolean, default=True)


# =====================================================
# TARIMAS Y LEDGER DE EVENTOS
# =====================================================

class Pallet(Base, TimestampMixin):
    """
    Tarima. La cantidad física NO se almacena: se proyecta desde los eventos.
    El estado es derivado y se recalcula después de cada evento que afecta cantidad.
    """
    __tablename__ = "pallets"

    id = Column(String(36), primary_key=True, default=generate_id)
    qr_code = Column(String(100), unique=True, nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=False)
    warehouse_id = Column(String(36), ForeignKey("warehouses.id"), nullable=False, index=True)
    location_id = Column(String(36), ForeignKey("locations.id"))

    capacity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    deposit_per_container = Column(Numeric(12, 2), nullable=False, default=0)
    lot = Column(String(100))
    production_date = Column(Date)
    expiry_date = Column(Date)
    notes = Column(Text)

    status = Column(String(20), nullable=False, default="ACTIVA", index=True)
    received_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_event_at = Column(DateTime)

    # Bloqueo optimista: cada cambio de estado incrementa la versión
    version = Column(Integer, nullable=False, default=1)

    product = relationship("Product")
    supplier = relationship("Supplier")
    warehouse = relationship("Warehouse", back_populates="pallets")
    location = relationship("Location")
    events = relationship("PalletEvent", back_populates="pallet", order_by="PalletEvent.logical_timestamp")
    assignments = relationship("PickAssignment", back_populates="pallet")

    __mapper_args__ = {"version_id_col": version}


class PalletEvent(Base):
    """Evento inmutable del ledger de una tarima"""
    __tablename__ = "pallet_events"

    id = Column(String(36), primary_key=True, default=generate_id)
    pallet_id = Column(String(36), ForeignKey("pallets.id"), nullable=False, index=True)
    warehouse_id = Column(String(36), ForeignKey("warehouses.id"), nullable=False)
    type = Column(String(30), nullable=False)
    # Nulo en eventos de auditoría
    quantity = Column(Integer)

    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    user_role = Column(String(20), nullable=False)
    supervisor_id = Column(String(36), ForeignKey("users.id"))
    order_id = Column(String(36), ForeignKey("orders.id"))
    from_location_id = Column(String(36), ForeignKey("locations.id"))
    to_location_id = Column(String(36), ForeignKey("locations.id"))
    reason = Column(Text)

    logical_timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)
    sync_batch_id = Column(String(100), index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    pallet = relationship("Pallet", back_populates="events")
    user = relationship("User", foreign_keys=[user_id])
    supervisor = relationship("User", foreign_keys=[supervisor_id])

    __table_args__ = (
        Index("ix_pallet_events_pallet_ts", "pallet_id", "logical_timestamp"),
    )


# =====================================================
# PEDIDOS Y PICKING
# =====================================================

class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_id)
    number = Column(String(20), unique=True, nullable=False)
    warehouse_id = Column(String(36), ForeignKey("warehouses.id"), nullable=False, index=True)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False)
    notes = Column(Text)
    required_date = Column(Date)
    delivery_type = Column(String(20), nullable=False, default="RECOLECCION")

    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default="CREADO", index=True)
    payment_status = Column(String(20), nullable=False, default="PENDIENTE")
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    customer = relationship("Customer")
    lines = relationship("OrderLine", back_populates="order", order_by="OrderLine.created_at")
    payments = relationship("Payment", back_populates="order")
    credits = relationship("Credit", back_populates="order")


class OrderLine(Base, TimestampMixin):
    __tablename__ = "order_lines"

    id = Column(String(36), primary_key=True, default=generate_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"))
    requested_quantity = Column(Integer, nullable=False)
    fulfilled_quantity = Column(Integer, nullable=False, default=0)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    unit_cost = Column(Numeric(12, 2))
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)

    order = relationship("Order", back_populates="lines")
    product = relationship("Product")
    assignments = relationship("PickAssignment", back_populates="order_line")


class PickAssignment(Base, TimestampMixin):
    """Asignación de una tarima a una línea de pedido"""
    __tablename__ = "pick_assignments"

    id = Column(String(36), primary_key=True, default=generate_id)
    order_line_id = Column(String(36), ForeignKey("order_lines.id"), nullable=False, index=True)
    pallet_id = Column(String(36), ForeignKey("pallets.id"), nullable=False, index=True)
    assigned_quantity = Column(Integer, nullable=False)
    confirmed_quantity = Column(Integer)
    state = Column(String(20), nullable=False, default="ABIERTA", index=True)
    confirmed_by_id = Column(String(36), ForeignKey("users.id"))
    confirmed_at = Column(DateTime)

    order_line = relationship("OrderLine", back_populates="assignments")
    pallet = relationship("Pallet", back_populates="assignments")


# =====================================================
# PAGOS Y CRÉDITOS
# =====================================================

class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=generate_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    method = Column(String(20), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    reference = Column(String(255))
    notes = Column(Text)
    registered_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    order = relationship("Order", back_populates="payments")


class Credit(Base, TimestampMixin):
    __tablename__ = "credits"

    id = Column(String(36), primary_key=True, default=generate_id)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    payment_id = Column(String(36), ForeignKey("payments.id"))
    original_amount = Column(Numeric(12, 2), nullable=False)
    pending_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default="PENDIENTE", index=True)

    customer = relationship("Customer", back_populates="credits")
    order = relationship("Order", back_populates="credits")
    repayments = relationship("CreditPayment", back_populates="credit", order_by="CreditPayment.created_at")


class CreditPayment(Base, TimestampMixin):
    """Abono a un crédito"""
    __tablename__ = "credit_payments"

    id = Column(String(36), primary_key=True, default=generate_id)
    credit_id = Column(String(36), ForeignKey("credits.id"), nullable=False, index=True)
    method = Column(String(20), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    reference = Column(String(255))
    notes = Column(Text)
    registered_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    credit = relationship("Credit", back_populates="repayments")
