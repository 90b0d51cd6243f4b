from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Dict, List, Optional, Tuple
from decimal import Decimal
import logging

from bodega.core.exceptions import CreditNotFound, PaymentNotFound
from bodega.shared.database.models import Credit, CreditPayment, Payment
from bodega.shared.schemas.common import CreditStatus

logger = logging.getLogger(__name__)


class CreditRepository:
    """Pagos, créditos y abonos. Solo flush; la transacción la controla el servicio."""

    def __init__(self, db: Session):
        self.db = db

    # ==================== PAGOS ====================

    def create_payment(self, **fields) -> Payment:
        payment = Payment(**fields)
        self.db.add(payment)
        self.db.flush()
        return payment

    def get_payment(self, payment_id: str) -> Payment:
        payment = self.db.query(Payment).filter(Payment.id == payment_id).first()
        if not payment:
            raise PaymentNotFound(payment_id)
        return payment

    def get_order_payments(self, order_id: str) -> List[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.order_id == order_id)
            .order_by(Payment.created_at.desc())
            .all()
        )

    def delete_payment(self, payment: Payment):
        self.db.delete(payment)
        self.db.flush()

    # ==================== CRÉDITOS ====================

    def create_credit(self, **fields) -> Credit:
        credit = Credit(**fields)
        self.db.add(credit)
        self.db.flush()
        return credit

    def get_credit(self, credit_id: str, lock: bool = False) -> Credit:
        query = self.db.query(Credit).filter(Credit.id == credit_id)
        if lock:
            query = query.with_for_update()
        credit = query.first()
        if not credit:
            raise CreditNotFound(credit_id)
        return credit

    def get_order_credits(self, order_id: str) -> List[Credit]:
        return self.db.query(Credit).filter(Credit.order_id == order_id).all()

    def find_credit_for_payment(self, payment: Payment) -> Optional[Credit]:
        credit = self.db.query(Credit).filter(Credit.payment_id == payment.id).first()
        if credit:
            return credit
        # Créditos registrados sin enlace directo al pago
        return self.db.query(Credit).filter(
            Credit.order_id == payment.order_id,
            Credit.payment_id.is_(None),
            Credit.original_amount == payment.amount
        ).first()

    def delete_credit(self, credit: Credit):
        self.db.query(CreditPayment).filter(CreditPayment.credit_id == credit.id).delete()
        self.db.query(Credit).filter(Credit.id == credit.id).delete()
        self.db.flush()

    def list_credits(
        self,
        status: Optional[str] = None,
        customer_id: Optional[str] = None,
        page: int = 1,
        limit: int = 50
    ) -> Tuple[List[Credit], int]:
        query = self.db.query(Credit)
        if status:
            query = query.filter(Credit.status == status)
        if customer_id:
            query = query.filter(Credit.customer_id == customer_id)
        total = query.count()
        credits = (
            query.order_by(Credit.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return credits, total

    def get_customer_credits(self, customer_id: str) -> List[Credit]:
        return (
            self.db.query(Credit)
            .filter(Credit.customer_id == customer_id)
            .order_by(Credit.created_at.desc())
            .all()
        )

    def get_summary(self) -> Dict[str, object]:
        granted, pending, count = self.db.query(
            func.coalesce(func.sum(Credit.original_amount), 0),
            func.coalesce(func.sum(Credit.pending_amount), 0),
            func.count(Credit.id)
        ).one()
        active = self.db.query(Credit).filter(
            Credit.status.in_([CreditStatus.PENDING.value, CreditStatus.PARTIAL.value])
        ).count()
        return {
            "total_granted": Decimal(str(granted)),
            "total_pending": Decimal(str(pending)),
            "total_credits": int(count),
            "active_credits": active
        }

    # ==================== ABONOS ====================

    def create_repayment(self, **fields) -> CreditPayment:
        repayment = CreditPayment(**fields)
        self.db.add(repayment)
        self.db.flush()
        return repayment

    def get_repayments(self, credit_id: str) -> List[CreditPayment]:
        return (
            self.db.query(CreditPayment)
            .filter(CreditPayment.credit_id == credit_id)
            .order_by(CreditPayment.created_at.desc())
            .all()
        )
