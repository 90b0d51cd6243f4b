# bodega/modules/credits/service.py
from sqlalchemy.orm import Session
from typing import Iterable, List, Optional
from decimal import Decimal
import logging
import math

from .repository import CreditRepository
from .schemas import (
    PaymentData, PaymentResponse, PaymentTotals, OrderPaymentsResponse,
    PaymentRegisteredResponse, RepaymentRequest, RepaymentResponse,
    CreditResponse, CreditDetailResponse, RepaymentRegisteredResponse,
    CreditListResponse, CreditSummaryResponse, CustomerCreditsResponse
)
from bodega.config.settings import settings
from bodega.core.exceptions import InvalidAmount, InvalidStateTransition, OrderNotFound, PermissionDenied
from bodega.shared.database.models import Credit, Order, Payment, User
from bodega.shared.database.transaction import run_atomic
from bodega.shared.schemas.common import CreditStatus, PaymentMethod, PaymentStatus, Role

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def derive_payment_status(
    total: Decimal,
    non_credit_paid: Decimal,
    credit_granted: Decimal,
    credit_repaid: Decimal = ZERO,
    mixed_status: Optional[str] = None
) -> PaymentStatus:
    """
    Estado de pago de un pedido.

    Lo abonado a créditos cuenta como pagado. Un pedido cubierto solo con crédito
    pendiente queda CREDITO; si mezcla crédito pendiente con otros pagos, el
    estado lo decide mixed_status (setting mixed_credit_payment_status).
    """
    total = total or ZERO
    registered = non_credit_paid + credit_granted
    settled = non_credit_paid + credit_repaid
    outstanding_credit = credit_granted - credit_repaid

    if total <= ZERO:
        return PaymentStatus.PAID if registered > ZERO else PaymentStatus.PENDING

    if settled >= total:
        return PaymentStatus.PAID

    if registered >= total:
        if outstanding_credit > ZERO and non_credit_paid > ZERO:
            return PaymentStatus(mixed_status or settings.mixed_credit_payment_status)
        return PaymentStatus.CREDIT

    if registered > ZERO:
        return PaymentStatus.PARTIAL

    return PaymentStatus.PENDING


class PaymentService:
    """Pagos de pedidos. Los CREDITO generan además un crédito del cliente."""

    def __init__(self, db: Session):
        self.db = db
        self.repository = CreditRepository(db)

    def _get_order(self, order_id: str) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise OrderNotFound(order_id)
        return order

    def add_payments(self, order: Order, payments: Iterable[PaymentData], actor: User):
        """Registrar pagos dentro de la transacción en curso"""
        created: List[Payment] = []
        credits: List[Credit] = []
        for data in payments:
            payment = self.repository.create_payment(
                order_id=order.id,
                method=data.method.value,
                amount=data.amount,
                reference=data.reference,
                notes=data.notes,
                registered_by_id=actor.id
            )
            created.append(payment)

            if data.method == PaymentMethod.CREDIT:
                credit = self.repository.create_credit(
                    customer_id=order.customer_id,
                    order_id=order.id,
                    payment_id=payment.id,
                    original_amount=data.amount,
                    pending_amount=data.amount,
                    status=CreditStatus.PENDING.value
                )
                credits.append(credit)
                logger.info(f"Crédito {credit.id} otorgado por ${data.amount} (pedido {order.number})")

        return created, credits

    def recompute_payment_status(self, order: Order) -> PaymentStatus:
        non_credit = ZERO
        granted = ZERO
        for payment in self.repository.get_order_payments(order.id):
            if payment.method == PaymentMethod.CREDIT.value:
                granted += payment.amount
            else:
                non_credit += payment.amount

        repaid = sum(
            (credit.original_amount - credit.pending_amount for credit in self.repository.get_order_credits(order.id)),
            ZERO
        )
        status = derive_payment_status(order.total, non_credit, granted, repaid)
        order.payment_status = status.value
        self.db.flush()
        return status

    def register_payments(self, order_id: str, payments: List[PaymentData], actor: User) -> PaymentRegisteredResponse:
        def operation():
            order = self._get_order(order_id)
            created, credits = self.add_payments(order, payments, actor)
            status = self.recompute_payment_status(order)
            return PaymentRegisteredResponse(
                success=True,
                message=f"{len(created)} pagos registrados",
                payments=[PaymentResponse.model_validate(p) for p in created],
                payment_status=status,
                credit_ids=[c.id for c in credits]
            )

        return run_atomic(self.db, operation)

    def void_payment(self, payment_id: str, actor: User) -> PaymentStatus:
        """Anular un pago (no OPERARIO). Un pago CREDITO se lleva su crédito."""
        if actor.role == Role.OPERATOR.value:
            raise PermissionDenied("No tiene permisos para anular pagos", {"role": actor.role})

        def operation():
            payment = self.repository.get_payment(payment_id)
            order = self._get_order(payment.order_id)
            if payment.method == PaymentMethod.CREDIT.value:
                credit = self.repository.find_credit_for_payment(payment)
                if credit:
                    if credit.status != CreditStatus.PENDING.value:
                        raise InvalidStateTransition(
                            "No se puede anular un crédito con abonos registrados",
                            {"credit_id": credit.id, "status": credit.status}
                        )
                    self.repository.delete_credit(credit)
            self.repository.delete_payment(payment)
            return self.recompute_payment_status(order)

        status = run_atomic(self.db, operation)
        logger.warning(f"Pago {payment_id} anulado por {actor.id}")
        return status

    def get_order_payments(self, order_id: str) -> OrderPaymentsResponse:
        order = self._get_order(order_id)
        payments = self.repository.get_order_payments(order_id)
        totals = PaymentTotals()
        field_by_method = {
            PaymentMethod.CASH.value: "cash",
            PaymentMethod.TRANSFER.value: "transfer",
            PaymentMethod.CARD.value: "card",
            PaymentMethod.CREDIT.value: "credit",
        }
        for payment in payments:
            field = field_by_method[payment.method]
            setattr(totals, field, getattr(totals, field) + payment.amount)
            totals.total += payment.amount

        return OrderPaymentsResponse(
            success=True,
            order_id=order_id,
            payment_status=order.payment_status,
            payments=[PaymentResponse.model_validate(p) for p in payments],
            totals=totals
        )


class CreditService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = CreditRepository(db)
        self.payments = PaymentService(db)

    def _detail(self, credit: Credit) -> CreditDetailResponse:
        detail = CreditDetailResponse.model_validate(credit)
        detail.repayments = [
            RepaymentResponse.model_validate(r) for r in self.repository.get_repayments(credit.id)
        ]
        return detail

    def register_repayment(self, credit_id: str, data: RepaymentRequest, actor: User) -> RepaymentRegisteredResponse:
        """
        Registrar un abono.

        No se aceptan abonos a créditos PAGADOS ni mayores al saldo pendiente.
        El crédito queda PAGADO al llegar a 0, PARCIAL en otro caso.
        """
        def operation():
            credit = self.repository.get_credit(credit_id, lock=True)
            if credit.status == CreditStatus.PAID.value:
                raise InvalidStateTransition("Este crédito ya está pagado", {"status": credit.status})
            if data.amount > credit.pending_amount:
                raise InvalidAmount(
                    f"El monto del abono (${data.amount}) excede el saldo pendiente (${credit.pending_amount})",
                    {"pending": str(credit.pending_amount)}
                )

            repayment = self.repository.create_repayment(
                credit_id=credit.id,
                method=data.method.value,
                amount=data.amount,
                reference=data.reference,
                notes=data.notes,
                registered_by_id=actor.id
            )
            credit.pending_amount = credit.pending_amount - data.amount
            credit.status = (
                CreditStatus.PAID.value if credit.pending_amount <= ZERO else CreditStatus.PARTIAL.value
            )
            self.db.flush()

            order_status = self.payments.recompute_payment_status(credit.order)
            return RepaymentRegisteredResponse(
                success=True,
                message="Abono registrado",
                repayment=RepaymentResponse.model_validate(repayment),
                credit=CreditResponse.model_validate(credit),
                order_payment_status=order_status
            )

        result = run_atomic(self.db, operation)
        logger.info(f"Abono de ${data.amount} al crédito {credit_id} por {actor.id}")
        return result

    def get_credit(self, credit_id: str) -> CreditDetailResponse:
        return self._detail(self.repository.get_credit(credit_id))

    def list_credits(
        self,
        status: Optional[str] = None,
        customer_id: Optional[str] = None,
        page: int = 1,
        limit: int = 50
    ) -> CreditListResponse:
        credits, total = self.repository.list_credits(status, customer_id, page, limit)
        return CreditListResponse(
            success=True,
            credits=[CreditResponse.model_validate(c) for c in credits],
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if total else 0
        )

    def customer_credits(self, customer_id: str) -> CustomerCreditsResponse:
        credits = self.repository.get_customer_credits(customer_id)
        granted = sum((c.original_amount for c in credits), ZERO)
        pending = sum((c.pending_amount for c in credits), ZERO)
        return CustomerCreditsResponse(
            success=True,
            customer_id=customer_id,
            credits=[self._detail(c) for c in credits],
            total_granted=granted,
            total_pending=pending,
            total_paid=granted - pending
        )

    def summary(self) -> CreditSummaryResponse:
        totals = self.repository.get_summary()
        return CreditSummaryResponse(
            success=True,
            total_granted=totals["total_granted"],
            total_pending=totals["total_pending"],
            total_recovered=totals["total_granted"] - totals["total_pending"],
            active_credits=totals["active_credits"],
            total_credits=totals["total_credits"]
        )
