"""
Tests de pagos, créditos y abonos.
"""
from decimal import Decimal

import pytest

from bodega.core.exceptions import InvalidAmount, InvalidStateTransition, PermissionDenied
from bodega.modules.credits.schemas import PaymentData, RepaymentMethod, RepaymentRequest
from bodega.modules.credits.service import CreditService, PaymentService, derive_payment_status
from bodega.modules.orders.schemas import OrderCreateRequest, OrderLineCreate
from bodega.modules.orders.service import OrderService
from bodega.shared.database.models import Credit, Order
from bodega.shared.schemas.common import CreditStatus, PaymentMethod, PaymentStatus

D = Decimal


class TestDerivePaymentStatus:
    @pytest.mark.parametrize("cash, credit, repaid, expected", [
        (D("0"), D("0"), D("0"), PaymentStatus.PENDING),
        (D("50"), D("0"), D("0"), PaymentStatus.PARTIAL),
        (D("100"), D("0"), D("0"), PaymentStatus.PAID),
        (D("0"), D("100"), D("0"), PaymentStatus.CREDIT),
        (D("0"), D("100"), D("40"), PaymentStatus.CREDIT),
        (D("0"), D("100"), D("100"), PaymentStatus.PAID),
        (D("60"), D("40"), D("40"), PaymentStatus.PAID),
        (D("20"), D("30"), D("0"), PaymentStatus.PARTIAL),
    ])
    def test_table(self, cash, credit, repaid, expected):
        assert derive_payment_status(D("100"), cash, credit, repaid) == expected

    def test_mixed_credit_uses_policy(self):
        assert derive_payment_status(D("100"), D("60"), D("40")) == PaymentStatus.CREDIT
        assert derive_payment_status(
            D("100"), D("60"), D("40"), mixed_status=PaymentStatus.PARTIAL.value
        ) == PaymentStatus.PARTIAL

    def test_zero_total(self):
        assert derive_payment_status(D("0"), D("0"), D("0")) == PaymentStatus.PENDING
        assert derive_payment_status(D("0"), D("10"), D("0")) == PaymentStatus.PAID


@pytest.fixture
def order(db, warehouse, customer, product, operator):
    data = OrderCreateRequest(
        warehouse_id=warehouse.id,
        customer_id=customer.id,
        lines=[OrderLineCreate(product_id=product.id, requested_quantity=10, unit_price=D("20"))]
    )
    return OrderService(db).create_order(data, operator).order


@pytest.fixture
def credit_for(db, operator):
    def _grant(order_id, amount):
        result = PaymentService(db).register_payments(
            order_id, [PaymentData(method=PaymentMethod.CREDIT, amount=amount)], operator
        )
        return db.get(Credit, result.credit_ids[0])
    return _grant


class TestPayments:
    def test_partial_then_paid(self, db, order, operator):
        service = PaymentService(db)

        first = service.register_payments(
            order.id, [PaymentData(method=PaymentMethod.CASH, amount=D("120"))], operator
        )
        assert first.payment_status == PaymentStatus.PARTIAL

        second = service.register_payments(
            order.id, [PaymentData(method=PaymentMethod.TRANSFER, amount=D("80"), reference="SPEI-991")],
            operator
        )
        assert second.payment_status == PaymentStatus.PAID

        payments = service.get_order_payments(order.id)
        assert payments.totals.cash == D("120")
        assert payments.totals.transfer == D("80")
        assert payments.totals.total == D("200")

    def test_credit_payment_creates_credit(self, db, order, customer, credit_for):
        credit = credit_for(order.id, D("200"))

        assert credit.customer_id == customer.id
        assert credit.status == CreditStatus.PENDING.value
        assert credit.pending_amount == D("200")
        assert db.get(Order, order.id).payment_status == PaymentStatus.CREDIT.value

    def test_operator_cannot_void(self, db, order, operator):
        result = PaymentService(db).register_payments(
            order.id, [PaymentData(method=PaymentMethod.CASH, amount=D("50"))], operator
        )

        with pytest.raises(PermissionDenied):
            PaymentService(db).void_payment(result.payments[0].id, operator)

    def test_void_credit_payment_removes_credit(self, db, order, supervisor, credit_for):
        credit = credit_for(order.id, D("200"))
        payment_id = credit.payment_id

        status = PaymentService(db).void_payment(payment_id, supervisor)

        assert status == PaymentStatus.PENDING
        assert db.query(Credit).count() == 0

    def test_cannot_void_credit_with_repayments(self, db, order, operator, supervisor, credit_for):
        credit = credit_for(order.id, D("200"))
        CreditService(db).register_repayment(
            credit.id, RepaymentRequest(method=RepaymentMethod.CASH, amount=D("50")), operator
        )

        with pytest.raises(InvalidStateTransition):
            PaymentService(db).void_payment(credit.payment_id, supervisor)


class TestRepayments:
    def test_partial_and_full_repayment(self, db, order, operator, credit_for):
        credit = credit_for(order.id, D("200"))
        service = CreditService(db)

        partial = service.register_repayment(
            credit.id, RepaymentRequest(method=RepaymentMethod.CASH, amount=D("50")), operator
        )
        assert partial.credit.status == CreditStatus.PARTIAL
        assert partial.credit.pending_amount == D("150")
        assert partial.order_payment_status == PaymentStatus.CREDIT

        full = service.register_repayment(
            credit.id, RepaymentRequest(method=RepaymentMethod.TRANSFER, amount=D("150")), operator
        )
        assert full.credit.status == CreditStatus.PAID
        assert full.credit.pending_amount == D("0")
        assert full.order_payment_status == PaymentStatus.PAID

        detail = service.get_credit(credit.id)
        assert len(detail.repayments) == 2

    def test_repayment_cannot_exceed_pending(self, db, order, operator, credit_for):
        credit = credit_for(order.id, D("200"))

        with pytest.raises(InvalidAmount):
            CreditService(db).register_repayment(
                credit.id, RepaymentRequest(method=RepaymentMethod.CASH, amount=D("200.01")), operator
            )

        assert db.get(Credit, credit.id).pending_amount == D("200")

    def test_paid_credit_rejects_repayments(self, db, order, operator, credit_for):
        credit = credit_for(order.id, D("200"))
        service = CreditService(db)
        service.register_repayment(
            credit.id, RepaymentRequest(method=RepaymentMethod.CASH, amount=D("200")), operator
        )

        with pytest.raises(InvalidStateTransition):
            service.register_repayment(
                credit.id, RepaymentRequest(method=RepaymentMethod.CASH, amount=D("1")), operator
            )


class TestCreditQueries:
    def test_summary_and_customer_credits(self, db, order, operator, customer, credit_for):
        credit = credit_for(order.id, D("120"))
        credit_for(order.id, D("80"))
        service = CreditService(db)
        service.register_repayment(
            credit.id, RepaymentRequest(method=RepaymentMethod.CASH, amount=D("120")), operator
        )

        summary = service.summary()
        assert summary.total_credits == 2
        assert summary.active_credits == 1
        assert summary.total_granted == D("200")
        assert summary.total_pending == D("80")
        assert summary.total_recovered == D("120")

        mine = service.customer_credits(customer.id)
        assert mine.total_paid == D("120")
        assert len(mine.credits) == 2

        pending = service.list_credits(status=CreditStatus.PENDING.value)
        assert pending.total == 1
