"""交付跟踪与收款台账"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from dealerflow.core.exceptions import (
    ForbiddenError, InvalidRequestError, InvalidTransitionError, NotFoundError,
)
from dealerflow.models.audit_log import AuditLog
from dealerflow.models.delivery import Delivery
from dealerflow.services.delivery_tracker import create_delivery, update_delivery_status
from dealerflow.services.order_workflow import transition_order
from dealerflow.services.orders import get_order_or_404
from dealerflow.services.payment_ledger import create_payment, update_payment_status
from dealerflow.services.read_model import debt_report, order_debt


@pytest.fixture
def allocated_order(db, demo, make_order):
    async def _make(quantity: int = 2) -> int:
        order_id = await make_order(quantity=quantity)
        await transition_order(db, order_id, demo["dealer_manager"], action="approve")
        await transition_order(db, order_id, demo["evm_staff"], action="allocate")
        return order_id
    return _make


class TestDelivery:

    async def test_cannot_schedule_before_allocation(self, db, demo, make_order):
        order_id = await make_order()
        with pytest.raises(InvalidTransitionError) as exc_info:
            await create_delivery(db, order_id, demo["dealer_staff"])
        assert exc_info.value.current_status == "new"

    async def test_defaults_to_customer_address(self, db, demo, allocated_order):
        order_id = await allocated_order()
        delivery = await create_delivery(db, order_id, demo["dealer_staff"])
        assert delivery.address == demo["customer"].address
        assert delivery.status == "pending"

    async def test_one_delivery_per_order(self, db, demo, allocated_order):
        order_id = await allocated_order()
        await create_delivery(db, order_id, demo["dealer_staff"])
        with pytest.raises(InvalidTransitionError):
            await create_delivery(db, order_id, demo["dealer_manager"])

    async def test_evm_cannot_schedule(self, db, demo, allocated_order):
        order_id = await allocated_order()
        with pytest.raises(ForbiddenError):
            await create_delivery(db, order_id, demo["evm_staff"])

    async def test_manager_cannot_advance(self, db, demo, allocated_order):
        order_id = await allocated_order()
        delivery = await create_delivery(db, order_id, demo["dealer_staff"])
        with pytest.raises(ForbiddenError):
            await update_delivery_status(db, delivery.id, "in_progress", demo["dealer_manager"])

    async def test_cannot_skip_in_progress(self, db, demo, allocated_order):
        order_id = await allocated_order()
        delivery = await create_delivery(db, order_id, demo["dealer_staff"])
        with pytest.raises(InvalidTransitionError):
            await update_delivery_status(db, delivery.id, "delivered", demo["dealer_staff"])

    async def test_delivered_before_invoice_leaves_order_allocated(self, db, demo, allocated_order):
        order_id = await allocated_order()
        delivery = await create_delivery(db, order_id, demo["dealer_staff"])
        await update_delivery_status(db, delivery.id, "in_progress", demo["dealer_staff"])
        delivery = await update_delivery_status(db, delivery.id, "delivered", demo["dealer_staff"])

        assert delivery.status == "delivered"
        assert delivery.delivered_at is not None
        order = await get_order_or_404(db, order_id, refresh=True)
        assert order.status == "allocated"

        # 开票后再交付，已完成的交付记录保持不变
        await transition_order(db, order_id, demo["dealer_staff"], target_status="invoiced")
        order = await transition_order(db, order_id, demo["dealer_staff"], target_status="delivered")
        assert order.status == "delivered"
        assert order.delivery.id == delivery.id

    async def test_cancelled_order_freezes_delivery(self, db, demo, allocated_order):
        order_id = await allocated_order()
        delivery = await create_delivery(db, order_id, demo["dealer_staff"])
        await transition_order(db, order_id, demo["dealer_manager"], target_status="cancelled")

        with pytest.raises(InvalidTransitionError) as exc_info:
            await update_delivery_status(db, delivery.id, "in_progress", demo["dealer_staff"])
        assert exc_info.value.current_status == "cancelled"

        result = await db.execute(select(Delivery).where(Delivery.id == delivery.id))
        assert result.scalar_one().status == "pending"

    async def test_missing_delivery(self, db, demo):
        with pytest.raises(NotFoundError):
            await update_delivery_status(db, 404, "in_progress", demo["dealer_staff"])

    async def test_delivery_changes_are_audited(self, db, demo, allocated_order):
        order_id = await allocated_order()
        delivery = await create_delivery(db, order_id, demo["dealer_staff"])
        await update_delivery_status(db, delivery.id, "in_progress", demo["dealer_staff"])

        result = await db.execute(
            select(AuditLog).where(AuditLog.resource_type == "delivery").order_by(AuditLog.id)
        )
        actions = [log.action for log in result.scalars().all()]
        assert actions == ["create", "status"]


class TestPayments:

    async def test_debt_counts_only_confirmed(self, db, demo, make_order):
        order_id = await make_order(quantity=2, unit_price=10000)

        deposit = await create_payment(db, order_id, demo["dealer_staff"], amount=Decimal("5000"))
        failed = await create_payment(db, order_id, demo["dealer_staff"], amount=Decimal("3000"),
                                      payment_type="balance", method="cash")
        await create_payment(db, order_id, demo["dealer_staff"], amount=Decimal("1000"))

        assert deposit.status == "pending"
        assert deposit.payment_no != failed.payment_no

        await update_payment_status(db, deposit.id, "confirmed", demo["dealer_manager"])
        await update_payment_status(db, failed.id, "failed", demo["dealer_manager"])

        order = await get_order_or_404(db, order_id, refresh=True)
        debt = await order_debt(db, order)
        assert debt["total_amount"] == Decimal("20000")
        assert debt["paid_amount"] == Decimal("5000")
        assert debt["debt"] == Decimal("15000")

    async def test_staff_cannot_confirm(self, db, demo, make_order):
        order_id = await make_order()
        payment = await create_payment(db, order_id, demo["dealer_staff"], amount=Decimal("100"))
        with pytest.raises(ForbiddenError):
            await update_payment_status(db, payment.id, "confirmed", demo["dealer_staff"])

    async def test_confirmed_is_terminal(self, db, demo, make_order):
        order_id = await make_order()
        payment = await create_payment(db, order_id, demo["dealer_staff"], amount=Decimal("100"))
        payment = await update_payment_status(db, payment.id, "confirmed", demo["dealer_manager"])
        assert payment.confirmed_by == demo["dealer_manager"].id
        with pytest.raises(InvalidTransitionError):
            await update_payment_status(db, payment.id, "failed", demo["dealer_manager"])

    async def test_no_payment_on_cancelled_order(self, db, demo, make_order):
        order_id = await make_order()
        await transition_order(db, order_id, demo["dealer_manager"], target_status="cancelled")
        with pytest.raises(InvalidTransitionError) as exc_info:
            await create_payment(db, order_id, demo["dealer_staff"], amount=Decimal("100"))
        assert exc_info.value.current_status == "cancelled"

    async def test_unknown_type_or_method_is_bad_request(self, db, demo, make_order):
        order_id = await make_order()
        with pytest.raises(InvalidRequestError) as exc_info:
            await create_payment(db, order_id, demo["dealer_staff"], amount=Decimal("100"), payment_type="gift")
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail["code"] == "invalid_request"

        with pytest.raises(InvalidRequestError):
            await create_payment(db, order_id, demo["dealer_staff"], amount=Decimal("100"), method="cheque")

    async def test_other_dealer_cannot_record(self, db, demo, make_order):
        order_id = await make_order()
        with pytest.raises(ForbiddenError):
            await create_payment(db, order_id, demo["other_staff"], amount=Decimal("100"))

    async def test_debt_report_scoped_to_dealer(self, db, demo, make_order):
        first = await make_order(quantity=1, unit_price=30000)
        second = await make_order(quantity=1, unit_price=20000)
        payment = await create_payment(db, second, demo["dealer_staff"], amount=Decimal("20000"))
        await update_payment_status(db, payment.id, "confirmed", demo["dealer_manager"])

        report = await debt_report(db, demo["dealer_manager"])
        assert [row["order_id"] for row in report["data"]] == [first]
        assert report["total_debt"] == Decimal("30000")

        full = await debt_report(db, demo["dealer_manager"], only_outstanding=False)
        assert full["count"] == 2

        assert (await debt_report(db, demo["other_staff"]))["count"] == 0
        assert (await debt_report(db, demo["evm_staff"]))["count"] == 1
