"""订单工作流：状态转换、库存副作用、失败不留痕"""

import pytest
from sqlalchemy import func, select

from dealerflow.core.exceptions import (
    ForbiddenError, InsufficientInventoryError, InvalidTransitionError, NotFoundError,
)
from dealerflow.models.order_flow import OrderFlow
from dealerflow.models.stock import StockFlow
from dealerflow.services.delivery_tracker import create_delivery, update_delivery_status
from dealerflow.services.inventory_ledger import AllocationLine, allocate
from dealerflow.services.order_workflow import allowed_actions_for, transition_order
from dealerflow.services.orders import get_order_or_404


async def _count(session, model) -> int:
    return (await session.execute(select(func.count(model.id)))).scalar()


class TestApproval:

    async def test_dealer_staff_cannot_confirm(self, db, demo, make_order):
        order_id = await make_order()
        with pytest.raises(ForbiddenError):
            await transition_order(db, order_id, demo["dealer_staff"], action="approve")

        order = await get_order_or_404(db, order_id, refresh=True)
        assert order.status == "new"
        assert [flow.to_status for flow in order.flows] == ["new"]

    async def test_dealer_manager_confirms(self, db, demo, make_order):
        order_id = await make_order()
        order = await transition_order(db, order_id, demo["dealer_manager"], action="approve", note="同意")

        assert order.status == "confirmed"
        assert order.confirmed_at is not None
        last = order.flows[-1]
        assert (last.action, last.from_status, last.to_status) == ("approve", "new", "confirmed")
        assert last.operator_id == demo["dealer_manager"].id
        assert last.notes == "同意"

    async def test_other_dealer_is_forbidden(self, db, demo, make_order):
        order_id = await make_order()
        with pytest.raises(ForbiddenError):
            await transition_order(db, order_id, demo["other_staff"], target_status="cancelled")

    async def test_missing_order(self, db, demo):
        with pytest.raises(NotFoundError):
            await transition_order(db, 9999, demo["dealer_manager"], action="approve")

    async def test_reject_stores_reason(self, db, demo, make_order):
        order_id = await make_order()
        order = await transition_order(db, order_id, demo["dealer_manager"], action="reject", note="客户放弃")
        assert order.status == "rejected"
        assert order.rejection_reason == "客户放弃"
        assert order.closed_at is not None

    async def test_invalid_transition_reports_current_status(self, db, demo, make_order):
        order_id = await make_order()
        with pytest.raises(InvalidTransitionError) as exc_info:
            await transition_order(db, order_id, demo["dealer_staff"], target_status="invoiced")
        assert exc_info.value.current_status == "new"


class TestAllocation:

    async def test_allocation_moves_stock_to_dealer(self, db, demo, make_order, stock_of):
        order_id = await make_order(quantity=3)
        await transition_order(db, order_id, demo["dealer_manager"], action="approve")
        order = await transition_order(db, order_id, demo["evm_staff"], action="allocate")

        assert order.status == "allocated"
        assert await stock_of(demo["manufacturer"]) == (2, 0)
        # 调入的车辆为该订单锁定
        assert await stock_of(demo["dealer"]) == (3, 3)
        meta = order.flows[-1].meta_data
        assert meta["from_owner_id"] == demo["manufacturer"].id
        assert meta["allocations"][0]["quantity"] == 3

    async def test_allocate_exactly_available(self, db, demo, make_order, stock_of, session_factory):
        # 先把厂商可用库存消耗到 3
        async with session_factory() as session:
            await allocate(session, demo["manufacturer"].id, demo["other_dealer"].id,
                           [AllocationLine(demo["variant"].id, demo["color"].id, 2)])
            await session.commit()

        order_id = await make_order(quantity=3)
        await transition_order(db, order_id, demo["dealer_manager"], action="approve")
        await transition_order(db, order_id, demo["evm_staff"], action="allocate")

        quantity, reserved = await stock_of(demo["manufacturer"])
        assert quantity - reserved == 0
        assert await stock_of(demo["dealer"]) == (3, 3)

    async def test_failed_allocation_changes_nothing(self, db, demo, make_order, stock_of, session_factory):
        async with session_factory() as session:
            await allocate(session, demo["manufacturer"].id, demo["other_dealer"].id,
                           [AllocationLine(demo["variant"].id, demo["color"].id, 3)])
            await session.commit()

        order_id = await make_order(quantity=3)
        await transition_order(db, order_id, demo["dealer_manager"], action="approve")

        stock_flows_before = await _count(db, StockFlow)
        order_flows_before = await _count(db, OrderFlow)
        manufacturer_before = await stock_of(demo["manufacturer"])
        dealer_before = await stock_of(demo["dealer"])

        with pytest.raises(InsufficientInventoryError) as exc_info:
            await transition_order(db, order_id, demo["evm_staff"], action="allocate")
        assert (exc_info.value.requested, exc_info.value.available) == (3, 2)
        assert exc_info.value.detail["code"] == "insufficient_inventory"

        order = await get_order_or_404(db, order_id, refresh=True)
        assert order.status == "confirmed"
        assert await stock_of(demo["manufacturer"]) == manufacturer_before
        assert await stock_of(demo["dealer"]) == dealer_before
        assert await _count(db, StockFlow) == stock_flows_before
        assert await _count(db, OrderFlow) == order_flows_before

    async def test_dealer_cannot_allocate(self, db, demo, make_order, stock_of):
        order_id = await make_order()
        await transition_order(db, order_id, demo["dealer_manager"], action="approve")
        with pytest.raises(ForbiddenError):
            await transition_order(db, order_id, demo["dealer_manager"], action="allocate")
        assert await stock_of(demo["manufacturer"]) == (5, 0)

    async def test_admin_can_allocate(self, db, demo, make_order):
        order_id = await make_order()
        await transition_order(db, order_id, demo["dealer_manager"], action="approve")
        order = await transition_order(db, order_id, demo["admin"], action="allocate")
        assert order.status == "allocated"

    async def test_evm_rejection_after_confirm_touches_no_stock(self, db, demo, make_order, stock_of):
        order_id = await make_order()
        await transition_order(db, order_id, demo["dealer_manager"], action="approve")
        order = await transition_order(db, order_id, demo["evm_staff"], action="reject_by_evm", note="停产")
        assert order.status == "rejected"
        assert order.rejection_reason == "停产"
        assert await stock_of(demo["manufacturer"]) == (5, 0)


class TestCancellation:

    async def test_cancel_allocated_releases_dealer_hold(self, db, demo, make_order, stock_of):
        order_id = await make_order(quantity=2)
        await transition_order(db, order_id, demo["dealer_manager"], action="approve")
        await transition_order(db, order_id, demo["evm_staff"], action="allocate")
        assert await stock_of(demo["dealer"]) == (2, 2)

        order = await transition_order(db, order_id, demo["dealer_staff"], target_status="cancelled")

        assert order.status == "cancelled"
        quantity, reserved = await stock_of(demo["dealer"])
        assert (quantity, reserved) == (2, 0)
        assert quantity - reserved == 2

    async def test_cancel_new_order(self, db, demo, make_order, stock_of):
        order_id = await make_order()
        order = await transition_order(db, order_id, demo["dealer_manager"], target_status="cancelled")
        assert order.status == "cancelled"
        assert await stock_of(demo["dealer"]) == (0, 0)

    async def test_cancelled_is_terminal(self, db, demo, make_order):
        order_id = await make_order()
        await transition_order(db, order_id, demo["dealer_manager"], target_status="cancelled")
        with pytest.raises(InvalidTransitionError) as exc_info:
            await transition_order(db, order_id, demo["dealer_manager"], action="approve")
        assert exc_info.value.current_status == "cancelled"

    async def test_cannot_cancel_once_delivery_started(self, db, demo, make_order, stock_of):
        order_id = await make_order(quantity=2)
        await transition_order(db, order_id, demo["dealer_manager"], action="approve")
        await transition_order(db, order_id, demo["evm_staff"], action="allocate")
        delivery = await create_delivery(db, order_id, demo["dealer_staff"])
        await update_delivery_status(db, delivery.id, "in_progress", demo["dealer_staff"])

        with pytest.raises(InvalidTransitionError) as exc_info:
            await transition_order(db, order_id, demo["dealer_manager"], target_status="cancelled")
        assert exc_info.value.current_status == "allocated"
        assert exc_info.value.detail["delivery_status"] == "in_progress"

        order = await get_order_or_404(db, order_id, refresh=True)
        assert order.status == "allocated"
        assert await stock_of(demo["dealer"]) == (2, 2)

    async def test_cannot_cancel_after_handover(self, db, demo, make_order, stock_of):
        order_id = await make_order(quantity=1)
        await transition_order(db, order_id, demo["dealer_manager"], action="approve")
        await transition_order(db, order_id, demo["evm_staff"], action="allocate")
        delivery = await create_delivery(db, order_id, demo["dealer_staff"])
        await update_delivery_status(db, delivery.id, "in_progress", demo["dealer_staff"])
        await update_delivery_status(db, delivery.id, "delivered", demo["dealer_staff"])

        flows_before = await _count(db, OrderFlow)
        with pytest.raises(InvalidTransitionError):
            await transition_order(db, order_id, demo["dealer_staff"], target_status="cancelled")

        assert await _count(db, OrderFlow) == flows_before
        assert await stock_of(demo["dealer"]) == (1, 1)

    async def test_pending_delivery_does_not_block_cancel(self, db, demo, make_order, stock_of):
        order_id = await make_order(quantity=1)
        await transition_order(db, order_id, demo["dealer_manager"], action="approve")
        await transition_order(db, order_id, demo["evm_staff"], action="allocate")
        await create_delivery(db, order_id, demo["dealer_staff"])

        order = await transition_order(db, order_id, demo["dealer_manager"], target_status="cancelled")
        assert order.status == "cancelled"
        assert await stock_of(demo["dealer"]) == (1, 0)
        assert exc_info.value.current_status == "cancelled"


async def test_full_fulfillment_scenario(db, demo, make_order, stock_of):
    order_id = await make_order(quantity=2, unit_price=10000)

    await transition_order(db, order_id, demo["dealer_manager"], action="approve")
    await transition_order(db, order_id, demo["evm_staff"], action="allocate")
    assert await stock_of(demo["manufacturer"]) == (3, 0)
    assert (await stock_of(demo["dealer"]))[0] == 2

    await transition_order(db, order_id, demo["dealer_staff"], target_status="invoiced")

    delivery = await create_delivery(db, order_id, demo["dealer_staff"], address="幸福小区 3 栋")
    assert delivery.status == "pending"
    await update_delivery_status(db, delivery.id, "in_progress", demo["dealer_staff"])
    delivery = await update_delivery_status(db, delivery.id, "delivered", demo["dealer_staff"])

    order = await get_order_or_404(db, order_id, refresh=True)
    assert order.status == "delivered"
    assert delivery.status == "delivered"
    assert order.delivery.status == "delivered"
    assert order.total_amount == 20000
    assert (await stock_of(demo["dealer"]))[0] == 2
    assert (await stock_of(demo["manufacturer"]))[0] == 3
    assert [flow.to_status for flow in order.flows] == [
        "new", "confirmed", "allocated", "invoiced", "delivered",
    ]


async def test_deliver_without_delivery_record_creates_one(db, demo, make_order):
    order_id = await make_order()
    await transition_order(db, order_id, demo["dealer_manager"], action="approve")
    await transition_order(db, order_id, demo["evm_staff"], action="allocate")
    await transition_order(db, order_id, demo["dealer_staff"], target_status="invoiced")

    order = await transition_order(db, order_id, demo["dealer_staff"], target_status="delivered")

    assert order.status == "delivered"
    assert order.delivery is not None
    assert order.delivery.status == "delivered"
    assert order.delivery.address == demo["customer"].address


async def test_allowed_actions_follow_role_and_dealer(db, demo, make_order):
    order_id = await make_order()
    order = await get_order_or_404(db, order_id)

    manager_actions = [a["action"] for a in allowed_actions_for(order, demo["dealer_manager"])]
    assert manager_actions == ["approve", "reject", "update_status"]
    assert allowed_actions_for(order, demo["dealer_staff"]) == []
    assert allowed_actions_for(order, demo["evm_staff"]) == []
    # 其他经销商看不到任何操作
    assert allowed_actions_for(order, demo["other_staff"]) == []
