"""
交付跟踪
- 交付记录：pending → in_progress → delivered，仅经销商销售可操作
- 交付完成时，如果订单已开票，同一请求内推进订单到 delivered
- 订单 invoiced → delivered 的副作用也会完成（或补建）交付记录
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.core.exceptions import ForbiddenError, InvalidTransitionError, NotFoundError
from dealerflow.core.permissions import DEALER_STAFF, is_dealer_role
from dealerflow.models.delivery import Delivery
from dealerflow.models.sales_order import SalesOrder
from dealerflow.services.audit import create_audit_log
from dealerflow.services.locks import atomic, order_key
from dealerflow.services.orders import ensure_dealer_scope, get_order_or_404
from dealerflow.services.workflow import Transition, TransitionTable

logger = logging.getLogger(__name__)

DELIVERY_WORKFLOW = TransitionTable("交付", [
    Transition("pending", "in_progress", frozenset({DEALER_STAFF})),
    Transition("in_progress", "delivered", frozenset({DEALER_STAFF})),
])

# 订单到了这些状态才可以安排交付
DELIVERABLE_ORDER_STATUSES = ("allocated", "invoiced", "delivered")

# 已关闭的订单不再推进交付
CLOSED_ORDER_STATUSES = ("cancelled", "rejected")

# 交付处于这些状态时车辆已离店，订单不能再取消
HANDED_OVER_STATUSES = ("in_progress", "delivered")


async def get_delivery_for_order(db: AsyncSession, order_id: int) -> Optional[Delivery]:
    result = await db.execute(
        select(Delivery)
        .where(Delivery.order_id == order_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_delivery_or_404(db: AsyncSession, delivery_id: int) -> Delivery:
    result = await db.execute(
        select(Delivery)
        .where(Delivery.id == delivery_id)
        .execution_options(populate_existing=True)
    )
    delivery = result.scalar_one_or_none()
    if not delivery:
        raise NotFoundError("交付记录", delivery_id)
    return delivery


async def create_delivery(
    db: AsyncSession,
    order_id: int,
    actor,
    address: Optional[str] = None,
    scheduled_at: Optional[datetime] = None,
    notes: Optional[str] = None) -> Delivery:
    """为订单创建交付记录（每个订单最多一条）"""
    if not is_dealer_role(actor.role):
        raise ForbiddenError(f"角色 {actor.role} 不能安排交付")

    order = await get_order_or_404(db, order_id)
    ensure_dealer_scope(order.dealer_id, actor)

    async with atomic(db, [order_key(order_id)]):
        order = await get_order_or_404(db, order_id, refresh=True)
        if order.status not in DELIVERABLE_ORDER_STATUSES:
            raise InvalidTransitionError(
                f"订单 {order.order_no} 状态为 '{order.status}'，分配后才能安排交付",
                current_status=order.status,
            )
        if await get_delivery_for_order(db, order_id):
            raise InvalidTransitionError(
                f"订单 {order.order_no} 已有交付记录",
                current_status=order.status,
            )

        delivery = Delivery(
            order_id=order_id,
            address=address or (order.customer.address if order.customer else None),
            scheduled_at=scheduled_at,
            status="pending",
            notes=notes,
            created_by=actor.id)
        db.add(delivery)
        await db.flush()

        await create_audit_log(
            db,
            user_id=actor.id,
            action="create",
            resource_type="delivery",
            resource_id=delivery.id,
            resource_name=order.order_no,
            description=f"为订单 {order.order_no} 安排交付",
            new_value={"status": "pending", "address": delivery.address},
        )

    logger.info(f"📋 订单 {order.order_no} 已安排交付")
    return delivery


async def complete_for_order(
    db: AsyncSession,
    order: SalesOrder,
    actor,
    notes: Optional[str] = None) -> Delivery:
    """
    订单 invoiced → delivered 的副作用：完成交付记录，不存在时按客户地址补建

    在工作流引擎的事务内调用，不提交。
    """
    now = datetime.utcnow()
    delivery = await get_delivery_for_order(db, order.id)
    if delivery is None:
        delivery = Delivery(
            order_id=order.id,
            address=order.customer.address if order.customer else None,
            status="delivered",
            delivered_at=now,
            notes=notes,
            created_by=actor.id)
        db.add(delivery)
        await db.flush()
        old_status = None
    else:
        old_status = delivery.status
        delivery.status = "delivered"
        delivery.delivered_at = delivery.delivered_at or now
        if notes:
            delivery.notes = notes

    if old_status != "delivered":
        await create_audit_log(
            db,
            user_id=actor.id,
            action="status",
            resource_type="delivery",
            resource_id=delivery.id,
            resource_name=order.order_no,
            description=f"订单 {order.order_no} 交付完成",
            old_value={"status": old_status},
            new_value={"status": "delivered"},
        )
    return delivery


async def update_delivery_status(
    db: AsyncSession,
    delivery_id: int,
    status: str,
    actor,
    notes: Optional[str] = None) -> Delivery:
    """
    推进交付状态

    到达 delivered 时：订单已开票则通过工作流引擎把订单推进到 delivered（交付记录在同一事务内完成）；
    否则只更新交付记录，订单等开票后再交付。
    """
    from dealerflow.services.order_workflow import transition_order

    delivery = await get_delivery_or_404(db, delivery_id)
    order = await get_order_or_404(db, delivery.order_id)
    ensure_dealer_scope(order.dealer_id, actor)

    DELIVERY_WORKFLOW.resolve(delivery.status, status, actor.role)

    if status == "delivered" and order.status == "invoiced":
        await transition_order(db, order.id, actor, target_status="delivered", note=notes)
        return await get_delivery_or_404(db, delivery_id)

    async with atomic(db, [order_key(order.id)]):
        order = await get_order_or_404(db, order.id, refresh=True)
        if order.status in CLOSED_ORDER_STATUSES:
            raise InvalidTransitionError(
                f"订单 {order.order_no} 已{order.status_display}，交付不能再推进",
                current_status=order.status,
            )
        delivery = await get_delivery_or_404(db, delivery_id)
        old_status = delivery.status
        DELIVERY_WORKFLOW.resolve(old_status, status, actor.role)
        delivery.status = status
        if status == "delivered":
            delivery.delivered_at = datetime.utcnow()
        if notes:
            delivery.notes = notes
        await create_audit_log(
            db,
            user_id=actor.id,
            action="status",
            resource_type="delivery",
            resource_id=delivery.id,
            resource_name=order.order_no,
            description=f"交付状态 {old_status} → {status}",
            old_value={"status": old_status},
            new_value={"status": status},
        )

    logger.info(f"🚗 交付 {delivery_id}: {old_status} → {status}")
    return delivery
