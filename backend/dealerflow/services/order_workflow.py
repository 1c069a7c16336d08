"""
订单工作流引擎

所有订单状态变更的唯一入口：
1. 校验 (当前状态, 目标状态, 角色) 是否在转换表中
2. 在订单和相关库存键的锁内执行副作用（分配 / 释放 / 完成交付）
3. 写入状态、时间戳和流程记录，然后一次提交

任何一步失败都整体回滚，调用方看到的订单与库存都保持原样。
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.core.config import settings
from dealerflow.core.exceptions import InvalidTransitionError, NotFoundError
from dealerflow.core.permissions import DEALER_MANAGER, DEALER_STAFF, EVM_ROLES, is_dealer_role
from dealerflow.models.entity import Entity
from dealerflow.models.order_flow import OrderFlow
from dealerflow.models.sales_order import SalesOrder
from dealerflow.services.inventory_ledger import allocate, allocation_lock_keys, release_lines
from dealerflow.services.locks import atomic, order_key
from dealerflow.services.orders import ensure_dealer_scope, get_order_or_404, order_lines
from dealerflow.services.workflow import UPDATE_STATUS, Transition, TransitionTable

logger = logging.getLogger(__name__)

# 副作用名称
EFFECT_ALLOCATE = "allocate"
EFFECT_RELEASE = "release"
EFFECT_COMPLETE_DELIVERY = "complete_delivery"
STOCK_EFFECTS = frozenset({EFFECT_ALLOCATE, EFFECT_RELEASE})

_MANAGER = frozenset({DEALER_MANAGER})
_STAFF = frozenset({DEALER_STAFF})

ORDER_WORKFLOW = TransitionTable("订单", [
    Transition("new", "confirmed", _MANAGER, action="approve"),
    Transition("new", "rejected", _MANAGER, action="reject"),
    Transition("new", "cancelled", _MANAGER),
    Transition("confirmed", "allocated", EVM_ROLES, action="allocate", effect=EFFECT_ALLOCATE),
    Transition("confirmed", "rejected", EVM_ROLES, action="reject_by_evm"),
    Transition("allocated", "invoiced", _STAFF),
    Transition("allocated", "cancelled", _STAFF, effect=EFFECT_RELEASE),
    Transition("invoiced", "delivered", _STAFF, effect=EFFECT_COMPLETE_DELIVERY),
])

# 进入某状态时记录的时间戳字段
_STATUS_TIMESTAMPS = {
    "confirmed": "confirmed_at",
    "allocated": "allocated_at",
    "invoiced": "invoiced_at",
    "delivered": "delivered_at",
    "cancelled": "closed_at",
    "rejected": "closed_at",
}


async def get_manufacturer(db: AsyncSession) -> Entity:
    """厂商实体（库存分配的来源池）"""
    result = await db.execute(
        select(Entity).where(
            Entity.code == settings.MANUFACTURER_CODE,
            Entity.entity_type == "manufacturer",
        )
    )
    manufacturer = result.scalar_one_or_none()
    if not manufacturer:
        raise NotFoundError("厂商", settings.MANUFACTURER_CODE)
    return manufacturer


def _touches_stock(action: str, target_status: Optional[str]) -> bool:
    """这次请求可能命中的转换里是否有库存副作用"""
    for transition in ORDER_WORKFLOW.transitions:
        if transition.effect not in STOCK_EFFECTS:
            continue
        if action == UPDATE_STATUS and transition.target == target_status:
            return True
        if transition.action == action:
            return True
    return False


async def _ensure_not_handed_over(db: AsyncSession, order: SalesOrder) -> None:
    """车辆已在交付途中或已交付的订单不能取消"""
    from dealerflow.services.delivery_tracker import HANDED_OVER_STATUSES, get_delivery_for_order
    delivery = await get_delivery_for_order(db, order.id)
    if delivery is not None and delivery.status in HANDED_OVER_STATUSES:
        raise InvalidTransitionError(
            f"订单 {order.order_no} 的交付状态为 '{delivery.status}'，不能取消",
            current_status=order.status,
            delivery_status=delivery.status,
        )


async def _apply_effect(
    db: AsyncSession,
    order: SalesOrder,
    transition: Transition,
    actor,
    manufacturer: Optional[Entity],
    note: Optional[str]) -> Dict[str, Any]:
    """执行转换的副作用，返回写入流程记录的扩展数据"""
    if transition.effect == EFFECT_ALLOCATE:
        allocations = await allocate(
            db,
            from_owner_id=manufacturer.id,
            to_owner_id=order.dealer_id,
            lines=order_lines(order),
            operator_id=actor.id,
            order_id=order.id,
            reason=f"订单 {order.order_no} 分配",
            hold_at_destination=True)
        return {
            "from_owner_id": manufacturer.id,
            "to_owner_id": order.dealer_id,
            "allocations": allocations,
        }

    if transition.effect == EFFECT_RELEASE:
        await _ensure_not_handed_over(db, order)
        await release_lines(
            db, order.dealer_id, order_lines(order),
            operator_id=actor.id, order_id=order.id,
            reason=f"订单 {order.order_no} 取消，释放预留")
        return {"released_owner_id": order.dealer_id}

    if transition.effect == EFFECT_COMPLETE_DELIVERY:
        # 交付模块反过来会调用本模块，这里延迟导入
        from dealerflow.services.delivery_tracker import complete_for_order
        delivery = await complete_for_order(db, order, actor, notes=note)
        return {"delivery_id": delivery.id}

    return {}


async def transition_order(
    db: AsyncSession,
    order_id: int,
    actor,
    target_status: Optional[str] = None,
    action: str = UPDATE_STATUS,
    note: Optional[str] = None,
    expected_delivery: Optional[datetime] = None) -> SalesOrder:
    """
    执行一次订单状态转换

    action 为专用操作名（approve / reject / allocate / reject_by_evm）时由转换表给出目标状态，
    为 update_status 时使用 target_status。

    Raises:
        NotFoundError: 订单或厂商不存在
        ForbiddenError: 角色不允许，或经销商侧用户操作其他经销商的订单
        InvalidTransitionError: 当前状态不允许该转换
        InsufficientInventoryError: 分配时可用库存不足
    """
    order = await get_order_or_404(db, order_id)
    ensure_dealer_scope(order.dealer_id, actor)

    keys: List = [order_key(order.id)]
    manufacturer = None
    if _touches_stock(action, target_status):
        manufacturer = await get_manufacturer(db)
        keys.extend(allocation_lock_keys([manufacturer.id, order.dealer_id], order_lines(order)))

    async with atomic(db, keys):
        # 锁内重新读取，以拿到其他请求已提交的状态
        order = await get_order_or_404(db, order_id, refresh=True)
        current = order.status
        target = ORDER_WORKFLOW.target_for(current, action, target_status)
        transition = ORDER_WORKFLOW.resolve(current, target, actor.role)
        meta = await _apply_effect(db, order, transition, actor, manufacturer, note)

        now = datetime.utcnow()
        order.status = target
        setattr(order, _STATUS_TIMESTAMPS[target], now)
        if target == "rejected":
            order.rejection_reason = note
        if target == "allocated" and expected_delivery is not None:
            order.expected_delivery = expected_delivery
            meta["expected_delivery"] = expected_delivery.isoformat()

        order.flows.append(OrderFlow(
            action=action if action != UPDATE_STATUS else transition.action,
            from_status=current,
            to_status=target,
            notes=note,
            meta_data=meta,
            operator_id=actor.id,
            operated_at=now))

    logger.info(f"✅ 订单 {order.order_no}: {current} → {target}（操作人 {actor.id}）")
    return await get_order_or_404(db, order_id, refresh=True)


def allowed_actions_for(order: SalesOrder, actor) -> List[Dict[str, str]]:
    """当前用户对该订单可执行的操作（前端据此渲染按钮）"""
    if is_dealer_role(actor.role) and actor.dealer_id != order.dealer_id:
        return []
    return [
        {"action": t.action, "target_status": t.target}
        for t in ORDER_WORKFLOW.allowed_transitions(order.status, actor.role)
    ]
