"""
订单状态变更操作模块
- 统一入口 POST /{order_id}/action，全部交给工作流引擎
- 可执行操作查询（前端据此渲染按钮）
- 订单欠款
"""

from typing import Any
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.core.deps import get_db, get_current_user
from dealerflow.models.user import User
from dealerflow.schemas.order import (
    OrderAction, OrderResponse, AllowedActionsResponse, OrderDebtResponse
)
from dealerflow.services.order_workflow import transition_order, allowed_actions_for
from dealerflow.services.orders import get_order_or_404, ensure_dealer_scope
from dealerflow.services.read_model import order_debt

from .core import build_order_response

router = APIRouter()


@router.post("/{order_id}/action", response_model=OrderResponse)
async def change_order_status(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    order_id: int,
    action_in: OrderAction) -> Any:
    """
    变更订单状态

    approve / reject（经销商经理）、allocate / reject_by_evm（厂商）、
    update_status（按转换表校验 status 字段指定的目标状态）
    """
    order = await transition_order(
        db,
        order_id,
        current_user,
        target_status=action_in.status,
        action=action_in.action,
        note=action_in.notes,
        expected_delivery=action_in.expected_delivery)
    return build_order_response(order)


@router.get("/{order_id}/allowed-actions", response_model=AllowedActionsResponse)
async def get_allowed_actions(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    order_id: int) -> Any:
    """当前用户对该订单可执行的操作"""
    order = await get_order_or_404(db, order_id)
    return AllowedActionsResponse(
        order_id=order.id,
        status=order.status,
        actions=allowed_actions_for(order, current_user)
    )


@router.get("/{order_id}/debt", response_model=OrderDebtResponse)
async def get_order_debt(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    order_id: int) -> Any:
    """订单欠款 = 订单总额 - 已确认收款"""
    order = await get_order_or_404(db, order_id)
    ensure_dealer_scope(order.dealer_id, current_user)
    return await order_debt(db, order)
