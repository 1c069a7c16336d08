"""交付管理API"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.core.deps import get_db, get_current_user
from dealerflow.core.exceptions import NotFoundError
from dealerflow.models.delivery import Delivery
from dealerflow.models.sales_order import SalesOrder
from dealerflow.models.user import User
from dealerflow.schemas.delivery import (
    DeliveryCreate, DeliveryStatusUpdate, DeliveryResponse, DeliveryListResponse
)
from dealerflow.api.api_v1.endpoints.orders.core import scope_order_query
from dealerflow.services import delivery_tracker
from dealerflow.services.orders import get_order_or_404, ensure_dealer_scope

router = APIRouter()


def build_delivery_response(delivery: Delivery, order_status: str = None) -> DeliveryResponse:
    """构建交付响应"""
    return DeliveryResponse(
        id=delivery.id,
        order_id=delivery.order_id,
        address=delivery.address,
        scheduled_at=delivery.scheduled_at,
        status=delivery.status,
        status_display=delivery.status_display,
        delivered_at=delivery.delivered_at,
        notes=delivery.notes,
        created_by=delivery.created_by,
        created_at=delivery.created_at,
        order_status=order_status
    )


@router.get("/", response_model=DeliveryListResponse)
async def list_deliveries(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    order_id: Optional[int] = Query(None)) -> Any:
    """获取交付列表（经销商侧只看本经销商订单的交付）"""
    conditions = []
    if status:
        conditions.append(Delivery.status == status)
    if order_id:
        conditions.append(Delivery.order_id == order_id)

    query = scope_order_query(
        select(Delivery, SalesOrder.status).join(SalesOrder, SalesOrder.id == Delivery.order_id), current_user)
    count_query = scope_order_query(
        select(func.count(Delivery.id)).join(SalesOrder, SalesOrder.id == Delivery.order_id), current_user)
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar() or 0

    query = query.order_by(Delivery.id.desc())
    query = query.offset((page - 1) * limit).limit(limit)
    rows = (await db.execute(query)).all()

    return DeliveryListResponse(
        data=[build_delivery_response(delivery, order_status) for delivery, order_status in rows],
        total=total,
        page=page,
        limit=limit
    )


@router.post("/", response_model=DeliveryResponse)
async def create_delivery(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    delivery_in: DeliveryCreate) -> Any:
    """为已分配的订单安排交付"""
    delivery = await delivery_tracker.create_delivery(
        db,
        delivery_in.order_id,
        current_user,
        address=delivery_in.address,
        scheduled_at=delivery_in.scheduled_at,
        notes=delivery_in.notes)
    order = await get_order_or_404(db, delivery.order_id, refresh=True)
    return build_delivery_response(delivery, order.status)


@router.get("/order/{order_id}", response_model=DeliveryResponse)
async def get_order_delivery(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    order_id: int) -> Any:
    """获取订单的交付记录"""
    order = await get_order_or_404(db, order_id)
    ensure_dealer_scope(order.dealer_id, current_user)
    delivery = await delivery_tracker.get_delivery_for_order(db, order_id)
    if not delivery:
        raise NotFoundError("交付记录", f"order={order_id}")
    return build_delivery_response(delivery, order.status)


@router.put("/{delivery_id}/status", response_model=DeliveryResponse)
async def update_delivery_status(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    delivery_id: int,
    status_in: DeliveryStatusUpdate) -> Any:
    """
    推进交付状态
    交付完成且订单已开票时，订单同时变为已交付
    """
    delivery = await delivery_tracker.update_delivery_status(
        db, delivery_id, status_in.status, current_user, notes=status_in.notes)
    order = await get_order_or_404(db, delivery.order_id, refresh=True)
    return build_delivery_response(delivery, order.status)
