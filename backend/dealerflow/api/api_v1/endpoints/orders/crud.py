"""
订单创建与查询
订单没有删除接口，取消/驳回是终态
"""

from typing import Any, Optional
from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.core.deps import get_db, get_current_user
from dealerflow.models.sales_order import SalesOrder
from dealerflow.models.user import User
from dealerflow.schemas.order import OrderCreate, OrderResponse, OrderListResponse
from dealerflow.services import orders as order_service

from .core import build_order_response, scope_order_query

router = APIRouter()


@router.get("/", response_model=OrderListResponse)
async def list_orders(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    customer_id: Optional[int] = Query(None),
    dealer_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None)) -> Any:
    """获取订单列表"""
    conditions = []
    if status:
        conditions.append(SalesOrder.status == status)
    if customer_id:
        conditions.append(SalesOrder.customer_id == customer_id)
    if dealer_id:
        conditions.append(SalesOrder.dealer_id == dealer_id)
    if search:
        conditions.append(SalesOrder.order_no.contains(search))
    if start_date:
        conditions.append(SalesOrder.created_at >= datetime.strptime(start_date, "%Y-%m-%d"))
    if end_date:
        conditions.append(SalesOrder.created_at <= datetime.strptime(end_date, "%Y-%m-%d"))

    query = scope_order_query(order_service.base_order_query(), current_user)
    count_query = scope_order_query(select(func.count(SalesOrder.id)), current_user)
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar() or 0

    query = query.order_by(SalesOrder.id.desc())
    query = query.offset((page - 1) * limit).limit(limit)
    result = await db.execute(query)
    orders = result.scalars().unique().all()

    return OrderListResponse(
        data=[build_order_response(o) for o in orders],
        total=total,
        page=page,
        limit=limit
    )


@router.post("/", response_model=OrderResponse)
async def create_order(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    order_in: OrderCreate) -> Any:
    """创建订单（经销商侧用户，状态 new）"""
    order = await order_service.submit_order(
        db,
        current_user,
        customer_id=order_in.customer_id,
        items=order_in.items,
        payment_method=order_in.payment_method,
        deposit=order_in.deposit,
        expected_delivery=order_in.expected_delivery,
        notes=order_in.notes)
    return build_order_response(order)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    order_id: int) -> Any:
    """获取订单详情"""
    order = await order_service.get_order_or_404(db, order_id)
    order_service.ensure_dealer_scope(order.dealer_id, current_user)
    return build_order_response(order)
