"""
库存查询API（只读）
库存只能通过订单分配/取消和调车申请审批变动，这里不提供修改接口
"""

from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dealerflow.core.deps import get_db, get_current_user
from dealerflow.core.exceptions import NotFoundError
from dealerflow.core.permissions import is_dealer_role
from dealerflow.models.stock import Stock, StockFlow
from dealerflow.models.user import User
from dealerflow.schemas.stock import StockResponse, StockListResponse, StockFlowResponse
from dealerflow.services.inventory_ledger import get_stock
from dealerflow.services.orders import ensure_dealer_scope

router = APIRouter()


def build_stock_response(stock: Stock) -> StockResponse:
    """构建库存响应"""
    return StockResponse(
        id=stock.id,
        owner_id=stock.owner_id,
        variant_id=stock.variant_id,
        color_id=stock.color_id,
        quantity=stock.quantity,
        reserved_quantity=stock.reserved_quantity,
        available_quantity=stock.available_quantity,
        location=stock.location,
        updated_at=stock.updated_at,
        owner_name=stock.owner.name if stock.owner else "",
        owner_type=stock.owner.entity_type if stock.owner else "",
        variant_name=stock.variant.display_name if stock.variant else "",
        color_name=stock.color.name if stock.color else ""
    )


def _stock_query():
    return select(Stock).options(
        selectinload(Stock.owner),
        selectinload(Stock.variant),
        selectinload(Stock.color))


@router.get("/", response_model=StockListResponse)
async def list_stocks(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    owner_id: Optional[int] = Query(None),
    variant_id: Optional[int] = Query(None),
    color_id: Optional[int] = Query(None),
    available_only: bool = Query(False)) -> Any:
    """获取库存列表；经销商侧用户只能看到本经销商的库存"""
    conditions = []
    if is_dealer_role(current_user.role):
        conditions.append(Stock.owner_id == current_user.dealer_id)
    if owner_id:
        conditions.append(Stock.owner_id == owner_id)
    if variant_id:
        conditions.append(Stock.variant_id == variant_id)
    if color_id:
        conditions.append(Stock.color_id == color_id)
    if available_only:
        conditions.append(Stock.quantity > Stock.reserved_quantity)

    query = _stock_query()
    count_query = select(func.count(Stock.id))
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(query.order_by(Stock.owner_id, Stock.variant_id, Stock.color_id))
    stocks = result.scalars().all()

    return StockListResponse(
        data=[build_stock_response(s) for s in stocks],
        total=total
    )


@router.get("/lookup", response_model=StockResponse)
async def lookup_stock(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    owner_id: int = Query(...),
    variant_id: int = Query(...),
    color_id: Optional[int] = Query(None)) -> Any:
    """按 (归属方, 车型, 颜色) 查询单条库存"""
    ensure_dealer_scope(owner_id, current_user)
    stock = await get_stock(db, owner_id, variant_id, color_id)
    if not stock:
        raise NotFoundError("库存", f"{owner_id}/{variant_id}/{color_id}")
    result = await db.execute(_stock_query().where(Stock.id == stock.id))
    return build_stock_response(result.scalar_one())


@router.get("/{stock_id}/flows", response_model=List[StockFlowResponse])
async def list_stock_flows(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    stock_id: int,
    limit: int = Query(50, ge=1, le=500)) -> Any:
    """库存流水（最新在前）"""
    stock = await db.get(Stock, stock_id)
    if not stock:
        raise NotFoundError("库存", stock_id)
    ensure_dealer_scope(stock.owner_id, current_user)

    result = await db.execute(
        select(StockFlow)
        .where(StockFlow.stock_id == stock_id)
        .order_by(StockFlow.id.desc())
        .limit(limit)
    )
    return [
        StockFlowResponse(
            id=flow.id,
            stock_id=flow.stock_id,
            order_id=flow.order_id,
            request_id=flow.request_id,
            flow_type=flow.flow_type,
            type_display=flow.type_display,
            quantity_change=flow.quantity_change,
            reserved_change=flow.reserved_change,
            quantity_after=flow.quantity_after,
            reserved_after=flow.reserved_after,
            reason=flow.reason,
            operator_id=flow.operator_id,
            operated_at=flow.operated_at)
        for flow in result.scalars().all()
    ]
