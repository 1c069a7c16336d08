"""报价管理API"""

from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dealerflow.core.deps import get_db, get_current_user
from dealerflow.core.permissions import is_dealer_role
from dealerflow.models.quote import Quote
from dealerflow.models.user import User
from dealerflow.schemas.quote import (
    QuoteCreate, QuoteAction, QuoteResponse, QuoteItemResponse, QuoteActionResponse
)
from dealerflow.services import quote_workflow
from dealerflow.services.orders import ensure_dealer_scope

from dealerflow.api.api_v1.endpoints.orders.core import build_order_response

router = APIRouter()


def build_quote_response(quote: Quote) -> QuoteResponse:
    """构建报价响应"""
    return QuoteResponse(
        id=quote.id,
        quote_no=quote.quote_no,
        customer_id=quote.customer_id,
        dealer_id=quote.dealer_id,
        sales_id=quote.sales_id,
        subtotal=float(quote.subtotal or 0),
        discount=float(quote.discount or 0),
        fees=float(quote.fees or 0),
        total=float(quote.total or 0),
        status=quote.status,
        status_display=quote.status_display,
        valid_until=quote.valid_until,
        notes=quote.notes,
        created_at=quote.created_at,
        items=[
            QuoteItemResponse(
                id=item.id,
                quote_id=item.quote_id,
                variant_id=item.variant_id,
                color_id=item.color_id,
                quantity=item.quantity,
                unit_price=float(item.unit_price or 0))
            for item in quote.items
        ]
    )


@router.get("/", response_model=List[QuoteResponse])
async def list_quotes(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    status: Optional[str] = Query(None)) -> Any:
    """报价列表"""
    query = select(Quote).options(selectinload(Quote.items))
    if is_dealer_role(current_user.role):
        query = query.where(Quote.dealer_id == current_user.dealer_id)
    if status:
        query = query.where(Quote.status == status)
    result = await db.execute(query.order_by(Quote.id.desc()))
    return [build_quote_response(q) for q in result.scalars().unique().all()]


@router.post("/", response_model=QuoteResponse)
async def create_quote(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    quote_in: QuoteCreate) -> Any:
    """保存报价（草稿）"""
    quote = await quote_workflow.create_quote(
        db,
        current_user,
        customer_id=quote_in.customer_id,
        items=quote_in.items,
        discount=quote_in.discount,
        fees=quote_in.fees,
        total=quote_in.total,
        valid_until=quote_in.valid_until,
        notes=quote_in.notes)
    return build_quote_response(quote)


@router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    quote_id: int) -> Any:
    quote = await quote_workflow.get_quote_or_404(db, quote_id)
    ensure_dealer_scope(quote.dealer_id, current_user)
    return build_quote_response(quote)


@router.post("/{quote_id}/action", response_model=QuoteActionResponse)
async def change_quote_status(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    quote_id: int,
    action_in: QuoteAction) -> Any:
    """发送 / 批准 / 驳回 / 转订单"""
    quote, order = await quote_workflow.transition_quote(
        db, quote_id, action_in.action, current_user, note=action_in.notes)
    return QuoteActionResponse(
        quote=build_quote_response(quote),
        order=build_order_response(order) if order else None
    )
