"""收款管理API"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.core.deps import get_db, get_current_user
from dealerflow.models.payment import Payment
from dealerflow.models.sales_order import SalesOrder
from dealerflow.models.user import User
from dealerflow.schemas.payment import (
    PaymentCreate, PaymentStatusUpdate, PaymentResponse, PaymentListResponse, OrderPaymentsResponse
)
from dealerflow.api.api_v1.endpoints.orders.core import scope_order_query
from dealerflow.services import payment_ledger
from dealerflow.services.orders import get_order_or_404, ensure_dealer_scope
from dealerflow.services.read_model import order_debt

router = APIRouter()


def build_payment_response(payment: Payment) -> PaymentResponse:
    """构建收款响应"""
    return PaymentResponse(
        id=payment.id,
        payment_no=payment.payment_no,
        order_id=payment.order_id,
        payment_type=payment.payment_type,
        type_display=payment.type_display,
        method=payment.method,
        method_display=payment.method_display,
        amount=float(payment.amount or 0),
        status=payment.status,
        transaction_ref=payment.transaction_ref,
        paid_at=payment.paid_at,
        notes=payment.notes,
        created_by=payment.created_by,
        confirmed_by=payment.confirmed_by,
        created_at=payment.created_at
    )


@router.get("/", response_model=PaymentListResponse)
async def list_payments(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    order_id: Optional[int] = Query(None),
    payment_type: Optional[str] = Query(None)) -> Any:
    """获取收款列表（经销商侧只看本经销商订单的收款）"""
    conditions = []
    if status:
        conditions.append(Payment.status == status)
    if order_id:
        conditions.append(Payment.order_id == order_id)
    if payment_type:
        conditions.append(Payment.payment_type == payment_type)

    query = scope_order_query(
        select(Payment).join(SalesOrder, SalesOrder.id == Payment.order_id), current_user)
    count_query = scope_order_query(
        select(func.count(Payment.id)).join(SalesOrder, SalesOrder.id == Payment.order_id), current_user)
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar() or 0

    query = query.order_by(Payment.id.desc())
    query = query.offset((page - 1) * limit).limit(limit)
    payments = (await db.execute(query)).scalars().all()

    return PaymentListResponse(
        data=[build_payment_response(p) for p in payments],
        total=total,
        page=page,
        limit=limit
    )


@router.post("/", response_model=PaymentResponse)
async def create_payment(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    payment_in: PaymentCreate) -> Any:
    """录入收款（待确认）"""
    payment = await payment_ledger.create_payment(
        db,
        payment_in.order_id,
        current_user,
        amount=payment_in.amount,
        payment_type=payment_in.payment_type,
        method=payment_in.method,
        transaction_ref=payment_in.transaction_ref,
        paid_at=payment_in.paid_at,
        notes=payment_in.notes)
    return build_payment_response(payment)


@router.put("/{payment_id}/status", response_model=PaymentResponse)
async def update_payment_status(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    payment_id: int,
    status_in: PaymentStatusUpdate) -> Any:
    """确认收款或标记失败（经销商经理）"""
    payment = await payment_ledger.update_payment_status(
        db, payment_id, status_in.status, current_user, notes=status_in.notes)
    return build_payment_response(payment)


@router.get("/order/{order_id}", response_model=OrderPaymentsResponse)
async def list_order_payments(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    order_id: int) -> Any:
    """订单的全部收款及欠款"""
    order = await get_order_or_404(db, order_id)
    ensure_dealer_scope(order.dealer_id, current_user)
    payments = await payment_ledger.list_order_payments(db, order_id)
    debt = await order_debt(db, order)
    return OrderPaymentsResponse(
        order_id=order_id,
        data=[build_payment_response(p) for p in payments],
        total_amount=float(debt["total_amount"]),
        paid_amount=float(debt["paid_amount"]),
        debt=float(debt["debt"])
    )
