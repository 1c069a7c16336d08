"""
收款台账
- 经销商录入收款（pending），经销商经理确认或标记失败
- 只有 confirmed 的收款计入已收金额
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.core.exceptions import (
    ForbiddenError, InvalidRequestError, InvalidTransitionError, NotFoundError,
)
from dealerflow.core.permissions import DEALER_MANAGER, is_dealer_role
from dealerflow.models.payment import Payment
from dealerflow.services.audit import create_audit_log
from dealerflow.services.locks import atomic, order_key, sequence_key
from dealerflow.services.numbering import PAYMENT_PREFIX, generate_no
from dealerflow.services.orders import ensure_dealer_scope, get_order_or_404
from dealerflow.services.workflow import Transition, TransitionTable

logger = logging.getLogger(__name__)

PAYMENT_WORKFLOW = TransitionTable("收款", [
    Transition("pending", "confirmed", frozenset({DEALER_MANAGER}), action="confirm"),
    Transition("pending", "failed", frozenset({DEALER_MANAGER}), action="fail"),
])

PAYMENT_TYPES = ("deposit", "balance", "finance")
PAYMENT_METHODS = ("cash", "bank", "loan")

# 已关闭的订单不再收款
CLOSED_ORDER_STATUSES = ("cancelled", "rejected")


async def get_payment_or_404(db: AsyncSession, payment_id: int) -> Payment:
    result = await db.execute(
        select(Payment)
        .where(Payment.id == payment_id)
        .execution_options(populate_existing=True)
    )
    payment = result.scalar_one_or_none()
    if not payment:
        raise NotFoundError("收款记录", payment_id)
    return payment


async def list_order_payments(db: AsyncSession, order_id: int) -> List[Payment]:
    result = await db.execute(
        select(Payment).where(Payment.order_id == order_id).order_by(Payment.id)
    )
    return list(result.scalars().all())


async def create_payment(
    db: AsyncSession,
    order_id: int,
    actor,
    amount: Decimal,
    payment_type: str = "deposit",
    method: str = "bank",
    transaction_ref: Optional[str] = None,
    paid_at: Optional[datetime] = None,
    notes: Optional[str] = None) -> Payment:
    """录入一笔收款，状态为 pending"""
    if not is_dealer_role(actor.role):
        raise ForbiddenError(f"角色 {actor.role} 不能录入收款")
    if payment_type not in PAYMENT_TYPES:
        raise InvalidRequestError(f"不支持的收款类型: {payment_type}")
    if method not in PAYMENT_METHODS:
        raise InvalidRequestError(f"不支持的支付方式: {method}")

    order = await get_order_or_404(db, order_id)
    ensure_dealer_scope(order.dealer_id, actor)

    async with atomic(db, [order_key(order_id), sequence_key(PAYMENT_PREFIX)]):
        order = await get_order_or_404(db, order_id, refresh=True)
        if order.status in CLOSED_ORDER_STATUSES:
            raise InvalidTransitionError(
                f"订单 {order.order_no} 已{order.status_display}，不能再录入收款",
                current_status=order.status,
            )

        payment = Payment(
            payment_no=await generate_no(db, PAYMENT_PREFIX),
            order_id=order_id,
            payment_type=payment_type,
            method=method,
            amount=Decimal(str(amount)),
            status="pending",
            transaction_ref=transaction_ref,
            paid_at=paid_at or datetime.utcnow(),
            notes=notes,
            created_by=actor.id)
        db.add(payment)
        await db.flush()

        await create_audit_log(
            db,
            user_id=actor.id,
            action="create",
            resource_type="payment",
            resource_id=payment.id,
            resource_name=payment.payment_no,
            description=f"订单 {order.order_no} 录入{payment.type_display} {payment.amount}",
            new_value={"status": "pending", "amount": str(payment.amount)},
        )

    logger.info(f"💰 收款 {payment.payment_no} 已录入: 订单 {order.order_no}，金额 {payment.amount}")
    return payment


async def update_payment_status(
    db: AsyncSession,
    payment_id: int,
    status: str,
    actor,
    notes: Optional[str] = None) -> Payment:
    """确认收款或标记失败"""
    payment = await get_payment_or_404(db, payment_id)
    order = await get_order_or_404(db, payment.order_id)
    ensure_dealer_scope(order.dealer_id, actor)

    async with atomic(db, [order_key(order.id)]):
        payment = await get_payment_or_404(db, payment_id)
        old_status = payment.status
        PAYMENT_WORKFLOW.resolve(old_status, status, actor.role)

        payment.status = status
        if status == "confirmed":
            payment.confirmed_by = actor.id
        if notes:
            payment.notes = notes

        await create_audit_log(
            db,
            user_id=actor.id,
            action="status",
            resource_type="payment",
            resource_id=payment.id,
            resource_name=payment.payment_no,
            description=f"收款状态 {old_status} → {status}",
            old_value={"status": old_status},
            new_value={"status": status},
        )

    logger.info(f"💰 收款 {payment.payment_no}: {old_status} → {status}")
    return payment
