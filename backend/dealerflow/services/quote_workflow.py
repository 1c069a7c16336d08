"""
报价工作流

draft → sent → accepted → converted，draft / sent → rejected
经理批准后由销售把报价转为订单（新订单状态 new，明细和总额沿用报价）
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dealerflow.core.exceptions import ForbiddenError, InvalidRequestError, NotFoundError
from dealerflow.core.permissions import DEALER_MANAGER, DEALER_STAFF, is_dealer_role
from dealerflow.models.entity import Entity
from dealerflow.models.quote import Quote, QuoteItem
from dealerflow.models.sales_order import SalesOrder
from dealerflow.services.audit import create_audit_log
from dealerflow.services.locks import atomic, quote_key, sequence_key
from dealerflow.services.numbering import ORDER_PREFIX, QUOTE_PREFIX, generate_no
from dealerflow.services.orders import create_order, ensure_dealer_scope, get_order_or_404
from dealerflow.services.workflow import Transition, TransitionTable

logger = logging.getLogger(__name__)

_MANAGER = frozenset({DEALER_MANAGER})
_STAFF = frozenset({DEALER_STAFF})

QUOTE_WORKFLOW = TransitionTable("报价", [
    Transition("draft", "sent", _STAFF, action="send"),
    Transition("draft", "accepted", _MANAGER, action="approve"),
    Transition("sent", "accepted", _MANAGER, action="approve"),
    Transition("draft", "rejected", _MANAGER, action="reject"),
    Transition("sent", "rejected", _MANAGER, action="reject"),
    Transition("accepted", "converted", _STAFF, action="convert"),
])


async def get_quote_or_404(db: AsyncSession, quote_id: int, refresh: bool = False) -> Quote:
    query = select(Quote).options(selectinload(Quote.items)).where(Quote.id == quote_id)
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    quote = result.scalar_one_or_none()
    if not quote:
        raise NotFoundError("报价单", quote_id)
    return quote


async def create_quote(
    db: AsyncSession,
    actor,
    customer_id: int,
    items: Iterable,
    discount: float = 0,
    fees: float = 0,
    total: Optional[float] = None,
    valid_until: Optional[datetime] = None,
    notes: Optional[str] = None) -> Quote:
    """
    保存报价（draft）

    报价金额由前端报价工具算好后提交；未提交 total 时按 小计 - 折扣 + 费用 计算。
    """
    if not is_dealer_role(actor.role) or actor.dealer_id is None:
        raise ForbiddenError(f"角色 {actor.role} 不能创建报价")

    items = list(items)
    if not items:
        raise InvalidRequestError("请提供至少一条报价明细")

    customer = await db.get(Entity, customer_id)
    if not customer or not customer.is_customer:
        raise NotFoundError("客户", customer_id)

    quote = Quote(
        customer_id=customer_id,
        dealer_id=actor.dealer_id,
        sales_id=actor.id,
        discount=Decimal(str(discount or 0)),
        fees=Decimal(str(fees or 0)),
        status="draft",
        valid_until=valid_until,
        notes=notes)

    subtotal = Decimal("0")
    for item_in in items:
        unit_price = Decimal(str(item_in.unit_price))
        quote.items.append(QuoteItem(
            variant_id=item_in.variant_id,
            color_id=item_in.color_id,
            quantity=item_in.quantity,
            unit_price=unit_price))
        subtotal += unit_price * item_in.quantity

    quote.subtotal = subtotal
    quote.total = Decimal(str(total)) if total is not None else subtotal - quote.discount + quote.fees

    async with atomic(db, [sequence_key(QUOTE_PREFIX)]):
        quote.quote_no = await generate_no(db, QUOTE_PREFIX)
        db.add(quote)
        await db.flush()
        await create_audit_log(
            db,
            user_id=actor.id,
            action="create",
            resource_type="quote",
            resource_id=quote.id,
            resource_name=quote.quote_no,
            description=f"创建报价 {quote.quote_no}，总额 {quote.total}",
            new_value={"status": "draft", "total": str(quote.total)},
        )

    logger.info(f"📝 报价 {quote.quote_no} 已创建")
    return await get_quote_or_404(db, quote.id, refresh=True)


async def transition_quote(
    db: AsyncSession,
    quote_id: int,
    action: str,
    actor,
    note: Optional[str] = None) -> Tuple[Quote, Optional[SalesOrder]]:
    """
    执行报价操作（send / approve / reject / convert）

    convert 时在同一事务内创建订单，返回 (报价, 新订单)；其他操作新订单为 None。
    """
    quote = await get_quote_or_404(db, quote_id)
    ensure_dealer_scope(quote.dealer_id, actor)

    keys = [quote_key(quote_id)]
    if action == "convert":
        keys.append(sequence_key(ORDER_PREFIX))

    order = None
    async with atomic(db, keys):
        quote = await get_quote_or_404(db, quote_id, refresh=True)
        current = quote.status
        target = QUOTE_WORKFLOW.target_for(current, action)
        QUOTE_WORKFLOW.resolve(current, target, actor.role)

        if target == "converted":
            order = await create_order(
                db,
                actor,
                customer_id=quote.customer_id,
                items=quote.items,
                notes=note or f"由报价 {quote.quote_no} 转入",
                quote_id=quote.id,
                total_amount=quote.total)

        quote.status = target
        await create_audit_log(
            db,
            user_id=actor.id,
            action="convert" if order else "status",
            resource_type="quote",
            resource_id=quote.id,
            resource_name=quote.quote_no,
            description=note or f"报价 {current} → {target}",
            old_value={"status": current},
            new_value={"status": target, "order_id": order.id} if order else {"status": target},
        )

    logger.info(f"✅ 报价 {quote.quote_no}: {current} → {target}（操作人 {actor.id}）")
    if order is not None:
        order = await get_order_or_404(db, order.id, refresh=True)
    return await get_quote_or_404(db, quote_id, refresh=True), order
