"""
订单读写
- 基础查询、加载
- 创建订单（销售下单或报价转订单）
- 经销商数据隔离
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dealerflow.core.exceptions import ForbiddenError, InvalidRequestError, NotFoundError
from dealerflow.core.permissions import is_dealer_role
from dealerflow.models.entity import Entity
from dealerflow.models.order_flow import OrderFlow
from dealerflow.models.order_item import OrderItem
from dealerflow.models.sales_order import SalesOrder
from dealerflow.models.vehicle import VehicleColor, VehicleVariant
from dealerflow.services.inventory_ledger import AllocationLine
from dealerflow.services.locks import atomic, sequence_key
from dealerflow.services.numbering import ORDER_PREFIX, generate_no


def base_order_query():
    """构建包含常用关联关系的基础查询"""
    return select(SalesOrder).options(
        selectinload(SalesOrder.customer),
        selectinload(SalesOrder.dealer),
        selectinload(SalesOrder.items).selectinload(OrderItem.variant),
        selectinload(SalesOrder.items).selectinload(OrderItem.color),
        selectinload(SalesOrder.flows),
        selectinload(SalesOrder.delivery),
        selectinload(SalesOrder.payments))


async def load_order(db: AsyncSession, order_id: int, refresh: bool = False) -> Optional[SalesOrder]:
    """加载包含关联的订单；refresh 为 True 时忽略会话缓存"""
    query = base_order_query().where(SalesOrder.id == order_id)
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_order_or_404(db: AsyncSession, order_id: int, refresh: bool = False) -> SalesOrder:
    order = await load_order(db, order_id, refresh=refresh)
    if not order:
        raise NotFoundError("订单", order_id)
    return order


def ensure_dealer_scope(dealer_id: int, actor) -> None:
    """经销商侧用户只能操作本经销商的数据"""
    if is_dealer_role(actor.role) and actor.dealer_id != dealer_id:
        raise ForbiddenError(
            f"用户 {actor.id} 不属于经销商 {dealer_id}",
            dealer_id=dealer_id,
        )


def order_lines(order: SalesOrder) -> List[AllocationLine]:
    return [AllocationLine(item.variant_id, item.color_id, item.quantity) for item in order.items]


async def _check_catalog(db: AsyncSession, variant_id: int, color_id: Optional[int]) -> None:
    if not await db.get(VehicleVariant, variant_id):
        raise NotFoundError("车型", variant_id)
    if color_id is not None and not await db.get(VehicleColor, color_id):
        raise NotFoundError("颜色", color_id)


async def create_order(
    db: AsyncSession,
    actor,
    customer_id: int,
    items: Iterable,
    payment_method: str = "cash",
    deposit: float = 0,
    expected_delivery: Optional[datetime] = None,
    notes: Optional[str] = None,
    quote_id: Optional[int] = None,
    total_amount: Optional[Decimal] = None) -> SalesOrder:
    """
    创建订单（状态 new），调用方负责提交

    items 的每一项需要 variant_id / color_id / quantity / unit_price；
    total_amount 为空时按明细合计，报价转订单时沿用报价总额。
    需要在 sequence_key(ORDER_PREFIX) 的锁内调用（见 submit_order）。
    """
    if not is_dealer_role(actor.role) or actor.dealer_id is None:
        raise ForbiddenError(f"角色 {actor.role} 不能创建订单")

    items = list(items)
    if not items:
        raise InvalidRequestError("请提供至少一条车辆明细")

    customer = await db.get(Entity, customer_id)
    if not customer or not customer.is_customer:
        raise NotFoundError("客户", customer_id)

    order = SalesOrder(
        order_no=await generate_no(db, ORDER_PREFIX),
        customer_id=customer_id,
        dealer_id=actor.dealer_id,
        sales_id=actor.id,
        quote_id=quote_id,
        payment_method=payment_method,
        deposit=Decimal(str(deposit or 0)),
        expected_delivery=expected_delivery,
        status="new",
        notes=notes)

    for item_in in items:
        await _check_catalog(db, item_in.variant_id, item_in.color_id)
        unit_price = Decimal(str(item_in.unit_price))
        order.items.append(OrderItem(
            variant_id=item_in.variant_id,
            color_id=item_in.color_id,
            quantity=item_in.quantity,
            unit_price=unit_price,
            amount=unit_price * item_in.quantity))

    if total_amount is None:
        order.recalculate_totals()
    else:
        order.total_amount = total_amount

    order.flows.append(OrderFlow(
        action="created",
        from_status=None,
        to_status="new",
        notes=notes,
        meta_data={"quote_id": quote_id} if quote_id else {},
        operator_id=actor.id,
        operated_at=datetime.utcnow()))
    db.add(order)
    await db.flush()
    return order


async def submit_order(db: AsyncSession, actor, customer_id: int, items: Iterable, **kwargs) -> SalesOrder:
    """销售下单：在单号锁内创建并提交，返回带关联的订单"""
    async with atomic(db, [sequence_key(ORDER_PREFIX)]):
        order = await create_order(db, actor, customer_id=customer_id, items=items, **kwargs)
    return await get_order_or_404(db, order.id, refresh=True)
