"""
统一查询层

报表、仪表盘、订单详情里的欠款都从这里取数：
- 欠款是读时计算的：订单总额 - 已确认收款合计
- 待办由转换表推导：当前角色可以推进的状态里有多少订单
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.core.permissions import is_dealer_role
from dealerflow.models.entity import Entity
from dealerflow.models.payment import Payment
from dealerflow.models.sales_order import ORDER_STATUSES, SalesOrder
from dealerflow.models.stock import Stock
from dealerflow.models.vehicle_request import VehicleRequest
from dealerflow.services.order_workflow import ORDER_WORKFLOW
from dealerflow.services.request_workflow import REQUEST_WORKFLOW

# 不计入欠款的订单状态
NON_BILLABLE_STATUSES = ("cancelled", "rejected")


def _scope_orders(query, actor):
    if is_dealer_role(actor.role):
        query = query.where(SalesOrder.dealer_id == actor.dealer_id)
    return query


def _paid_subquery():
    return (
        select(
            Payment.order_id.label("order_id"),
            func.coalesce(func.sum(Payment.amount), 0).label("paid"))
        .where(Payment.status == "confirmed")
        .group_by(Payment.order_id)
        .subquery()
    )


async def confirmed_paid(db: AsyncSession, order_id: int) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0))
        .where(and_(Payment.order_id == order_id, Payment.status == "confirmed"))
    )
    return Decimal(str(result.scalar() or 0))


async def order_debt(db: AsyncSession, order: SalesOrder) -> Dict[str, Any]:
    """单个订单的欠款"""
    total = Decimal(str(order.total_amount or 0))
    paid = await confirmed_paid(db, order.id)
    return {
        "order_id": order.id,
        "order_no": order.order_no,
        "total_amount": total,
        "paid_amount": paid,
        "debt": total - paid,
    }


async def debt_report(
    db: AsyncSession,
    actor,
    dealer_id: Optional[int] = None,
    only_outstanding: bool = True) -> Dict[str, Any]:
    """欠款报表：按订单列出，经销商侧用户只能看到本经销商"""
    paid = _paid_subquery()
    paid_amount = func.coalesce(paid.c.paid, 0)
    query = (
        select(SalesOrder, Entity.name, paid_amount)
        .join(Entity, SalesOrder.customer_id == Entity.id)
        .outerjoin(paid, paid.c.order_id == SalesOrder.id)
        .where(SalesOrder.status.notin_(NON_BILLABLE_STATUSES))
        .order_by(SalesOrder.id)
    )
    query = _scope_orders(query, actor)
    if dealer_id is not None:
        query = query.where(SalesOrder.dealer_id == dealer_id)

    result = await db.execute(query)
    rows: List[Dict[str, Any]] = []
    total_debt = Decimal("0")
    for order, customer_name, paid_value in result.all():
        total = Decimal(str(order.total_amount or 0))
        paid_decimal = Decimal(str(paid_value or 0))
        debt = total - paid_decimal
        if only_outstanding and debt <= 0:
            continue
        total_debt += debt
        rows.append({
            "order_id": order.id,
            "order_no": order.order_no,
            "dealer_id": order.dealer_id,
            "customer_id": order.customer_id,
            "customer_name": customer_name,
            "status": order.status,
            "total_amount": total,
            "paid_amount": paid_decimal,
            "debt": debt,
        })
    return {"data": rows, "total_debt": total_debt, "count": len(rows)}


async def status_counts(db: AsyncSession, actor) -> Dict[str, int]:
    """各状态订单数量（所有状态都列出，没有订单的为 0）"""
    query = select(SalesOrder.status, func.count(SalesOrder.id)).group_by(SalesOrder.status)
    query = _scope_orders(query, actor)
    result = await db.execute(query)
    counts = {status: 0 for status in ORDER_STATUSES}
    for status, count in result.all():
        counts[status] = count
    return counts


async def pending_tasks(db: AsyncSession, actor) -> Dict[str, int]:
    """当前角色的待办数量（由转换表推导）"""
    order_statuses = ORDER_WORKFLOW.actionable_statuses(actor.role)
    order_query = select(func.count(SalesOrder.id)).where(SalesOrder.status.in_(order_statuses))
    order_query = _scope_orders(order_query, actor)
    orders = (await db.execute(order_query)).scalar() or 0

    request_statuses = REQUEST_WORKFLOW.actionable_statuses(actor.role)
    request_query = select(func.count(VehicleRequest.id)).where(VehicleRequest.status.in_(request_statuses))
    if is_dealer_role(actor.role):
        request_query = request_query.where(VehicleRequest.dealer_id == actor.dealer_id)
    requests = (await db.execute(request_query)).scalar() or 0

    return {"orders": orders, "vehicle_requests": requests}


async def stock_summary(db: AsyncSession, actor) -> Dict[str, int]:
    """库存合计：经销商侧只看本经销商"""
    query = select(
        func.coalesce(func.sum(Stock.quantity), 0),
        func.coalesce(func.sum(Stock.reserved_quantity), 0))
    if is_dealer_role(actor.role):
        query = query.where(Stock.owner_id == actor.dealer_id)
    quantity, reserved = (await db.execute(query)).one()
    return {
        "quantity": int(quantity or 0),
        "reserved_quantity": int(reserved or 0),
        "available_quantity": int(quantity or 0) - int(reserved or 0),
    }


async def dashboard_summary(db: AsyncSession, actor) -> Dict[str, Any]:
    report = await debt_report(db, actor)
    return {
        "role": actor.role,
        "order_status_counts": await status_counts(db, actor),
        "pending_tasks": await pending_tasks(db, actor),
        "stock": await stock_summary(db, actor),
        "total_debt": report["total_debt"],
        "outstanding_orders": report["count"],
    }
