"""
库存台账
- 入库、预留、释放、调拨
- 分配（预留 + 调拨）：订单分配和调车申请审批共用，全部成功或全部不变
- 每次变动都记录库存流水

并发约定：调用方必须在 services.locks.atomic() 内调用这些函数，
锁的键由 allocation_lock_keys() 给出；函数本身不提交事务。
"""

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.core.exceptions import InsufficientInventoryError
from dealerflow.models.stock import Stock, StockFlow
from dealerflow.services.locks import stock_key

logger = logging.getLogger(__name__)


class AllocationLine(NamedTuple):
    """一行分配需求"""
    variant_id: int
    color_id: Optional[int]
    quantity: int


def aggregate_lines(lines: Iterable[AllocationLine]) -> "OrderedDict[Tuple[int, Optional[int]], int]":
    """按 (车型, 颜色) 合并需求数量，同一 SKU 多行时按总量校验"""
    demand: "OrderedDict[Tuple[int, Optional[int]], int]" = OrderedDict()
    for line in lines:
        key = (line.variant_id, line.color_id)
        demand[key] = demand.get(key, 0) + line.quantity
    return demand


def allocation_lock_keys(owner_ids: Iterable[int], lines: Iterable[AllocationLine]) -> List[Tuple]:
    """分配涉及的全部库存键"""
    lines = list(lines)
    return [
        stock_key(owner_id, line.variant_id, line.color_id)
        for owner_id in owner_ids
        for line in lines
    ]


async def get_stock(
    db: AsyncSession,
    owner_id: int,
    variant_id: int,
    color_id: Optional[int],
    for_update: bool = False) -> Optional[Stock]:
    """读取库存记录（总是从数据库重新加载，不使用会话缓存）"""
    # 先落库本事务内未提交的变动，否则 populate_existing 会用旧值覆盖它们
    await db.flush()
    conditions = [
        Stock.owner_id == owner_id,
        Stock.variant_id == variant_id,
    ]
    if color_id is not None:
        conditions.append(Stock.color_id == color_id)
    else:
        conditions.append(Stock.color_id.is_(None))

    query = select(Stock).where(and_(*conditions)).execution_options(populate_existing=True)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_or_create_stock(
    db: AsyncSession,
    owner_id: int,
    variant_id: int,
    color_id: Optional[int]) -> Stock:
    """获取或创建库存记录"""
    stock = await get_stock(db, owner_id, variant_id, color_id, for_update=True)
    if not stock:
        stock = Stock(
            owner_id=owner_id,
            variant_id=variant_id,
            color_id=color_id,
            quantity=0,
            reserved_quantity=0)
        db.add(stock)
        await db.flush()
    return stock


def _record_flow(
    db: AsyncSession,
    stock: Stock,
    flow_type: str,
    quantity_change: int,
    reserved_change: int,
    operator_id: Optional[int],
    order_id: Optional[int],
    request_id: Optional[int],
    reason: Optional[str]) -> StockFlow:
    flow = StockFlow(
        stock_id=stock.id,
        order_id=order_id,
        request_id=request_id,
        flow_type=flow_type,
        quantity_change=quantity_change,
        reserved_change=reserved_change,
        quantity_after=stock.quantity,
        reserved_after=stock.reserved_quantity,
        reason=reason,
        operator_id=operator_id,
        operated_at=datetime.utcnow())
    db.add(flow)
    return flow


def _check_quantity(quantity: int) -> None:
    if quantity <= 0:
        raise ValueError(f"库存变动数量必须为正数: {quantity}")


async def receive_stock(
    db: AsyncSession,
    owner_id: int,
    variant_id: int,
    color_id: Optional[int],
    quantity: int,
    operator_id: Optional[int] = None,
    reason: Optional[str] = None) -> Stock:
    """入库（车辆下线或期初库存）"""
    _check_quantity(quantity)
    stock = await get_or_create_stock(db, owner_id, variant_id, color_id)
    stock.quantity += quantity
    _record_flow(db, stock, "in", quantity, 0, operator_id, None, None, reason or "入库")
    return stock


async def reserve_stock(
    db: AsyncSession,
    owner_id: int,
    variant_id: int,
    color_id: Optional[int],
    quantity: int,
    operator_id: Optional[int] = None,
    order_id: Optional[int] = None,
    request_id: Optional[int] = None,
    reason: Optional[str] = None) -> Stock:
    """预留库存：可用数量不足时抛出 InsufficientInventoryError"""
    _check_quantity(quantity)
    stock = await get_stock(db, owner_id, variant_id, color_id, for_update=True)
    available = stock.available_quantity if stock else 0
    if stock is None or available < quantity:
        raise InsufficientInventoryError(variant_id, color_id, quantity, available, owner_id=owner_id)

    stock.reserved_quantity += quantity
    _record_flow(db, stock, "reserve", 0, quantity, operator_id, order_id, request_id,
                 reason or f"预留库存 {quantity}")
    return stock


async def release_stock(
    db: AsyncSession,
    owner_id: int,
    variant_id: int,
    color_id: Optional[int],
    quantity: int,
    operator_id: Optional[int] = None,
    order_id: Optional[int] = None,
    request_id: Optional[int] = None,
    reason: Optional[str] = None) -> Optional[Stock]:
    """释放预留库存，预留数量不会被减到负数"""
    _check_quantity(quantity)
    stock = await get_stock(db, owner_id, variant_id, color_id, for_update=True)
    if stock is None:
        logger.warning(f"释放预留时库存记录不存在: owner={owner_id} variant={variant_id} color={color_id}")
        return None

    release = min(stock.reserved_quantity, quantity)
    if release < quantity:
        logger.warning(
            f"释放预留数量超过已预留: owner={owner_id} variant={variant_id} color={color_id} "
            f"预留 {stock.reserved_quantity}，请求释放 {quantity}"
        )
    stock.reserved_quantity -= release
    _record_flow(db, stock, "release", 0, -release, operator_id, order_id, request_id,
                 reason or f"释放预留 {release}")
    return stock


async def transfer_stock(
    db: AsyncSession,
    from_owner_id: int,
    to_owner_id: int,
    variant_id: int,
    color_id: Optional[int],
    quantity: int,
    operator_id: Optional[int] = None,
    order_id: Optional[int] = None,
    request_id: Optional[int] = None,
    reason: Optional[str] = None,
    hold_at_destination: bool = False) -> Tuple[Stock, Stock]:
    """
    调拨已预留的库存

    来源：quantity -= n，reserved -= n；目标：quantity += n（记录不存在时创建）。
    hold_at_destination 为 True 时，调入的车辆在目标方继续保持预留（给具体订单锁定）。
    """
    _check_quantity(quantity)
    source = await get_stock(db, from_owner_id, variant_id, color_id, for_update=True)
    if source is None or source.reserved_quantity < quantity or source.quantity < quantity:
        available = source.reserved_quantity if source else 0
        raise InsufficientInventoryError(variant_id, color_id, quantity, available, owner_id=from_owner_id)

    target = await get_or_create_stock(db, to_owner_id, variant_id, color_id)

    source.quantity -= quantity
    source.reserved_quantity -= quantity
    _record_flow(db, source, "transfer_out", -quantity, -quantity, operator_id, order_id, request_id,
                 reason or f"调出至 {to_owner_id}")

    target.quantity += quantity
    if hold_at_destination:
        target.reserved_quantity += quantity
    _record_flow(db, target, "transfer_in", quantity, quantity if hold_at_destination else 0,
                 operator_id, order_id, request_id, reason or f"调入自 {from_owner_id}")
    return source, target


async def check_availability(
    db: AsyncSession,
    owner_id: int,
    lines: Iterable[AllocationLine]) -> Dict[Tuple[int, Optional[int]], Stock]:
    """
    按合并后的需求校验可用库存，任一 SKU 不足即抛出（不做任何修改）
    """
    stocks: Dict[Tuple[int, Optional[int]], Stock] = {}
    for (variant_id, color_id), requested in aggregate_lines(lines).items():
        stock = await get_stock(db, owner_id, variant_id, color_id, for_update=True)
        available = stock.available_quantity if stock else 0
        if available < requested:
            logger.info(
                f"📦 库存不足: owner={owner_id} variant={variant_id} color={color_id} "
                f"可用 {available}，需要 {requested}"
            )
            raise InsufficientInventoryError(variant_id, color_id, requested, available, owner_id=owner_id)
        stocks[(variant_id, color_id)] = stock
    return stocks


async def allocate(
    db: AsyncSession,
    from_owner_id: int,
    to_owner_id: int,
    lines: Iterable[AllocationLine],
    operator_id: Optional[int] = None,
    order_id: Optional[int] = None,
    request_id: Optional[int] = None,
    reason: Optional[str] = None,
    hold_at_destination: bool = False) -> List[Dict]:
    """
    分配：对每一行先预留来源库存，再调拨到目标方

    所有行先统一校验，任何一行不足则整体失败且没有任何预留；
    返回每行的分配明细，写入订单/申请流程的扩展数据。
    """
    lines = list(lines)
    await check_availability(db, from_owner_id, lines)

    allocated: List[Dict] = []
    for line in lines:
        await reserve_stock(db, from_owner_id, line.variant_id, line.color_id, line.quantity,
                            operator_id=operator_id, order_id=order_id, request_id=request_id,
                            reason=reason)
        await transfer_stock(db, from_owner_id, to_owner_id, line.variant_id, line.color_id, line.quantity,
                             operator_id=operator_id, order_id=order_id, request_id=request_id,
                             reason=reason, hold_at_destination=hold_at_destination)
        allocated.append({
            "variant_id": line.variant_id,
            "color_id": line.color_id,
            "quantity": line.quantity,
        })

    logger.info(
        f"🚚 分配完成: {from_owner_id} → {to_owner_id}，"
        f"{sum(line.quantity for line in lines)} 台（order={order_id} request={request_id}）"
    )
    return allocated


async def release_lines(
    db: AsyncSession,
    owner_id: int,
    lines: Iterable[AllocationLine],
    operator_id: Optional[int] = None,
    order_id: Optional[int] = None,
    reason: Optional[str] = None) -> None:
    """逐行释放预留（已分配订单取消时释放经销商侧的锁定）"""
    for line in lines:
        await release_stock(db, owner_id, line.variant_id, line.color_id, line.quantity,
                            operator_id=operator_id, order_id=order_id, reason=reason)
