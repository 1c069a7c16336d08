"""
调车申请工作流

经销商经理提交补货申请，厂商审批通过时直接从厂商库存调拨到申请经销商，
与订单分配使用同一个分配操作（全部成功或全部不变）。
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dealerflow.core.exceptions import ForbiddenError, InvalidRequestError, NotFoundError
from dealerflow.core.permissions import DEALER_MANAGER, EVM_ROLES, is_dealer_role
from dealerflow.models.vehicle import VehicleColor, VehicleVariant
from dealerflow.models.vehicle_request import RequestFlow, VehicleRequest, VehicleRequestItem
from dealerflow.services.inventory_ledger import AllocationLine, allocate, allocation_lock_keys
from dealerflow.services.locks import atomic, request_key, sequence_key
from dealerflow.services.numbering import REQUEST_PREFIX, generate_no
from dealerflow.services.order_workflow import get_manufacturer
from dealerflow.services.orders import ensure_dealer_scope
from dealerflow.services.workflow import Transition, TransitionTable

logger = logging.getLogger(__name__)

_MANAGER = frozenset({DEALER_MANAGER})

REQUEST_WORKFLOW = TransitionTable("调车申请", [
    Transition("pending", "approved", EVM_ROLES, action="approve", effect="allocate"),
    Transition("pending", "rejected", EVM_ROLES, action="reject"),
    Transition("pending", "cancelled", _MANAGER, action="cancel"),
    Transition("approved", "fulfilled", _MANAGER, action="fulfill"),
])


def base_request_query():
    return select(VehicleRequest).options(
        selectinload(VehicleRequest.dealer),
        selectinload(VehicleRequest.items),
        selectinload(VehicleRequest.flows))


async def get_request_or_404(db: AsyncSession, request_id: int, refresh: bool = False) -> VehicleRequest:
    query = base_request_query().where(VehicleRequest.id == request_id)
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    vehicle_request = result.scalar_one_or_none()
    if not vehicle_request:
        raise NotFoundError("调车申请", request_id)
    return vehicle_request


def request_lines(vehicle_request: VehicleRequest) -> List[AllocationLine]:
    return [AllocationLine(item.variant_id, item.color_id, item.quantity) for item in vehicle_request.items]


async def create_request(
    db: AsyncSession,
    actor,
    items: Iterable,
    notes: Optional[str] = None) -> VehicleRequest:
    """经销商经理提交调车申请"""
    if actor.role != DEALER_MANAGER or actor.dealer_id is None:
        raise ForbiddenError(f"角色 {actor.role} 不能提交调车申请")

    items = list(items)
    if not items:
        raise InvalidRequestError("请提供至少一条申请明细")

    for item_in in items:
        if not await db.get(VehicleVariant, item_in.variant_id):
            raise NotFoundError("车型", item_in.variant_id)
        if item_in.color_id is not None and not await db.get(VehicleColor, item_in.color_id):
            raise NotFoundError("颜色", item_in.color_id)

    async with atomic(db, [sequence_key(REQUEST_PREFIX)]):
        vehicle_request = VehicleRequest(
            request_no=await generate_no(db, REQUEST_PREFIX),
            dealer_id=actor.dealer_id,
            requested_by=actor.id,
            status="pending",
            notes=notes,
            requested_at=datetime.utcnow())
        for item_in in items:
            vehicle_request.items.append(VehicleRequestItem(
                variant_id=item_in.variant_id,
                color_id=item_in.color_id,
                quantity=item_in.quantity,
                reason=item_in.reason))
        vehicle_request.flows.append(RequestFlow(
            action="created",
            from_status=None,
            to_status="pending",
            notes=notes,
            meta_data={},
            operator_id=actor.id,
            operated_at=datetime.utcnow()))
        db.add(vehicle_request)

    logger.info(f"📝 调车申请 {vehicle_request.request_no} 已提交（经销商 {actor.dealer_id}）")
    return await get_request_or_404(db, vehicle_request.id, refresh=True)


async def transition_request(
    db: AsyncSession,
    request_id: int,
    action: str,
    actor,
    note: Optional[str] = None) -> VehicleRequest:
    """
    执行调车申请的状态转换（approve / reject / cancel / fulfill）

    approve 时从厂商库存分配到申请经销商，库存不足则整体失败，申请保持 pending。
    """
    vehicle_request = await get_request_or_404(db, request_id)
    ensure_dealer_scope(vehicle_request.dealer_id, actor)

    keys: List = [request_key(request_id)]
    manufacturer = None
    if action == "approve":
        manufacturer = await get_manufacturer(db)
        keys.extend(allocation_lock_keys(
            [manufacturer.id, vehicle_request.dealer_id], request_lines(vehicle_request)))

    async with atomic(db, keys):
        vehicle_request = await get_request_or_404(db, request_id, refresh=True)
        current = vehicle_request.status
        target = REQUEST_WORKFLOW.target_for(current, action)
        transition = REQUEST_WORKFLOW.resolve(current, target, actor.role)

        meta: Dict = {}
        if transition.effect == "allocate":
            meta["allocations"] = await allocate(
                db,
                from_owner_id=manufacturer.id,
                to_owner_id=vehicle_request.dealer_id,
                lines=request_lines(vehicle_request),
                operator_id=actor.id,
                request_id=vehicle_request.id,
                reason=f"调车申请 {vehicle_request.request_no}")

        now = datetime.utcnow()
        vehicle_request.status = target
        if target in ("approved", "rejected"):
            vehicle_request.reviewed_by = actor.id
            vehicle_request.reviewed_at = now
        if target == "rejected":
            vehicle_request.rejection_reason = note

        vehicle_request.flows.append(RequestFlow(
            action=transition.action,
            from_status=current,
            to_status=target,
            notes=note,
            meta_data=meta,
            operator_id=actor.id,
            operated_at=now))

    logger.info(f"✅ 调车申请 {vehicle_request.request_no}: {current} → {target}（操作人 {actor.id}）")
    return await get_request_or_404(db, request_id, refresh=True)


def allowed_request_actions(vehicle_request: VehicleRequest, actor) -> List[str]:
    if is_dealer_role(actor.role) and actor.dealer_id != vehicle_request.dealer_id:
        return []
    return REQUEST_WORKFLOW.allowed_actions(vehicle_request.status, actor.role)
