"""调车申请API"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.core.deps import get_db, get_current_user
from dealerflow.core.permissions import is_dealer_role
from dealerflow.models.user import User
from dealerflow.models.vehicle_request import VehicleRequest
from dealerflow.schemas.vehicle_request import (
    VehicleRequestCreate, VehicleRequestAction, VehicleRequestResponse,
    VehicleRequestListResponse, VehicleRequestItemResponse, RequestFlowResponse
)
from dealerflow.services import request_workflow
from dealerflow.services.orders import ensure_dealer_scope

router = APIRouter()


def build_request_response(vehicle_request: VehicleRequest, user: User) -> VehicleRequestResponse:
    """构建调车申请响应"""
    return VehicleRequestResponse(
        id=vehicle_request.id,
        request_no=vehicle_request.request_no,
        dealer_id=vehicle_request.dealer_id,
        dealer_name=vehicle_request.dealer.name if vehicle_request.dealer else "",
        requested_by=vehicle_request.requested_by,
        reviewed_by=vehicle_request.reviewed_by,
        status=vehicle_request.status,
        status_display=vehicle_request.status_display,
        rejection_reason=vehicle_request.rejection_reason,
        notes=vehicle_request.notes,
        requested_at=vehicle_request.requested_at,
        reviewed_at=vehicle_request.reviewed_at,
        items=[VehicleRequestItemResponse.model_validate(item) for item in vehicle_request.items],
        flows=[RequestFlowResponse.model_validate(flow) for flow in vehicle_request.flows],
        allowed_actions=request_workflow.allowed_request_actions(vehicle_request, user)
    )


@router.get("/", response_model=VehicleRequestListResponse)
async def list_requests(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    status: Optional[str] = Query(None)) -> Any:
    """调车申请列表；经销商侧只能看到本经销商的申请"""
    query = request_workflow.base_request_query()
    count_query = select(func.count(VehicleRequest.id))
    if is_dealer_role(current_user.role):
        query = query.where(VehicleRequest.dealer_id == current_user.dealer_id)
        count_query = count_query.where(VehicleRequest.dealer_id == current_user.dealer_id)
    if status:
        query = query.where(VehicleRequest.status == status)
        count_query = count_query.where(VehicleRequest.status == status)

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(query.order_by(VehicleRequest.id.desc()))
    return VehicleRequestListResponse(
        data=[build_request_response(r, current_user) for r in result.scalars().unique().all()],
        total=total
    )


@router.post("/", response_model=VehicleRequestResponse)
async def create_request(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    request_in: VehicleRequestCreate) -> Any:
    """提交调车申请（经销商经理）"""
    vehicle_request = await request_workflow.create_request(
        db, current_user, items=request_in.items, notes=request_in.notes)
    return build_request_response(vehicle_request, current_user)


@router.get("/{request_id}", response_model=VehicleRequestResponse)
async def get_request(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    request_id: int) -> Any:
    vehicle_request = await request_workflow.get_request_or_404(db, request_id)
    ensure_dealer_scope(vehicle_request.dealer_id, current_user)
    return build_request_response(vehicle_request, current_user)


@router.post("/{request_id}/action", response_model=VehicleRequestResponse)
async def change_request_status(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    request_id: int,
    action_in: VehicleRequestAction) -> Any:
    """审批（approve / reject，厂商）、取消（cancel）、确认到货（fulfill）"""
    vehicle_request = await request_workflow.transition_request(
        db, request_id, action_in.action, current_user, note=action_in.notes)
    return build_request_response(vehicle_request, current_user)
