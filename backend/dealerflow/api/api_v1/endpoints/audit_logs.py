"""操作日志API"""

from typing import Any, Optional
from datetime import datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dealerflow.core.deps import get_db, get_current_user
from dealerflow.core.exceptions import ForbiddenError
from dealerflow.core.permissions import ADMIN, DEALER_MANAGER
from dealerflow.models.audit_log import AuditLog
from dealerflow.models.user import User
from dealerflow.schemas.audit_log import AuditLogResponse, AuditLogListResponse

router = APIRouter()


def build_log_response(log: AuditLog) -> AuditLogResponse:
    """构建日志响应"""
    return AuditLogResponse(
        id=log.id,
        user_id=log.user_id,
        action=log.action,
        resource_type=log.resource_type,
        resource_id=log.resource_id,
        resource_name=log.resource_name,
        description=log.description,
        old_value=log.old_value,
        new_value=log.new_value,
        created_at=log.created_at,
        action_display=log.action_display,
        resource_type_display=log.resource_type_display,
        username=log.user.username if log.user else ""
    )


@router.get("/", response_model=AuditLogListResponse)
async def list_logs(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None),
    user_id: Optional[int] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None)) -> Any:
    """获取操作日志列表（经销商经理和管理员）"""
    if current_user.role not in (DEALER_MANAGER, ADMIN):
        raise ForbiddenError(f"角色 {current_user.role} 不能查看操作日志")

    query = select(AuditLog).options(selectinload(AuditLog.user))

    conditions = []
    if current_user.role == DEALER_MANAGER:
        # 经销商经理只看本经销商人员的操作
        conditions.append(AuditLog.user_id.in_(
            select(User.id).where(User.dealer_id == current_user.dealer_id)
        ))
    if action:
        conditions.append(AuditLog.action == action)
    if resource_type:
        conditions.append(AuditLog.resource_type == resource_type)
    if user_id:
        conditions.append(AuditLog.user_id == user_id)
    if start_date:
        conditions.append(AuditLog.created_at >= datetime.strptime(start_date, "%Y-%m-%d"))
    if end_date:
        conditions.append(AuditLog.created_at <= datetime.strptime(end_date, "%Y-%m-%d"))

    if conditions:
        query = query.where(and_(*conditions))

    # 计算总数
    count_query = select(func.count(AuditLog.id))
    if conditions:
        count_query = count_query.where(and_(*conditions))
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    # 分页查询
    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    query = query.offset((page - 1) * limit).limit(limit)

    result = await db.execute(query)
    logs = result.scalars().all()

    return AuditLogListResponse(
        data=[build_log_response(log) for log in logs],
        total=total,
        page=page,
        limit=limit
    )
