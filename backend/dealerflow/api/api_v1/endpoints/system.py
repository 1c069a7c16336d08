"""系统管理API - 备份调度状态、手动备份"""

from typing import Any
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from dealerflow.core.deps import get_current_user
from dealerflow.core.exceptions import ForbiddenError
from dealerflow.core.permissions import ADMIN
from dealerflow.models.user import User
from dealerflow.services.scheduler import get_scheduler_status, run_backup

router = APIRouter()


def _require_admin(user: User) -> None:
    if user.role != ADMIN:
        raise ForbiddenError(f"角色 {user.role} 不能执行系统管理操作")


@router.get("/scheduler")
async def scheduler_status(current_user: User = Depends(get_current_user)) -> Any:
    """定时任务状态"""
    _require_admin(current_user)
    return get_scheduler_status()


@router.post("/backup")
async def backup_now(current_user: User = Depends(get_current_user)) -> Any:
    """立即备份一次数据库"""
    _require_admin(current_user)
    path = await run_in_threadpool(run_backup)
    return {"success": path is not None, "backup_path": path}
