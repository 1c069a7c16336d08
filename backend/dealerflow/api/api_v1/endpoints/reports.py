"""报表与仪表盘API（全部走 services/read_model 统一查询层）"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dealerflow.core.deps import get_db, get_current_user
from dealerflow.models.user import User
from dealerflow.schemas.report import DebtReportResponse, DashboardSummary
from dealerflow.services import read_model

router = APIRouter()


@router.get("/reports/debt", response_model=DebtReportResponse)
async def get_debt_report(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dealer_id: Optional[int] = Query(None),
    only_outstanding: bool = Query(True)) -> Any:
    """客户欠款报表"""
    return await read_model.debt_report(
        db, current_user, dealer_id=dealer_id, only_outstanding=only_outstanding)


@router.get("/dashboard/summary", response_model=DashboardSummary)
async def get_dashboard_summary(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)) -> Any:
    """仪表盘：订单状态分布、待办、库存、欠款"""
    return await read_model.dashboard_summary(db, current_user)
