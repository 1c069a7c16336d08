"""报表与仪表盘 Schema"""
from typing import Dict, List
from pydantic import BaseModel


class DebtRow(BaseModel):
    order_id: int
    order_no: str
    dealer_id: int
    customer_id: int
    customer_name: str = ""
    status: str
    total_amount: float
    paid_amount: float
    debt: float


class DebtReportResponse(BaseModel):
    """欠款报表"""
    data: List[DebtRow]
    total_debt: float
    count: int


class PendingTasks(BaseModel):
    orders: int = 0
    vehicle_requests: int = 0


class StockSummary(BaseModel):
    quantity: int = 0
    reserved_quantity: int = 0
    available_quantity: int = 0


class DashboardSummary(BaseModel):
    """仪表盘汇总"""
    role: str
    order_status_counts: Dict[str, int]
    pending_tasks: PendingTasks
    stock: StockSummary
    total_debt: float
    outstanding_orders: int
