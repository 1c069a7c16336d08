"""V1 API 路由聚合（操作人由 X-User-Id 请求头给出）"""
from fastapi import APIRouter

from dealerflow.api.api_v1.endpoints import (
    inventory, deliveries, payments, vehicle_requests, quotes, reports,
    audit_logs, system
)
# 订单按功能拆分为多个子模块
from dealerflow.api.api_v1.endpoints.orders import router as orders_router

api_router = APIRouter()

# 订单履约
api_router.include_router(orders_router, prefix="/orders", tags=["订单管理"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["库存查询"])
api_router.include_router(deliveries.router, prefix="/deliveries", tags=["交付管理"])
api_router.include_router(payments.router, prefix="/payments", tags=["收款管理"])
api_router.include_router(vehicle_requests.router, prefix="/vehicle-requests", tags=["调车申请"])
api_router.include_router(quotes.router, prefix="/quotes", tags=["报价管理"])

# 报表（/reports/debt、/dashboard/summary）
api_router.include_router(reports.router, tags=["报表"])

# 系统
api_router.include_router(audit_logs.router, prefix="/audit-logs", tags=["操作日志"])
api_router.include_router(system.router, prefix="/system", tags=["系统管理"])
