"""
订单管理API模块

按功能拆分为多个子模块：
- core: 响应构建、数据隔离
- crud: 创建、查询（订单不提供删除）
- actions: 状态变更、可执行操作、欠款
"""

from fastapi import APIRouter
from .crud import router as crud_router
from .actions import router as actions_router

router = APIRouter()

# 合并所有路由
router.include_router(crud_router)
router.include_router(actions_router)
