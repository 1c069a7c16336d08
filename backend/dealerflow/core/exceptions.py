"""
业务异常
- 所有异常都继承 HTTPException，服务层直接抛出，由 FastAPI 转成响应
- detail 统一为 {code, message, ...} 结构，前端据此展示原因
- 这些异常都在任何写操作之前检测，抛出即意味着没有持久化变更
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException


class WorkflowError(HTTPException):
    """业务异常基类"""

    status_code = 400
    code = "workflow_error"

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra: Dict[str, Any] = extra
        super().__init__(
            status_code=self.status_code,
            detail={"code": self.code, "message": message, **extra},
        )


class InvalidRequestError(WorkflowError):
    """请求内容不合法（未知的类型、空明细等），与状态无关"""

    status_code = 400
    code = "invalid_request"


class NotFoundError(WorkflowError):
    """资源不存在（不可重试）"""

    status_code = 404
    code = "not_found"

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(f"{resource} {resource_id} 不存在", resource=resource, resource_id=resource_id)


class ForbiddenError(WorkflowError):
    """角色不匹配或越权访问其他经销商的数据（不可重试）"""

    status_code = 403
    code = "forbidden"


class InvalidTransitionError(WorkflowError):
    """当前状态不允许该操作，附带当前状态"""

    status_code = 409
    code = "invalid_transition"

    def __init__(self, message: str, current_status: Optional[str] = None, **extra: Any):
        super().__init__(message, current_status=current_status, **extra)
        self.current_status = current_status


class InsufficientInventoryError(WorkflowError):
    """可用库存不足，附带短缺的车型/颜色/数量；补货后可重试"""

    status_code = 409
    code = "insufficient_inventory"

    def __init__(
        self,
        variant_id: int,
        color_id: Optional[int],
        requested: int,
        available: int,
        owner_id: Optional[int] = None):
        super().__init__(
            f"可用库存不足：车型 {variant_id} 颜色 {color_id} 可用 {available}，需要 {requested}",
            variant_id=variant_id,
            color_id=color_id,
            requested=requested,
            available=available,
            owner_id=owner_id,
        )
        self.variant_id = variant_id
        self.color_id = color_id
        self.requested = requested
        self.available = available
