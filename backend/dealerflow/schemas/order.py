"""销售订单Schema"""
from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime


# ===== 明细 =====
class OrderItemBase(BaseModel):
    """明细基础字段"""
    variant_id: int = Field(..., description="车型版本ID")
    color_id: Optional[int] = Field(None, description="颜色ID")
    quantity: int = Field(..., gt=0, description="数量（台）")
    unit_price: float = Field(..., ge=0, description="单价")


class OrderItemCreate(OrderItemBase):
    """创建明细"""
    pass


class OrderItemResponse(OrderItemBase):
    """明细响应"""
    id: int
    order_id: int
    amount: float
    variant_name: str = ""
    color_name: str = ""

    class Config:
        from_attributes = True


# ===== 流程 =====
class OrderFlowResponse(BaseModel):
    """流程响应"""
    id: int
    order_id: int
    action: str
    action_display: str = ""
    from_status: Optional[str] = None
    to_status: str
    meta_data: Optional[dict] = None
    notes: Optional[str] = None
    operator_id: int
    operated_at: datetime

    class Config:
        from_attributes = True


# ===== 订单 =====
class OrderCreate(BaseModel):
    """创建订单"""
    customer_id: int = Field(..., description="客户ID")
    payment_method: str = Field("cash", pattern="^(cash|finance|installment)$", description="付款方式")
    deposit: float = Field(default=0, ge=0, description="定金")
    expected_delivery: Optional[datetime] = Field(None, description="预计交付时间")
    notes: Optional[str] = Field(None, description="备注")
    items: List[OrderItemCreate] = Field(..., min_length=1, description="车辆明细")


class OrderAction(BaseModel):
    """订单操作

    action: approve / reject / allocate / reject_by_evm / update_status
    update_status 时 status 为目标状态
    """
    action: str = Field(..., description="操作")
    status: Optional[str] = Field(None, description="目标状态（update_status 时必填）")
    notes: Optional[str] = Field(None, description="备注/驳回原因")
    expected_delivery: Optional[datetime] = Field(None, description="预计交付时间（分配时填写）")


class AllowedAction(BaseModel):
    action: str
    target_status: str


class AllowedActionsResponse(BaseModel):
    """当前用户可执行的操作"""
    order_id: int
    status: str
    actions: List[AllowedAction] = []


class OrderResponse(BaseModel):
    """订单响应"""
    id: int
    order_no: str
    customer_id: int
    customer_name: str = ""
    dealer_id: int
    dealer_name: str = ""
    sales_id: int
    quote_id: Optional[int] = None
    total_amount: float
    deposit: float
    payment_method: str
    status: str
    status_display: str = ""
    expected_delivery: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    allocated_at: Optional[datetime] = None
    invoiced_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    delivery_id: Optional[int] = None
    delivery_status: Optional[str] = None
    items: List[OrderItemResponse] = []
    flows: List[OrderFlowResponse] = []

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    """订单列表响应"""
    data: List[OrderResponse]
    total: int
    page: int
    limit: int


class OrderDebtResponse(BaseModel):
    """订单欠款"""
    order_id: int
    order_no: str
    total_amount: float
    paid_amount: float
    debt: float
