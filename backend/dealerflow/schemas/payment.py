"""收款Schema"""
from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime


class PaymentCreate(BaseModel):
    """录入收款"""
    order_id: int = Field(..., description="订单ID")
    amount: float = Field(..., gt=0, description="金额")
    payment_type: str = Field("deposit", pattern="^(deposit|balance|finance)$", description="收款类型")
    method: str = Field("bank", pattern="^(cash|bank|loan)$", description="支付方式")
    transaction_ref: Optional[str] = Field(None, max_length=100, description="交易流水号")
    paid_at: Optional[datetime] = Field(None, description="付款时间")
    notes: Optional[str] = Field(None, description="备注")


class PaymentStatusUpdate(BaseModel):
    """确认收款/标记失败"""
    status: str = Field(..., pattern="^(confirmed|failed)$", description="目标状态")
    notes: Optional[str] = Field(None, description="备注")


class PaymentResponse(BaseModel):
    """收款响应"""
    id: int
    payment_no: str
    order_id: int
    payment_type: str
    type_display: str = ""
    method: str
    method_display: str = ""
    amount: float
    status: str
    transaction_ref: Optional[str] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: int
    confirmed_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class OrderPaymentsResponse(BaseModel):
    """订单收款汇总"""
    order_id: int
    data: List[PaymentResponse]
    total_amount: float
    paid_amount: float
    debt: float


class PaymentListResponse(BaseModel):
    """收款列表响应"""
    data: List[PaymentResponse]
    total: int
    page: int
    limit: int
