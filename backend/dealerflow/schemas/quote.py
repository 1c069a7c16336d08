"""报价Schema"""
from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime

from dealerflow.schemas.order import OrderResponse


class QuoteItemCreate(BaseModel):
    variant_id: int = Field(..., description="车型版本ID")
    color_id: Optional[int] = Field(None, description="颜色ID")
    quantity: int = Field(1, gt=0, description="数量")
    unit_price: float = Field(..., ge=0, description="成交单价")


class QuoteItemResponse(QuoteItemCreate):
    id: int
    quote_id: int

    class Config:
        from_attributes = True


class QuoteCreate(BaseModel):
    """保存报价（金额由报价工具计算后提交）"""
    customer_id: int = Field(..., description="客户ID")
    items: List[QuoteItemCreate] = Field(..., min_length=1, description="报价明细")
    discount: float = Field(default=0, ge=0, description="折扣")
    fees: float = Field(default=0, ge=0, description="费用")
    total: Optional[float] = Field(None, ge=0, description="报价总额（为空时按明细计算）")
    valid_until: Optional[datetime] = Field(None, description="有效期")
    notes: Optional[str] = Field(None, description="备注")


class QuoteAction(BaseModel):
    """报价操作：send / approve / reject / convert"""
    action: str = Field(..., pattern="^(send|approve|reject|convert)$", description="操作")
    notes: Optional[str] = Field(None, description="备注")


class QuoteResponse(BaseModel):
    """报价响应"""
    id: int
    quote_no: str
    customer_id: int
    dealer_id: int
    sales_id: int
    subtotal: float
    discount: float
    fees: float
    total: float
    status: str
    status_display: str = ""
    valid_until: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    items: List[QuoteItemResponse] = []

    class Config:
        from_attributes = True


class QuoteActionResponse(BaseModel):
    """报价操作结果；转订单时带上新订单"""
    quote: QuoteResponse
    order: Optional[OrderResponse] = None
