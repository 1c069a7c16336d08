"""交付Schema"""
from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime


class DeliveryCreate(BaseModel):
    """安排交付"""
    order_id: int = Field(..., description="订单ID")
    address: Optional[str] = Field(None, max_length=200, description="交付地址（默认客户地址）")
    scheduled_at: Optional[datetime] = Field(None, description="计划交付时间")
    notes: Optional[str] = Field(None, description="备注")


class DeliveryStatusUpdate(BaseModel):
    """交付状态变更"""
    status: str = Field(..., pattern="^(in_progress|delivered)$", description="目标状态")
    notes: Optional[str] = Field(None, description="备注")


class DeliveryResponse(BaseModel):
    """交付响应"""
    id: int
    order_id: int
    address: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    status: str
    status_display: str = ""
    delivered_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_by: int
    created_at: datetime
    order_status: Optional[str] = None

    class Config:
        from_attributes = True


class DeliveryListResponse(BaseModel):
    """交付列表响应"""
    data: List[DeliveryResponse]
    total: int
    page: int
    limit: int
