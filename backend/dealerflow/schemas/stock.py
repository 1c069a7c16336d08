"""库存Schema（只读投影，库存只能通过订单分配和调车审批变动）"""
from typing import Optional, List
from pydantic import BaseModel
from datetime import datetime


class StockResponse(BaseModel):
    """库存响应"""
    id: int
    owner_id: int
    variant_id: int
    color_id: Optional[int] = None
    quantity: int
    reserved_quantity: int
    available_quantity: int
    location: Optional[str] = None
    updated_at: Optional[datetime] = None

    # 关联信息
    owner_name: str = ""
    owner_type: str = ""
    variant_name: str = ""
    color_name: str = ""

    class Config:
        from_attributes = True


class StockListResponse(BaseModel):
    """库存列表响应"""
    data: List[StockResponse]
    total: int


class StockFlowResponse(BaseModel):
    """库存流水响应"""
    id: int
    stock_id: int
    order_id: Optional[int] = None
    request_id: Optional[int] = None
    flow_type: str
    type_display: str = ""
    quantity_change: int
    reserved_change: int
    quantity_after: int
    reserved_after: int
    reason: Optional[str] = None
    operator_id: Optional[int] = None
    operated_at: datetime

    class Config:
        from_attributes = True
