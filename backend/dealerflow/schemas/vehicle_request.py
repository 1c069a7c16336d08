"""调车申请Schema"""
from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime


class VehicleRequestItemCreate(BaseModel):
    variant_id: int = Field(..., description="车型版本ID")
    color_id: Optional[int] = Field(None, description="颜色ID")
    quantity: int = Field(..., gt=0, description="申请数量")
    reason: Optional[str] = Field(None, max_length=200, description="申请理由")


class VehicleRequestItemResponse(VehicleRequestItemCreate):
    id: int
    request_id: int

    class Config:
        from_attributes = True


class VehicleRequestCreate(BaseModel):
    """提交调车申请"""
    items: List[VehicleRequestItemCreate] = Field(..., min_length=1, description="申请明细")
    notes: Optional[str] = Field(None, description="备注")


class VehicleRequestAction(BaseModel):
    """调车申请操作：approve / reject / cancel / fulfill"""
    action: str = Field(..., pattern="^(approve|reject|cancel|fulfill)$", description="操作")
    notes: Optional[str] = Field(None, description="备注/驳回原因")


class RequestFlowResponse(BaseModel):
    id: int
    request_id: int
    action: str
    from_status: Optional[str] = None
    to_status: str
    meta_data: Optional[dict] = None
    notes: Optional[str] = None
    operator_id: int
    operated_at: datetime

    class Config:
        from_attributes = True


class VehicleRequestResponse(BaseModel):
    """调车申请响应"""
    id: int
    request_no: str
    dealer_id: int
    dealer_name: str = ""
    requested_by: int
    reviewed_by: Optional[int] = None
    status: str
    status_display: str = ""
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    requested_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    items: List[VehicleRequestItemResponse] = []
    flows: List[RequestFlowResponse] = []
    allowed_actions: List[str] = []

    class Config:
        from_attributes = True


class VehicleRequestListResponse(BaseModel):
    data: List[VehicleRequestResponse]
    total: int
