"""
调车申请模型 - 经销商向厂商申请补充库存

状态：pending → approved → fulfilled，pending → rejected / cancelled
审批通过时与订单分配共用同一个库存调拨操作（厂商 → 申请经销商）
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from dealerflow.db.base import Base


class VehicleRequest(Base):
    """调车申请"""
    __tablename__ = "df_vehicle_requests"

    id = Column(Integer, primary_key=True, index=True)

    # 申请编号 格式：VR20241203001
    request_no = Column(String(50), unique=True, nullable=False, index=True, comment="申请编号")

    dealer_id = Column(Integer, ForeignKey("df_entities.id"), nullable=False, index=True, comment="申请经销商")
    requested_by = Column(Integer, ForeignKey("sys_user.id"), nullable=False, comment="申请人")
    reviewed_by = Column(Integer, ForeignKey("sys_user.id"), comment="审核人")

    status = Column(String(20), nullable=False, default="pending", index=True, comment="状态")

    rejection_reason = Column(Text, comment="驳回原因")
    notes = Column(Text, comment="备注")

    requested_at = Column(DateTime, default=datetime.utcnow, comment="申请时间")
    reviewed_at = Column(DateTime, comment="审核时间")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    dealer = relationship("Entity", foreign_keys=[dealer_id])
    items = relationship("VehicleRequestItem", back_populates="request", cascade="all, delete-orphan")
    flows = relationship("RequestFlow", back_populates="request", cascade="all, delete-orphan",
                         order_by="RequestFlow.id")

    def __repr__(self):
        return f"<VehicleRequest {self.request_no} ({self.status})>"

    @property
    def status_display(self) -> str:
        status_map = {
            "pending": "待审核",
            "approved": "已批准",
            "rejected": "已驳回",
            "fulfilled": "已到货",
            "cancelled": "已取消",
        }
        return status_map.get(self.status, self.status)


class VehicleRequestItem(Base):
    """调车申请明细"""
    __tablename__ = "df_vehicle_request_items"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("df_vehicle_requests.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("df_vehicle_variants.id"), nullable=False)
    color_id = Column(Integer, ForeignKey("df_vehicle_colors.id"))
    quantity = Column(Integer, nullable=False, comment="申请数量")
    reason = Column(String(200), comment="申请理由")

    request = relationship("VehicleRequest", back_populates="items")


class RequestFlow(Base):
    """调车申请流程记录"""
    __tablename__ = "df_request_flows"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("df_vehicle_requests.id"), nullable=False, index=True)

    action = Column(String(30), nullable=False, comment="操作")
    from_status = Column(String(20), comment="变更前状态")
    to_status = Column(String(20), nullable=False, comment="变更后状态")
    meta_data = Column(JSON, comment="扩展数据")
    notes = Column(Text, comment="备注")

    operator_id = Column(Integer, ForeignKey("sys_user.id"), nullable=False)
    operated_at = Column(DateTime, default=datetime.utcnow, comment="操作时间")

    request = relationship("VehicleRequest", back_populates="flows")
