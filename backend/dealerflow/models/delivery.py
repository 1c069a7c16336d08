"""
交付记录模型 - 与订单一对一，订单分配后按需创建
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from dealerflow.db.base import Base


class Delivery(Base):
    """交付记录

    状态：pending → in_progress → delivered
    """
    __tablename__ = "df_deliveries"

    id = Column(Integer, primary_key=True, index=True)

    order_id = Column(Integer, ForeignKey("df_orders.id"), nullable=False, unique=True, index=True)

    address = Column(String(200), comment="交付地址")
    scheduled_at = Column(DateTime, comment="计划交付时间")
    status = Column(String(20), nullable=False, default="pending", index=True, comment="状态")
    delivered_at = Column(DateTime, comment="实际交付时间")
    notes = Column(Text, comment="备注")

    created_by = Column(Integer, ForeignKey("sys_user.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("SalesOrder", back_populates="delivery")

    def __repr__(self):
        return f"<Delivery {self.id} order={self.order_id} ({self.status})>"

    @property
    def status_display(self) -> str:
        status_map = {
            "pending": "待交付",
            "in_progress": "交付中",
            "delivered": "已交付",
        }
        return status_map.get(self.status, self.status)
