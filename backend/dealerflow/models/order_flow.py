"""
订单流程记录模型 - 记录订单的每一步状态变更
只追加不修改，使得每笔订单都有完整的生命周期可追溯
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from dealerflow.db.base import Base


class OrderFlow(Base):
    """订单流程记录"""
    __tablename__ = "df_order_flows"

    id = Column(Integer, primary_key=True, index=True)

    order_id = Column(Integer, ForeignKey("df_orders.id"), nullable=False, index=True)

    # 操作：created / approve / reject / allocate / reject_by_evm / update_status
    action = Column(String(30), nullable=False, comment="操作")
    from_status = Column(String(20), comment="变更前状态")
    to_status = Column(String(20), nullable=False, comment="变更后状态")

    # 扩展数据（如分配的库存明细、预计交付时间）
    meta_data = Column(JSON, comment="扩展数据")
    notes = Column(Text, comment="备注")

    operator_id = Column(Integer, ForeignKey("sys_user.id"), nullable=False)
    operated_at = Column(DateTime, default=datetime.utcnow, comment="操作时间")

    order = relationship("SalesOrder", back_populates="flows")
    operator = relationship("User", foreign_keys=[operator_id])

    def __repr__(self):
        return f"<OrderFlow {self.order_id}: {self.action} {self.from_status}->{self.to_status}>"

    @property
    def action_display(self) -> str:
        action_map = {
            "created": "创建",
            "approve": "审批通过",
            "reject": "驳回",
            "allocate": "分配库存",
            "reject_by_evm": "厂商驳回",
            "update_status": "更新状态",
        }
        return action_map.get(self.action, self.action)
