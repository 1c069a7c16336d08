"""
操作日志模型 - 记录系统中的重要操作
订单和调车申请有各自的流程表，这里记录交付、收款、报价等其他资源的操作
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import relationship
from dealerflow.db.base import Base


class AuditLog(Base):
    """操作日志 - 审计追踪"""
    __tablename__ = "df_audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("sys_user.id"), nullable=False, index=True)

    # 操作类型
    # create: 创建
    # status: 状态变更
    # convert: 报价转订单
    action = Column(String(20), nullable=False, index=True, comment="操作类型")

    # 资源类型
    # delivery: 交付
    # payment: 收款
    # quote: 报价
    resource_type = Column(String(50), nullable=False, index=True, comment="资源类型")
    resource_id = Column(Integer, index=True, comment="资源ID")
    resource_name = Column(String(100), comment="资源名称")

    description = Column(String(500), comment="操作描述")
    old_value = Column(JSON, comment="修改前")
    new_value = Column(JSON, comment="修改后")

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", foreign_keys=[user_id])

    def __repr__(self):
        return f"<AuditLog {self.action} {self.resource_type}:{self.resource_id}>"

    @property
    def action_display(self) -> str:
        """操作类型显示名称"""
        action_map = {
            "create": "创建",
            "status": "状态变更",
            "convert": "转为订单",
        }
        return action_map.get(self.action, self.action)

    @property
    def resource_type_display(self) -> str:
        """资源类型显示名称"""
        type_map = {
            "delivery": "交付",
            "payment": "收款",
            "quote": "报价",
        }
        return type_map.get(self.resource_type, self.resource_type)
