"""
销售订单模型

状态流转（只能通过工作流引擎变更）：
- new → confirmed → allocated → invoiced → delivered
- new / allocated → cancelled
- new（经销商经理）/ confirmed（厂商）→ rejected

订单不做物理删除，取消是终态
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL
from sqlalchemy.orm import relationship
from dealerflow.db.base import Base


ORDER_STATUSES = ("new", "confirmed", "allocated", "invoiced", "delivered", "cancelled", "rejected")


class SalesOrder(Base):
    """销售订单"""
    __tablename__ = "df_orders"

    id = Column(Integer, primary_key=True, index=True)

    # 单号（自动生成）格式：SO20241202001
    order_no = Column(String(50), unique=True, nullable=False, index=True, comment="订单号")

    customer_id = Column(Integer, ForeignKey("df_entities.id"), nullable=False, index=True, comment="客户ID")
    dealer_id = Column(Integer, ForeignKey("df_entities.id"), nullable=False, index=True, comment="经销商ID")
    sales_id = Column(Integer, ForeignKey("sys_user.id"), nullable=False, comment="销售人员ID")
    quote_id = Column(Integer, ForeignKey("df_quotes.id"), comment="来源报价单ID")

    # 金额汇总（从明细计算得出，或从报价单带入）
    total_amount = Column(DECIMAL(14, 2), default=Decimal("0.00"), comment="订单总额")
    deposit = Column(DECIMAL(14, 2), default=Decimal("0.00"), comment="定金")

    # 付款方式：cash / finance / installment
    payment_method = Column(String(20), nullable=False, default="cash", comment="付款方式")

    status = Column(String(20), nullable=False, default="new", index=True, comment="状态")

    expected_delivery = Column(DateTime, comment="预计交付时间")
    rejection_reason = Column(Text, comment="驳回原因")
    notes = Column(Text, comment="备注")

    # 审计字段
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    confirmed_at = Column(DateTime, comment="审批时间")
    allocated_at = Column(DateTime, comment="分配时间")
    invoiced_at = Column(DateTime, comment="开票时间")
    delivered_at = Column(DateTime, comment="交付时间")
    closed_at = Column(DateTime, comment="取消/驳回时间")

    # 关系
    customer = relationship("Entity", foreign_keys=[customer_id])
    dealer = relationship("Entity", foreign_keys=[dealer_id])
    sales = relationship("User", foreign_keys=[sales_id])

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    flows = relationship("OrderFlow", back_populates="order", cascade="all, delete-orphan",
                         order_by="OrderFlow.id")
    delivery = relationship("Delivery", back_populates="order", uselist=False)
    payments = relationship("Payment", back_populates="order", order_by="Payment.id")

    def __repr__(self):
        return f"<SalesOrder {self.order_no} ({self.status})>"

    @property
    def status_display(self) -> str:
        """状态显示名称"""
        status_map = {
            "new": "新建",
            "confirmed": "已审批",
            "allocated": "已分配",
            "invoiced": "已开票",
            "delivered": "已交付",
            "cancelled": "已取消",
            "rejected": "已驳回",
        }
        return status_map.get(self.status, self.status)

    def recalculate_totals(self):
        """重新计算订单总额"""
        self.total_amount = sum((item.amount for item in self.items), Decimal("0"))
