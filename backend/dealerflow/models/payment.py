"""
收款记录模型 - 记录订单上的每一笔资金事件

欠款不存储：欠款 = 订单总额 - 已确认收款合计（见 services/read_model）
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL
from sqlalchemy.orm import relationship
from dealerflow.db.base import Base


class Payment(Base):
    """收款记录

    一个订单可以有多笔收款（定金、尾款、贷款放款）
    """
    __tablename__ = "df_payments"

    id = Column(Integer, primary_key=True, index=True)

    # 收款编号（自动生成）格式：PAY20241203001
    payment_no = Column(String(50), unique=True, nullable=False, index=True, comment="收款单号")

    order_id = Column(Integer, ForeignKey("df_orders.id"), nullable=False, index=True)

    # 收款类型：deposit(定金) / balance(尾款) / finance(贷款)
    payment_type = Column(String(20), nullable=False, comment="收款类型")

    # 支付方式：cash(现金) / bank(银行转账) / loan(贷款)
    method = Column(String(20), nullable=False, default="bank", comment="支付方式")

    amount = Column(DECIMAL(14, 2), nullable=False, comment="金额")

    # 状态：pending / confirmed / failed
    status = Column(String(20), nullable=False, default="pending", index=True, comment="状态")

    transaction_ref = Column(String(100), comment="交易流水号")
    paid_at = Column(DateTime, default=datetime.utcnow, comment="付款时间")
    notes = Column(Text, comment="备注")

    created_by = Column(Integer, ForeignKey("sys_user.id"), nullable=False)
    confirmed_by = Column(Integer, ForeignKey("sys_user.id"), comment="确认人")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("SalesOrder", back_populates="payments")

    def __repr__(self):
        return f"<Payment {self.payment_no}: {self.payment_type} {self.amount} ({self.status})>"

    @property
    def type_display(self) -> str:
        type_map = {
            "deposit": "定金",
            "balance": "尾款",
            "finance": "贷款",
        }
        return type_map.get(self.payment_type, self.payment_type)

    @property
    def method_display(self) -> str:
        method_map = {
            "cash": "现金",
            "bank": "银行转账",
            "loan": "贷款",
        }
        return method_map.get(self.method, self.method)
