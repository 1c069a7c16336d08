"""
报价单模型 - 客户报价，经理审批通过后由销售转为订单

状态：draft → sent → accepted → converted，draft / sent → rejected
价格、费用、促销的计算由前端报价工具完成，这里只保存结果
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL
from sqlalchemy.orm import relationship
from dealerflow.db.base import Base


class Quote(Base):
    """报价单"""
    __tablename__ = "df_quotes"

    id = Column(Integer, primary_key=True, index=True)

    # 报价编号 格式：QT20241203001
    quote_no = Column(String(50), unique=True, nullable=False, index=True, comment="报价编号")

    customer_id = Column(Integer, ForeignKey("df_entities.id"), nullable=False, index=True)
    dealer_id = Column(Integer, ForeignKey("df_entities.id"), nullable=False, index=True)
    sales_id = Column(Integer, ForeignKey("sys_user.id"), nullable=False)

    subtotal = Column(DECIMAL(14, 2), default=Decimal("0.00"), comment="小计")
    discount = Column(DECIMAL(14, 2), default=Decimal("0.00"), comment="折扣")
    fees = Column(DECIMAL(14, 2), default=Decimal("0.00"), comment="上牌/交付等费用")
    total = Column(DECIMAL(14, 2), default=Decimal("0.00"), comment="报价总额")

    status = Column(String(20), nullable=False, default="draft", index=True, comment="状态")
    valid_until = Column(DateTime, comment="有效期")
    notes = Column(Text, comment="备注")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("QuoteItem", back_populates="quote", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Quote {self.quote_no} ({self.status})>"

    @property
    def status_display(self) -> str:
        status_map = {
            "draft": "草稿",
            "sent": "已发送",
            "accepted": "已批准",
            "rejected": "已驳回",
            "converted": "已转订单",
        }
        return status_map.get(self.status, self.status)


class QuoteItem(Base):
    """报价明细"""
    __tablename__ = "df_quote_items"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("df_quotes.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("df_vehicle_variants.id"), nullable=False)
    color_id = Column(Integer, ForeignKey("df_vehicle_colors.id"))
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(DECIMAL(14, 2), nullable=False, default=Decimal("0.00"))

    quote = relationship("Quote", back_populates="items")
