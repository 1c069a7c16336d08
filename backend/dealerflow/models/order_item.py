"""
订单明细模型 - 订单中的每一行车辆
单价在下单时确定，即使目录价格修改了也不影响历史订单
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, DateTime, ForeignKey, DECIMAL
from sqlalchemy.orm import relationship
from dealerflow.db.base import Base


class OrderItem(Base):
    """订单明细"""
    __tablename__ = "df_order_items"

    id = Column(Integer, primary_key=True, index=True)

    order_id = Column(Integer, ForeignKey("df_orders.id"), nullable=False, index=True)

    # 车型 + 颜色 = 库存维度
    variant_id = Column(Integer, ForeignKey("df_vehicle_variants.id"), nullable=False, index=True)
    color_id = Column(Integer, ForeignKey("df_vehicle_colors.id"), index=True)

    quantity = Column(Integer, nullable=False, default=1, comment="数量（台）")
    unit_price = Column(DECIMAL(14, 2), nullable=False, default=Decimal("0.00"), comment="单价")
    amount = Column(DECIMAL(14, 2), nullable=False, default=Decimal("0.00"), comment="金额 = 数量 × 单价")

    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("SalesOrder", back_populates="items")
    variant = relationship("VehicleVariant")
    color = relationship("VehicleColor")

    def __repr__(self):
        return f"<OrderItem {self.order_id}: {self.variant_id}/{self.color_id} x{self.quantity}>"
