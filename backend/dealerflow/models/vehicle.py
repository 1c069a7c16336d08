"""
车型目录模型

结构说明：
- 车型版本（VehicleVariant）：具体到配置（如 VF8 Plus）
- 车身颜色（VehicleColor）：与版本组合成库存的 SKU 维度

目录的维护由外部系统负责，这里只保留订单和库存需要引用的字段
"""
from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Boolean, DateTime, DECIMAL
from dealerflow.db.base import Base


class VehicleVariant(Base):
    """车型版本"""
    __tablename__ = "df_vehicle_variants"

    id = Column(Integer, primary_key=True, index=True)
    model_name = Column(String(100), nullable=False, comment="车型名称")
    trim = Column(String(50), nullable=False, comment="配置版本")
    msrp = Column(DECIMAL(14, 2), default=Decimal("0.00"), comment="厂商指导价")
    is_active = Column(Boolean, default=True, comment="是否在售")

    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def display_name(self) -> str:
        return f"{self.model_name} {self.trim}"


class VehicleColor(Base):
    """车身颜色"""
    __tablename__ = "df_vehicle_colors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False, comment="颜色名称")
    code = Column(String(20), unique=True, comment="颜色编码")

    created_at = Column(DateTime, default=datetime.utcnow)
