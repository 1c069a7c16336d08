"""
库存模型 - 记录每个归属方（厂商/经销商）每个车型颜色的库存数量

- quantity: 归属方拥有的总数量
- reserved_quantity: 已被在途订单占用的数量
- 可用数量 = quantity - reserved_quantity（计算字段，不存储）

库存只能通过库存台账（services/inventory_ledger）的预留/释放/调拨变更
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from dealerflow.db.base import Base


class Stock(Base):
    """库存 - 归属方持有的某车型某颜色的数量

    注意：SQLite 中 NULL 值不参与唯一约束比较，所以 color_id=NULL 的记录由台账保证唯一
    """
    __tablename__ = "df_stocks"

    __table_args__ = (
        UniqueConstraint('owner_id', 'variant_id', 'color_id', name='uq_owner_variant_color'),
        CheckConstraint('reserved_quantity >= 0', name='ck_stock_reserved_non_negative'),
        CheckConstraint('reserved_quantity <= quantity', name='ck_stock_reserved_within_quantity'),
    )

    id = Column(Integer, primary_key=True, index=True)

    # 归属方（厂商或经销商实体）
    owner_id = Column(Integer, ForeignKey("df_entities.id"), nullable=False, index=True)

    variant_id = Column(Integer, ForeignKey("df_vehicle_variants.id"), nullable=False, index=True)
    color_id = Column(Integer, ForeignKey("df_vehicle_colors.id"), index=True, comment="颜色ID，NULL 表示不区分颜色")

    quantity = Column(Integer, nullable=False, default=0, comment="总数量")
    reserved_quantity = Column(Integer, nullable=False, default=0, comment="预留数量")

    location = Column(String(100), comment="存放位置")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("Entity", foreign_keys=[owner_id])
    variant = relationship("VehicleVariant")
    color = relationship("VehicleColor")

    def __repr__(self):
        return f"<Stock {self.owner_id}:{self.variant_id}/{self.color_id} = {self.quantity} ({self.reserved_quantity} reserved)>"

    @property
    def available_quantity(self) -> int:
        """可用库存 = 总数量 - 预留数量"""
        return (self.quantity or 0) - (self.reserved_quantity or 0)


class StockFlow(Base):
    """库存流水 - 记录每次库存变动"""
    __tablename__ = "df_stock_flows"

    id = Column(Integer, primary_key=True, index=True)

    stock_id = Column(Integer, ForeignKey("df_stocks.id"), nullable=False, index=True)

    # 关联单据（订单或调车申请，入库时为空）
    order_id = Column(Integer, ForeignKey("df_orders.id"), index=True)
    request_id = Column(Integer, ForeignKey("df_vehicle_requests.id"), index=True)

    # 流水类型
    # in: 入库
    # reserve: 预留
    # release: 释放预留
    # transfer_out: 调出（同时扣减预留）
    # transfer_in: 调入
    flow_type = Column(String(20), nullable=False, comment="流水类型")

    quantity_change = Column(Integer, nullable=False, default=0, comment="总数量变动")
    reserved_change = Column(Integer, nullable=False, default=0, comment="预留数量变动")

    # 变动后数量（用于追溯）
    quantity_after = Column(Integer, nullable=False, comment="变动后总数量")
    reserved_after = Column(Integer, nullable=False, comment="变动后预留数量")

    reason = Column(String(200), comment="变动原因")

    operator_id = Column(Integer, ForeignKey("sys_user.id"))
    operated_at = Column(DateTime, default=datetime.utcnow, comment="操作时间")

    stock = relationship("Stock", foreign_keys=[stock_id])

    def __repr__(self):
        return f"<StockFlow {self.stock_id}: {self.flow_type} {self.quantity_change:+d}/{self.reserved_change:+d}>"

    @property
    def type_display(self) -> str:
        """类型显示名称"""
        type_map = {
            "in": "入库",
            "reserve": "预留",
            "release": "释放",
            "transfer_out": "调出",
            "transfer_in": "调入",
        }
        return type_map.get(self.flow_type, self.flow_type)
