"""
实体模型 - 统一的参与方
厂商、经销商、客户本质上都是"实体"，只是角色不同
库存的归属方（owner）就是厂商或某个经销商实体
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime
from dealerflow.db.base import Base


class Entity(Base):
    """实体 - 统一的业务参与方"""
    __tablename__ = "df_entities"

    id = Column(Integer, primary_key=True, index=True)

    # 基本信息
    name = Column(String(100), nullable=False, index=True, comment="名称")
    code = Column(String(50), unique=True, index=True, comment="编码")

    # 实体类型
    # manufacturer(厂商), dealer(经销商), customer(客户)
    entity_type = Column(String(20), nullable=False, default="customer", index=True, comment="实体类型")

    # 联系信息
    contact_name = Column(String(50), comment="联系人")
    phone = Column(String(20), comment="电话")
    email = Column(String(100), comment="邮箱")
    address = Column(String(200), comment="地址")
    region = Column(String(50), comment="区域")
    notes = Column(Text, comment="备注")

    is_active = Column(Boolean, default=True, comment="是否启用")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Entity {self.code}: {self.name} ({self.entity_type})>"

    @property
    def is_manufacturer(self) -> bool:
        return self.entity_type == "manufacturer"

    @property
    def is_dealer(self) -> bool:
        return self.entity_type == "dealer"

    @property
    def is_customer(self) -> bool:
        return self.entity_type == "customer"

    @property
    def type_display(self) -> str:
        """类型显示名称"""
        type_map = {
            "manufacturer": "厂商",
            "dealer": "经销商",
            "customer": "客户",
        }
        return type_map.get(self.entity_type, self.entity_type)
