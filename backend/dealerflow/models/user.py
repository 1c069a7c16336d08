from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from dealerflow.db.base import Base
from dealerflow.core.permissions import ROLES, is_dealer_role


class User(Base):
    __tablename__ = "sys_user"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    # 角色：DealerStaff / DealerManager / EVMStaff / Admin
    role = Column(String(20), nullable=False, default="DealerStaff")
    # 所属经销商（厂商侧用户为空）
    dealer_id = Column(Integer, ForeignKey("df_entities.id"), nullable=True, index=True)
    status = Column(Boolean, nullable=False, default=True)  # True: 启用, False: 禁用
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    dealer = relationship("Entity", foreign_keys=[dealer_id])

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"

    @property
    def is_active(self):
        return self.status

    @property
    def is_dealer_user(self) -> bool:
        return is_dealer_role(self.role)

    @property
    def role_display(self) -> str:
        return ROLES.get(self.role, self.role)
