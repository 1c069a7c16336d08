"""
单号计数器 - 每个 {前缀}{年月日} 一行，记录当天已发出的最大序号

只能通过 services/numbering 在加锁的事务内递增
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from dealerflow.db.base import Base


class DocumentSequence(Base):
    """单号计数器"""
    __tablename__ = "df_document_sequences"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(30), nullable=False, unique=True, comment="前缀+日期，如 SO20241202")
    current_value = Column(Integer, nullable=False, default=0, comment="当天已发出的最大序号")
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<DocumentSequence {self.name} = {self.current_value}>"
