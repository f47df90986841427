"""销售报价单模型 - 创建销售单时校验来源报价"""

import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base import Base


class QuoteStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class SalesQuote(Base):
    """销售报价单"""
    __tablename__ = "sales_quotes"

    id = Column(Integer, primary_key=True, index=True)
    quote_number = Column(String(50), unique=True, nullable=False, index=True, comment="报价单号")
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=QuoteStatus.DRAFT.value, comment="状态")
    created_at = Column(DateTime, default=datetime.utcnow)

    customer = relationship("Customer")

    def __repr__(self):
        return f"<SalesQuote {self.quote_number} ({self.status})>"
