"""
客户模型 - 外部实体
本系统只读写其余额字段：开票时应收余额与未结清金额同步增加
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, DateTime, DECIMAL
from sqlalchemy.orm import relationship
from app.db.base import Base


class Customer(Base):
    """客户"""
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True, comment="名称")
    code = Column(String(50), unique=True, index=True, comment="编码")
    phone = Column(String(20), comment="电话")

    # 余额字段
    current_balance = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="当前欠款余额")
    total_outstanding = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="未结清总额")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sales_orders = relationship("SalesOrder", back_populates="customer")

    def __repr__(self):
        return f"<Customer {self.code}: {self.name} ¥{self.current_balance}>"
