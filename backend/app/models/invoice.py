"""
发票模型 - 应收款
金额从销售单原样复制，不重新计算；balance_amount = total_amount - paid_amount
"""

import enum
from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL
from sqlalchemy.orm import relationship
from app.db.base import Base


class InvoiceStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class Invoice(Base):
    """发票"""
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(50), unique=True, nullable=False, index=True, comment="发票号")
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)

    subtotal = Column(DECIMAL(12, 2), nullable=False, comment="不含税金额")
    tax_amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="税额")
    total_amount = Column(DECIMAL(12, 2), nullable=False, comment="价税合计")
    paid_amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="已收金额")
    balance_amount = Column(DECIMAL(12, 2), nullable=False, comment="未收余额")

    status = Column(String(20), nullable=False, default=InvoiceStatus.SENT.value, index=True, comment="状态")
    issue_date = Column(DateTime, nullable=False, comment="开票日期")
    due_date = Column(DateTime, nullable=False, comment="到期日")
    description = Column(Text, comment="说明")

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer")

    def __repr__(self):
        return f"<Invoice {self.invoice_number}: ¥{self.balance_amount}/{self.total_amount}>"

