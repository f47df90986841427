"""
销售单模型 - 订单到收款流程的主单据

状态流转（只能沿以下路径前进，取消是状态而不是删除）：
- DRAFT → PENDING_APPROVAL → APPROVED → DELIVERED → INVOICED
- DRAFT / PENDING_APPROVAL → CANCELLED
"""

import enum
from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL, CheckConstraint
from sqlalchemy.orm import relationship
from app.db.base import Base


class OrderStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    DELIVERED = "DELIVERED"
    INVOICED = "INVOICED"
    CANCELLED = "CANCELLED"


class ApprovalStatus(str, enum.Enum):
    NOT_SUBMITTED = "NOT_SUBMITTED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class SalesOrder(Base):
    """销售单"""
    __tablename__ = "sales_orders"

    id = Column(Integer, primary_key=True, index=True)

    # 单号 SO-000123，唯一约束用于拦截并发生成的重复单号
    order_number = Column(String(50), unique=True, nullable=False, index=True, comment="销售单号")

    status = Column(String(20), nullable=False, default=OrderStatus.DRAFT.value, index=True, comment="状态")
    approval_status = Column(String(20), nullable=False, default=ApprovalStatus.NOT_SUBMITTED.value, comment="审批状态")

    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    quote_id = Column(Integer, ForeignKey("sales_quotes.id"), comment="来源报价单ID")

    # 金额汇总（创建时计算，之后不再重算）
    subtotal = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="明细合计")
    tax_rate = Column(DECIMAL(5, 2), nullable=False, default=Decimal("0.00"), comment="税率（%）")
    tax = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="税额")
    total_amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="价税合计")

    invoice_id = Column(Integer, ForeignKey("invoices.id"), unique=True, comment="发票ID")

    notes = Column(Text, comment="备注")

    # 生命周期时间戳
    submitted_at = Column(DateTime, comment="提交时间")
    approved_at = Column(DateTime, comment="审批时间")
    approved_by = Column(Integer, comment="审批人")
    delivered_at = Column(DateTime, comment="发货时间")

    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="sales_orders")
    quote = relationship("SalesQuote")
    invoice = relationship("Invoice", foreign_keys=[invoice_id])
    items = relationship(
        "SalesOrderItem", back_populates="order",
        cascade="all, delete-orphan", order_by="SalesOrderItem.id"
    )
    deliveries = relationship("SalesDelivery", back_populates="order", order_by="SalesDelivery.id")

    def __repr__(self):
        return f"<SalesOrder {self.order_number} ({self.status})>"

    @property
    def status_display(self) -> str:
        """状态显示名称"""
        status_map = {
            OrderStatus.DRAFT.value: "草稿",
            OrderStatus.PENDING_APPROVAL.value: "待审批",
            OrderStatus.APPROVED.value: "已审批",
            OrderStatus.DELIVERED.value: "已发货",
            OrderStatus.INVOICED.value: "已开票",
            OrderStatus.CANCELLED.value: "已取消",
        }
        return status_map.get(self.status, self.status)


class SalesOrderItem(Base):
    """销售单明细"""
    __tablename__ = "sales_order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sales_order_item_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("sales_orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False, comment="数量")
    unit_price = Column(DECIMAL(12, 2), nullable=False, comment="单价")
    discount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="折扣金额")
    # 单价 × 数量 − 折扣
    line_total = Column(DECIMAL(12, 2), nullable=False, comment="行金额")

    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("SalesOrder", back_populates="items")
    product = relationship("Product")

    def __repr__(self):
        return f"<SalesOrderItem {self.order_id}: product {self.product_id} x{self.quantity}>"
