"""
发货单模型
每张销售单只在发货时生成一张，生成后不可修改
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base import Base


class SalesDelivery(Base):
    """发货单"""
    __tablename__ = "sales_deliveries"

    id = Column(Integer, primary_key=True, index=True)
    delivery_number = Column(String(50), unique=True, nullable=False, index=True, comment="发货单号")
    # 唯一：一张销售单最多一张发货单
    sales_order_id = Column(Integer, ForeignKey("sales_orders.id"), unique=True, nullable=False)
    status = Column(String(20), nullable=False, default="DELIVERED", comment="状态")
    dispatched_at = Column(DateTime, comment="发出时间")
    delivered_at = Column(DateTime, comment="送达时间")
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    order = relationship("SalesOrder", back_populates="deliveries")
    items = relationship(
        "SalesDeliveryItem", back_populates="delivery",
        cascade="all, delete-orphan", order_by="SalesDeliveryItem.id"
    )

    def __repr__(self):
        return f"<SalesDelivery {self.delivery_number} order={self.sales_order_id}>"


class SalesDeliveryItem(Base):
    """发货明细（发货时复制销售单明细的商品和数量）"""
    __tablename__ = "sales_delivery_items"

    id = Column(Integer, primary_key=True, index=True)
    delivery_id = Column(Integer, ForeignKey("sales_deliveries.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False, comment="数量")

    delivery = relationship("SalesDelivery", back_populates="items")
    product = relationship("Product")
