"""
商品模型 - 外部实体
quantity 为现存数量，只在销售单发货时扣减，任何时候都不能为负
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, DateTime, DECIMAL, CheckConstraint
from app.db.base import Base


class Product(Base):
    """商品"""
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_product_quantity_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True, comment="品名")
    sku = Column(String(50), unique=True, index=True, comment="SKU编码")
    unit = Column(String(20), nullable=False, default="个", comment="计量单位")
    unit_price = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="参考售价")
    quantity = Column(Integer, nullable=False, default=0, comment="现存数量")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Product {self.sku}: {self.name} x{self.quantity}>"
