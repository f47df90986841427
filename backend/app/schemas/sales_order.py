"""销售单Schema（请求/响应字段使用驼峰命名，请求同时接受下划线命名）"""
from typing import Optional, List
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from decimal import Decimal


class CamelModel(BaseModel):
    """驼峰别名基类"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ===== 明细 =====
class SalesOrderItemCreate(CamelModel):
    """创建明细"""
    product_id: int = Field(..., description="商品ID")
    quantity: int = Field(..., description="数量")
    unit_price: Decimal = Field(..., decimal_places=2, description="单价（最多两位小数）")
    discount: Decimal = Field(default=Decimal("0"), decimal_places=2, description="折扣金额（最多两位小数）")


class SalesOrderItemResponse(CamelModel):
    """明细响应"""
    id: int
    product_id: int
    product_name: str = ""
    product_sku: Optional[str] = None
    quantity: int
    unit_price: float
    discount: float = 0
    line_total: float


# ===== 销售单 =====
class SalesOrderCreate(CamelModel):
    """创建销售单"""
    customer_id: int = Field(..., description="客户ID")
    items: List[SalesOrderItemCreate] = Field(default_factory=list, description="商品明细")
    tax: Optional[Decimal] = Field(None, description="税率（%），默认取系统配置")
    quote_id: Optional[int] = Field(None, description="来源报价单ID")
    notes: Optional[str] = Field(None, description="备注")


class SalesOrderAction(CamelModel):
    """状态变更：SUBMIT / APPROVE / DELIVER / INVOICE / CANCEL（不区分大小写）"""
    action: str = Field(..., description="操作类型")


class CustomerSummary(CamelModel):
    id: int
    name: str
    code: Optional[str] = None
    current_balance: float = 0
    total_outstanding: float = 0


class DeliveryItemResponse(CamelModel):
    id: int
    product_id: int
    quantity: int


class DeliveryResponse(CamelModel):
    """发货单"""
    id: int
    delivery_number: str
    status: str
    dispatched_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_by: int
    items: List[DeliveryItemResponse] = []


class InvoiceSummary(CamelModel):
    """发票摘要"""
    id: int
    invoice_number: str
    subtotal: float
    tax_amount: float
    total_amount: float
    paid_amount: float
    balance_amount: float
    status: str
    issue_date: datetime
    due_date: datetime
    description: Optional[str] = None


class SalesOrderResponse(CamelModel):
    """销售单响应"""
    id: int
    order_number: str
    status: str
    status_display: str = ""
    approval_status: str
    customer_id: int
    customer: Optional[CustomerSummary] = None
    quote_id: Optional[int] = None
    subtotal: float
    tax_rate: float
    tax: float
    total_amount: float
    invoice_id: Optional[int] = None
    invoice: Optional[InvoiceSummary] = None
    notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    delivered_at: Optional[datetime] = None
    created_by: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[SalesOrderItemResponse] = []
    deliveries: List[DeliveryResponse] = []


class SalesOrderEnvelope(BaseModel):
    """成功响应外层：{"success": true, "data": 销售单}"""
    success: bool = True
    data: SalesOrderResponse
    message: Optional[str] = None
