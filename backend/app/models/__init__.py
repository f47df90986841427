# models包初始化文件

from app.models.customer import Customer
from app.models.product import Product
from app.models.sales_quote import SalesQuote, QuoteStatus
from app.models.sales_order import SalesOrder, SalesOrderItem, OrderStatus, ApprovalStatus
from app.models.delivery import SalesDelivery, SalesDeliveryItem
from app.models.invoice import Invoice, InvoiceStatus
from app.models.ledger import LedgerAccount, LedgerEntry, AccountType, EntryType
from app.models.audit_log import AuditLog

__all__ = [
    "Customer",
    "Product",
    "SalesQuote",
    "QuoteStatus",
    "SalesOrder",
    "SalesOrderItem",
    "OrderStatus",
    "ApprovalStatus",
    "SalesDelivery",
    "SalesDeliveryItem",
    "Invoice",
    "InvoiceStatus",
    "LedgerAccount",
    "LedgerEntry",
    "AccountType",
    "EntryType",
    "AuditLog",
]
