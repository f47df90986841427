"""
销售单创建与查询

创建流程：校验明细并计算金额 → 校验客户、商品、来源报价单 → 生成单号并保存草稿。
单号冲突时整笔重试（见 numbering.run_with_sequence_retry）。
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.models.customer import Customer
from app.models.delivery import SalesDelivery
from app.models.product import Product
from app.models.sales_order import ApprovalStatus, OrderStatus, SalesOrder, SalesOrderItem
from app.models.sales_quote import QuoteStatus, SalesQuote
from app.schemas.sales_order import SalesOrderCreate
from app.services.numbering import (
    DocumentFamily, SqlSequenceSource, generate_document_number, run_with_sequence_retry
)
from app.services.tax import LineInput, compute_order_totals, to_decimal, to_money

logger = logging.getLogger(__name__)


def base_order_query():
    """构建包含常用关联关系的基础查询"""
    return select(SalesOrder).options(
        selectinload(SalesOrder.customer),
        selectinload(SalesOrder.invoice),
        selectinload(SalesOrder.items).selectinload(SalesOrderItem.product),
        selectinload(SalesOrder.deliveries).selectinload(SalesDelivery.items))


async def load_order(db: AsyncSession, order_id: int, for_update: bool = False) -> Optional[SalesOrder]:
    """
    加载包含关联的销售单

    for_update=True 时加行锁（PostgreSQL 生效，SQLite 忽略），并用数据库中的值覆盖会话里的旧对象
    """
    query = base_order_query().where(SalesOrder.id == order_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def _validate_references(db: AsyncSession, order_in: SalesOrderCreate) -> None:
    customer = await db.get(Customer, order_in.customer_id)
    if not customer:
        raise NotFoundError("客户", {"customerId": order_in.customer_id})

    product_ids = {item.product_id for item in order_in.items}
    result = await db.execute(select(Product.id).where(Product.id.in_(product_ids)))
    missing = sorted(product_ids - set(result.scalars().all()))
    if missing:
        raise NotFoundError("商品", {"productIds": missing})

    if order_in.quote_id is None:
        return
    quote = await db.get(SalesQuote, order_in.quote_id)
    if not quote:
        raise NotFoundError("报价单", {"quoteId": order_in.quote_id})
    if quote.status != QuoteStatus.ACCEPTED.value:
        raise InvalidStateError(
            f"报价单 {quote.quote_number} 尚未被接受，不能生成销售单",
            {"quoteId": quote.id, "status": quote.status},
        )
    if quote.customer_id != order_in.customer_id:
        raise ValidationError(
            "报价单客户与销售单客户不一致",
            {"quoteCustomerId": quote.customer_id, "customerId": order_in.customer_id},
        )


async def create_sales_order(db: AsyncSession, order_in: SalesOrderCreate, actor_id: int) -> SalesOrder:
    """创建草稿销售单，返回包含明细和客户的销售单"""
    tax_rate = order_in.tax if order_in.tax is not None else settings.DEFAULT_TAX_RATE
    totals = compute_order_totals(
        [LineInput(item.unit_price, item.quantity, item.discount) for item in order_in.items],
        tax_rate,
    )

    await _validate_references(db, order_in)

    async def body() -> int:
        order_number = await generate_document_number(SqlSequenceSource(db), DocumentFamily.SALES_ORDER)
        order = SalesOrder(
            order_number=order_number,
            status=OrderStatus.DRAFT.value,
            approval_status=ApprovalStatus.NOT_SUBMITTED.value,
            customer_id=order_in.customer_id,
            quote_id=order_in.quote_id,
            subtotal=totals.subtotal,
            tax_rate=totals.tax_rate_percent,
            tax=totals.tax,
            total_amount=totals.total_amount,
            notes=order_in.notes,
            created_by=actor_id,
            items=[
                SalesOrderItem(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=to_decimal(item.unit_price),
                    discount=to_decimal(item.discount),
                    line_total=to_money(line_total),
                )
                for item, line_total in zip(order_in.items, totals.line_totals)
            ],
        )
        db.add(order)
        await db.flush()
        return order.id

    order_id = await run_with_sequence_retry(db, body, retries=settings.SEQUENCE_CONFLICT_RETRIES)

    db.expire_all()
    order = await load_order(db, order_id)
    logger.info(f"🧾 创建销售单 {order.order_number}：小计 {order.subtotal}，税额 {order.tax}，合计 {order.total_amount}")
    return order
