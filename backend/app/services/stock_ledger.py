"""
库存台账 - 销售单发货出库

整单校验：任一商品现存数量不足（或商品不存在）即整体失败，此时尚未做任何扣减。
全部通过后才逐个扣减，并生成一张发货单，明细照搬销售单的商品和数量。
同一商品在多行明细中出现时按合计数量校验。
"""

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InsufficientStockError
from app.models.delivery import SalesDelivery, SalesDeliveryItem
from app.models.product import Product
from app.services.numbering import DocumentFamily, SequenceSource, generate_document_number

logger = logging.getLogger(__name__)

DELIVERY_STATUS_DELIVERED = "DELIVERED"


class StockStore(Protocol):
    """库存读写接口"""

    async def on_hand(self, product_ids: List[int]) -> Dict[int, int]:
        """返回商品现存数量，不存在的商品不出现在结果中"""
        ...

    async def decrement(self, product_id: int, quantity: int) -> bool:
        """扣减库存，现存数量不足时不扣减并返回 False"""
        ...

    async def create_delivery(
        self,
        *,
        order_id: int,
        delivery_number: str,
        lines: List[Tuple[int, int]],
        operator_id: int,
        delivered_at: datetime) -> SalesDelivery:
        ...


def aggregate_quantities(items: Iterable) -> "OrderedDict[int, int]":
    """按商品汇总明细数量（保持明细顺序）"""
    totals: "OrderedDict[int, int]" = OrderedDict()
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals


def find_shortages(requested: Dict[int, int], on_hand: Dict[int, int]) -> List[int]:
    """返回库存不足或不存在的商品ID"""
    return [
        product_id for product_id, quantity in requested.items()
        if on_hand.get(product_id) is None or on_hand[product_id] < quantity
    ]


async def deliver_order(
    store: StockStore,
    source: SequenceSource,
    order,
    operator_id: int,
    now: Optional[datetime] = None) -> SalesDelivery:
    """
    销售单发货：校验库存 → 扣减 → 生成发货单

    库存不足时抛出 InsufficientStockError，由调用方回滚事务。
    """
    now = now or datetime.utcnow()
    requested = aggregate_quantities(order.items)

    on_hand = await store.on_hand(list(requested.keys()))
    shortages = find_shortages(requested, on_hand)
    if shortages:
        logger.info(f"销售单 {order.order_number} 库存不足，商品: {shortages}")
        raise InsufficientStockError()

    for product_id, quantity in requested.items():
        # 条件扣减：读取之后被并发出库抢先时这里会失败，整笔事务回滚
        if not await store.decrement(product_id, quantity):
            logger.warning(f"销售单 {order.order_number} 扣减商品 {product_id} 时库存已被占用")
            raise InsufficientStockError()

    delivery_number = await generate_document_number(source, DocumentFamily.DELIVERY)
    delivery = await store.create_delivery(
        order_id=order.id,
        delivery_number=delivery_number,
        lines=[(item.product_id, item.quantity) for item in order.items],
        operator_id=operator_id,
        delivered_at=now,
    )
    logger.info(f"📦 销售单 {order.order_number} 出库完成，发货单 {delivery_number}")
    return delivery


class SqlStockStore:
    """基于 SQLAlchemy 会话的库存实现"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def on_hand(self, product_ids: List[int]) -> Dict[int, int]:
        if not product_ids:
            return {}
        result = await self.db.execute(
            select(Product.id, Product.quantity).where(Product.id.in_(product_ids))
        )
        return {row[0]: row[1] or 0 for row in result}

    async def decrement(self, product_id: int, quantity: int) -> bool:
        result = await self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.quantity >= quantity)
            .values(quantity=Product.quantity - quantity, updated_at=datetime.utcnow())
        )
        return result.rowcount == 1

    async def create_delivery(
        self,
        *,
        order_id: int,
        delivery_number: str,
        lines: List[Tuple[int, int]],
        operator_id: int,
        delivered_at: datetime) -> SalesDelivery:
        delivery = SalesDelivery(
            delivery_number=delivery_number,
            sales_order_id=order_id,
            status=DELIVERY_STATUS_DELIVERED,
            dispatched_at=delivered_at,
            delivered_at=delivered_at,
            created_by=operator_id,
            items=[
                SalesDeliveryItem(product_id=product_id, quantity=quantity)
                for product_id, quantity in lines
            ],
        )
        self.db.add(delivery)
        await self.db.flush()
        return delivery
