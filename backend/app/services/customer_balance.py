"""
客户余额更新

开票时应收余额（current_balance）和未结清金额（total_outstanding）同步增加发票金额。
客户不存在时跳过更新并返回 False，发票和状态变更照常成功。
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.customer import Customer

logger = logging.getLogger(__name__)


class CustomerStore(Protocol):
    async def increment_balances(self, customer_id: int, delta: Decimal) -> bool:
        """两个余额字段同时加 delta，客户不存在时返回 False"""
        ...


async def apply_customer_balance_delta(store: CustomerStore, customer_id: int, delta: Decimal) -> bool:
    updated = await store.increment_balances(customer_id, Decimal(delta))
    if not updated:
        logger.warning(f"客户 {customer_id} 不存在，跳过余额更新（金额 {delta}）")
    return updated


class SqlCustomerStore:
    """基于 SQLAlchemy 会话的实现，使用 UPDATE ... SET x = x + delta 避免并发覆盖"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def increment_balances(self, customer_id: int, delta: Decimal) -> bool:
        result = await self.db.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(
                current_balance=Customer.current_balance + delta,
                total_outstanding=Customer.total_outstanding + delta,
                updated_at=datetime.utcnow(),
            )
        )
        return result.rowcount == 1
