import asyncio
import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.base import Base
from app.db.session import engine, SessionLocal

# 导入所有模型，确保表能被创建
from app.models import (  # noqa: F401
    Customer, Product, SalesQuote, SalesOrder, SalesOrderItem,
    SalesDelivery, SalesDeliveryItem, Invoice, LedgerAccount, LedgerEntry, AuditLog
)

logger = logging.getLogger(__name__)


def default_ledger_accounts():
    """系统必需的总账科目（开票过账使用）"""
    return [
        {"account_code": settings.ACCOUNTS_RECEIVABLE_CODE, "account_name": "应收账款", "account_type": "ASSET"},
        {"account_code": settings.SALES_REVENUE_CODE, "account_name": "销售收入", "account_type": "REVENUE"},
    ]


async def ensure_tables_exist(bind=None) -> None:
    """
    确保数据库表存在（应用启动时调用）
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ensure_ledger_accounts(db: AsyncSession) -> list:
    """
    补齐缺失的总账科目，返回新建的科目编码
    """
    created = []
    for account in default_ledger_accounts():
        result = await db.execute(
            select(LedgerAccount).where(LedgerAccount.account_code == account["account_code"])
        )
        if result.scalar_one_or_none():
            continue
        db.add(LedgerAccount(current_balance=Decimal("0.00"), **account))
        created.append(account["account_code"])
    if created:
        await db.commit()
    return created


async def init_db() -> None:
    """
    初始化数据库 - 创建所有表并写入基础科目
    """
    await ensure_tables_exist()
    async with SessionLocal() as db:
        created = await ensure_ledger_accounts(db)
        if created:
            logger.info(f"创建总账科目: {', '.join(created)}")


if __name__ == "__main__":
    asyncio.run(init_db())
