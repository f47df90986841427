"""
总账过账 - 开票后的下游记账

过账在销售单事务提交之后执行，使用独立会话，不重试、不设超时。
失败由调用方记录日志，不回滚发票，也不作为错误返回给前端。

默认实现为复式记账：
  借：应收账款（资产，增加）
  贷：销售收入（收入，增加）
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Protocol

from sqlalchemy import func, select, update

from app.core.config import settings
from app.core.exceptions import LedgerPostingError
from app.models.ledger import EntryType, LedgerAccount, LedgerEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvoicePosting:
    """开票过账请求"""
    invoice_id: int
    customer_id: int
    amount: Decimal
    user_id: int
    description: str
    issue_date: datetime


@dataclass(frozen=True)
class LedgerLine:
    account_code: str
    entry_type: EntryType
    amount: Decimal


class LedgerPoster(Protocol):
    async def post_invoice_created(self, posting: InvoicePosting) -> Optional[str]:
        ...


class NullLedgerPoster:
    """未启用过账时使用"""

    async def post_invoice_created(self, posting: InvoicePosting) -> Optional[str]:
        logger.debug(f"总账过账未启用，跳过发票 {posting.invoice_id}")
        return None


def generate_transaction_id(prefix: str = "LEDGER") -> str:
    return f"{prefix}-{datetime.utcnow().strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:8].upper()}"


def ensure_balanced(lines: List[LedgerLine]) -> None:
    """借贷必须相等，且至少一借一贷"""
    if len(lines) < 2:
        raise LedgerPostingError("复式记账至少需要一借一贷两条分录")
    debit = sum((line.amount for line in lines if line.entry_type == EntryType.DEBIT), Decimal("0"))
    credit = sum((line.amount for line in lines if line.entry_type == EntryType.CREDIT), Decimal("0"))
    if debit != credit:
        raise LedgerPostingError(f"借贷不平：借方 {debit} ≠ 贷方 {credit}")


class DoubleEntryLedgerPoster:
    """复式记账过账器"""

    def __init__(
        self,
        session_factory,
        receivable_code: Optional[str] = None,
        revenue_code: Optional[str] = None):
        self.session_factory = session_factory
        self.receivable_code = receivable_code or settings.ACCOUNTS_RECEIVABLE_CODE
        self.revenue_code = revenue_code or settings.SALES_REVENUE_CODE

    async def post_invoice_created(self, posting: InvoicePosting) -> Optional[str]:
        amount = Decimal(posting.amount)
        lines = [
            LedgerLine(self.receivable_code, EntryType.DEBIT, amount),
            LedgerLine(self.revenue_code, EntryType.CREDIT, amount),
        ]
        return await self.post_transaction(
            lines,
            user_id=posting.user_id,
            description=posting.description,
            entry_date=posting.issue_date,
            customer_id=posting.customer_id,
            invoice_id=posting.invoice_id,
        )

    async def post_transaction(
        self,
        lines: List[LedgerLine],
        *,
        user_id: int,
        description: str,
        entry_date: Optional[datetime] = None,
        customer_id: Optional[int] = None,
        invoice_id: Optional[int] = None) -> str:
        """写入一组平衡的分录并更新科目余额，返回过账批次号"""
        ensure_balanced(lines)
        transaction_id = generate_transaction_id()
        entry_date = entry_date or datetime.utcnow()

        async with self.session_factory() as db:
            try:
                for line in lines:
                    result = await db.execute(
                        select(LedgerAccount).where(LedgerAccount.account_code == line.account_code)
                    )
                    account = result.scalar_one_or_none()
                    if not account:
                        raise LedgerPostingError(f"总账科目不存在: {line.account_code}")

                    db.add(LedgerEntry(
                        account_id=account.id,
                        transaction_id=transaction_id,
                        entry_type=line.entry_type.value,
                        amount=line.amount,
                        entry_date=entry_date,
                        description=description,
                        customer_id=customer_id,
                        invoice_id=invoice_id,
                        created_by=user_id,
                    ))
                    # 在数据库里累加，并发过账不会互相覆盖余额
                    change = account.balance_change(line.entry_type.value, line.amount)
                    await db.execute(
                        update(LedgerAccount)
                        .where(LedgerAccount.id == account.id)
                        .values(current_balance=func.coalesce(LedgerAccount.current_balance, 0) + change)
                        .execution_options(synchronize_session=False)
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(f"📒 总账过账完成 {transaction_id}（发票 {invoice_id}）")
        return transaction_id
