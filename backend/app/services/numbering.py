"""
单据编号生成

格式：{前缀}-{6位补零序号}，如 SO-000123、DEL-000007、INV-000042

算法：取该类单据最近创建记录的单号末尾数字（无则为0），再取该类单据总数，
下一个序号 = max(末尾数字, 总数) + 1。取两者较大值是为了跳过删除造成的空洞。

并发：两个事务可能在对方提交前读到同样的最大值，从而算出同一个单号。
单号列均有唯一约束，提交时冲突会抛出 IntegrityError，由调用方回滚后整笔重试
（见 run_with_sequence_retry）。
"""

import enum
import logging
import re
from typing import Awaitable, Callable, Dict, Optional, Protocol, Tuple, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.delivery import SalesDelivery
from app.models.invoice import Invoice
from app.models.sales_order import SalesOrder

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 6
TRAILING_DIGITS = re.compile(r"(\d+)$")

T = TypeVar("T")


class DocumentFamily(str, enum.Enum):
    """单据类型（值为单号前缀）"""
    SALES_ORDER = "SO"
    DELIVERY = "DEL"
    INVOICE = "INV"
    SUPPLIER_PAYMENT = "SUPPAY"


class SequenceSource(Protocol):
    """单号读取接口：在当前事务内读取最近单号和记录总数"""

    async def latest_number(self, family: DocumentFamily) -> Optional[str]:
        ...

    async def count(self, family: DocumentFamily) -> int:
        ...


def extract_suffix(number: Optional[str]) -> int:
    """提取单号末尾的数字，没有则返回0"""
    if not number:
        return 0
    match = TRAILING_DIGITS.search(number)
    return int(match.group(1)) if match else 0


def next_sequence_value(last_number: Optional[str], count: int) -> int:
    return max(extract_suffix(last_number), count) + 1


def format_document_number(family: DocumentFamily, value: int) -> str:
    return f"{DocumentFamily(family).value}-{value:0{SEQUENCE_WIDTH}d}"


async def generate_document_number(source: SequenceSource, family: DocumentFamily) -> str:
    """生成下一个单号"""
    last_number = await source.latest_number(family)
    count = await source.count(family)
    number = format_document_number(family, next_sequence_value(last_number, count))
    logger.debug(f"生成单号 {number}（最近单号={last_number}, 总数={count}）")
    return number


class SqlSequenceSource:
    """基于 SQLAlchemy 会话的单号读取实现"""

    # 单据类型 → (模型, 单号列)
    columns: Dict[DocumentFamily, Tuple[type, str]] = {
        DocumentFamily.SALES_ORDER: (SalesOrder, "order_number"),
        DocumentFamily.DELIVERY: (SalesDelivery, "delivery_number"),
        DocumentFamily.INVOICE: (Invoice, "invoice_number"),
    }

    def __init__(self, db: AsyncSession):
        self.db = db

    def _resolve(self, family: DocumentFamily):
        try:
            return self.columns[DocumentFamily(family)]
        except KeyError:
            raise ValueError(f"单据类型 {family} 未登记编号来源")

    async def latest_number(self, family: DocumentFamily) -> Optional[str]:
        model, column_name = self._resolve(family)
        column = getattr(model, column_name)
        result = await self.db.execute(
            select(column).order_by(model.created_at.desc(), model.id.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def count(self, family: DocumentFamily) -> int:
        model, _ = self._resolve(family)
        result = await self.db.execute(select(func.count()).select_from(model))
        return result.scalar() or 0


async def run_with_sequence_retry(
    db: AsyncSession,
    body: Callable[[], Awaitable[T]],
    retries: int = 1) -> T:
    """
    在一个事务内执行 body 并提交

    body 内生成的单号与并发事务冲突时（唯一约束 IntegrityError），回滚后从头重跑 body，
    最多重试 retries 次。重跑会重新读取单据状态，所以同一单据上并发的后到请求会看到新状态。
    其它异常回滚后原样抛出。
    """
    attempt = 0
    while True:
        try:
            result = await body()
            await db.commit()
            return result
        except IntegrityError as e:
            await db.rollback()
            if attempt >= retries:
                logger.error(f"单号冲突重试 {attempt} 次后仍失败: {e.orig}")
                raise
            attempt += 1
            logger.warning(f"单号唯一约束冲突，第 {attempt} 次重试: {e.orig}")
        except Exception:
            await db.rollback()
            raise
