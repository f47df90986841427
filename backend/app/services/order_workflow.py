"""
销售单状态机

| 操作     | 允许的当前状态               | 目标状态                      | 附带动作                       |
|----------|------------------------------|-------------------------------|--------------------------------|
| SUBMIT   | DRAFT                        | PENDING_APPROVAL / 审批中      | 记录提交时间                   |
| APPROVE  | PENDING_APPROVAL             | APPROVED / 已审批              | 记录审批人、审批时间           |
| DELIVER  | APPROVED                     | DELIVERED                     | 扣减库存、生成发货单           |
| INVOICE  | DELIVERED                    | INVOICED                      | 生成发票、更新客户余额、总账过账 |
| CANCEL   | DRAFT, PENDING_APPROVAL      | CANCELLED / 已驳回             | 无                             |

校验、状态占用（条件 UPDATE）、附带动作在同一个事务里完成；总账过账在提交之后执行，
失败只记日志并标记为 COMMITTED_WITH_DEGRADED_LEDGER。
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, FrozenSet, List, Optional, Union

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AppError, InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
)
from app.models.invoice import Invoice, InvoiceStatus
from app.models.sales_order import ApprovalStatus, OrderStatus, SalesOrder
from app.services.customer_balance import CustomerStore, SqlCustomerStore, apply_customer_balance_delta
from app.services.ledger_poster import InvoicePosting, LedgerPoster
from app.services.numbering import (
    DocumentFamily, SequenceSource, SqlSequenceSource, generate_document_number, run_with_sequence_retry
)
from app.services.sales_orders import load_order
from app.services.stock_ledger import SqlStockStore, StockStore, deliver_order

logger = logging.getLogger(__name__)


class OrderAction(str, enum.Enum):
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    DELIVER = "DELIVER"
    INVOICE = "INVOICE"
    CANCEL = "CANCEL"

    @classmethod
    def parse(cls, raw) -> "OrderAction":
        """解析请求中的操作（忽略大小写和首尾空白），不支持的操作抛出 ValidationError"""
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str) or not raw.strip():
            raise ValidationError("缺少操作类型", {"allowed": [a.value for a in cls]})
        try:
            return cls(raw.strip().upper())
        except ValueError:
            raise ValidationError(f"不支持的操作: {raw}", {"allowed": [a.value for a in cls]})


@dataclass(frozen=True)
class Transition:
    valid_from: FrozenSet[OrderStatus]
    to: OrderStatus
    approval_status: Optional[ApprovalStatus]
    permission: str


TRANSITIONS: Dict[OrderAction, Transition] = {
    OrderAction.SUBMIT: Transition(
        frozenset({OrderStatus.DRAFT}),
        OrderStatus.PENDING_APPROVAL, ApprovalStatus.PENDING, "sales_order.submit"),
    OrderAction.APPROVE: Transition(
        frozenset({OrderStatus.PENDING_APPROVAL}),
        OrderStatus.APPROVED, ApprovalStatus.APPROVED, "sales_order.approve"),
    OrderAction.DELIVER: Transition(
        frozenset({OrderStatus.APPROVED}),
        OrderStatus.DELIVERED, None, "sales_order.deliver"),
    OrderAction.INVOICE: Transition(
        frozenset({OrderStatus.DELIVERED}),
        OrderStatus.INVOICED, None, "sales_order.invoice"),
    OrderAction.CANCEL: Transition(
        frozenset({OrderStatus.DRAFT, OrderStatus.PENDING_APPROVAL}),
        OrderStatus.CANCELLED, ApprovalStatus.REJECTED, "sales_order.cancel"),
}


def _check_transition_table() -> None:
    missing = [action.value for action in OrderAction if action not in TRANSITIONS]
    if missing:
        raise RuntimeError(f"状态流转表缺少操作: {missing}")


_check_transition_table()

# 没有任何出边的状态
TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    status for status in OrderStatus
    if not any(status in t.valid_from for t in TRANSITIONS.values())
)


class TransitionError(str, enum.Enum):
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"


class TransitionOutcome(str, enum.Enum):
    COMMITTED = "COMMITTED"
    COMMITTED_WITH_DEGRADED_LEDGER = "COMMITTED_WITH_DEGRADED_LEDGER"
    FAILED = "FAILED"


_ERROR_TYPES = {
    NotFoundError: TransitionError.NOT_FOUND,
    InvalidStateError: TransitionError.INVALID_STATE,
    InsufficientStockError: TransitionError.INSUFFICIENT_STOCK,
}


@dataclass
class TransitionResult:
    """状态变更结果"""
    outcome: TransitionOutcome
    order: Optional[SalesOrder] = None
    error: Optional[TransitionError] = None
    error_message: Optional[str] = None
    error_details: Optional[dict] = None
    warnings: List[str] = field(default_factory=list)
    ledger_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is not TransitionOutcome.FAILED

    @classmethod
    def failed(cls, exc: AppError) -> "TransitionResult":
        return cls(
            outcome=TransitionOutcome.FAILED,
            error=_ERROR_TYPES[type(exc)],
            error_message=exc.message,
            error_details=exc.details,
        )

    def raise_for_error(self) -> None:
        """失败结果转换为对应的业务异常（HTTP 层使用）"""
        if self.ok:
            return
        if self.error is TransitionError.NOT_FOUND:
            raise NotFoundError("销售单", self.error_details)
        if self.error is TransitionError.INSUFFICIENT_STOCK:
            raise InsufficientStockError(self.error_message, self.error_details)
        raise InvalidStateError(self.error_message, self.error_details)


@dataclass
class _TransitionContext:
    actor_id: int
    now: datetime
    warnings: List[str] = field(default_factory=list)
    posting: Optional[InvoicePosting] = None


class SalesOrderWorkflow:
    """销售单状态机，一个实例对应一个请求会话"""

    def __init__(
        self,
        db: AsyncSession,
        ledger_poster: LedgerPoster,
        stock_store: Optional[StockStore] = None,
        customer_store: Optional[CustomerStore] = None,
        sequence_source: Optional[SequenceSource] = None,
        max_retries: Optional[int] = None,
        payment_term_days: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.ledger_poster = ledger_poster
        self.stock_store = stock_store or SqlStockStore(db)
        self.customer_store = customer_store or SqlCustomerStore(db)
        self.sequence_source = sequence_source or SqlSequenceSource(db)
        self.max_retries = settings.SEQUENCE_CONFLICT_RETRIES if max_retries is None else max_retries
        self.payment_term_days = (
            settings.INVOICE_PAYMENT_TERM_DAYS if payment_term_days is None else payment_term_days
        )
        self.clock = clock
        # 只有发货和开票有附带动作，其余操作只改销售单本身的字段
        self._handlers = {
            OrderAction.DELIVER: self._deliver,
            OrderAction.INVOICE: self._invoice,
        }

    async def apply(
        self,
        order_id: int,
        action: Union[OrderAction, str],
        actor_id: int) -> TransitionResult:
        """执行一次状态变更"""
        action = OrderAction.parse(action)
        transition = TRANSITIONS[action]
        ctx = _TransitionContext(actor_id=actor_id, now=self.clock())

        async def body() -> None:
            # 重试时从头开始，之前尝试留下的警告和过账请求作废
            ctx.warnings.clear()
            ctx.posting = None

            order = await load_order(self.db, order_id, for_update=True)
            if not order:
                raise NotFoundError("销售单", {"orderId": order_id})
            if OrderStatus(order.status) not in transition.valid_from:
                raise InvalidStateError(
                    f"销售单 {order.order_number} 当前状态为{order.status_display}，不能执行 {action.value}",
                    {"status": order.status, "action": action.value},
                )

            # 先用条件更新占住状态，再做附带动作：并发请求中只有一个能匹配到旧状态
            await self._claim(order, action, transition, ctx)
            handler = self._handlers.get(action)
            if handler is not None:
                await handler(order, ctx)
            await self.db.flush()

        try:
            await run_with_sequence_retry(self.db, body, retries=self.max_retries)
        except (NotFoundError, InvalidStateError, InsufficientStockError) as e:
            logger.info(f"销售单 {order_id} 执行 {action.value} 失败: {e.code} {e.message}")
            return TransitionResult.failed(e)

        outcome = TransitionOutcome.COMMITTED
        ledger_error = None
        if ctx.posting is not None:
            try:
                await self.ledger_poster.post_invoice_created(ctx.posting)
            except Exception as e:
                logger.exception(f"发票 {ctx.posting.invoice_id} 总账过账失败，发票已保存")
                outcome = TransitionOutcome.COMMITTED_WITH_DEGRADED_LEDGER
                ledger_error = str(e)

        self.db.expire_all()
        order = await load_order(self.db, order_id)
        logger.info(f"✅ 销售单 {order.order_number} 执行 {action.value}，当前状态 {order.status}")
        return TransitionResult(
            outcome=outcome,
            order=order,
            warnings=list(ctx.warnings),
            ledger_error=ledger_error,
        )

    async def _claim(
        self,
        order: SalesOrder,
        action: OrderAction,
        transition: Transition,
        ctx: _TransitionContext) -> None:
        """
        UPDATE ... WHERE status IN (允许的当前状态)

        影响行数不为1说明读取之后状态已被并发请求改变。
        SQLite 上这条语句同时拿到写锁，之后的附带动作不会与其它写事务交错。
        """
        values = {"status": transition.to.value, "updated_at": ctx.now}
        if transition.approval_status is not None:
            values["approval_status"] = transition.approval_status.value
        if action is OrderAction.SUBMIT:
            values["submitted_at"] = ctx.now
        elif action is OrderAction.APPROVE:
            values["approved_by"] = ctx.actor_id
            values["approved_at"] = ctx.now
        elif action is OrderAction.DELIVER:
            values["delivered_at"] = ctx.now

        result = await self.db.execute(
            update(SalesOrder)
            .where(
                SalesOrder.id == order.id,
                SalesOrder.status.in_([status.value for status in transition.valid_from]),
            )
            .values(**values)
        )
        if result.rowcount != 1:
            logger.warning(f"销售单 {order.order_number} 状态已被其它请求变更，放弃 {action.value}")
            raise InvalidStateError(
                f"销售单 {order.order_number} 状态已变更，不能执行 {action.value}",
                {"action": action.value},
            )

    async def _deliver(self, order: SalesOrder, ctx: _TransitionContext) -> None:
        await deliver_order(self.stock_store, self.sequence_source, order, ctx.actor_id, now=ctx.now)

    async def _invoice(self, order: SalesOrder, ctx: _TransitionContext) -> None:
        invoice_number = await generate_document_number(self.sequence_source, DocumentFamily.INVOICE)
        invoice = Invoice(
            invoice_number=invoice_number,
            customer_id=order.customer_id,
            subtotal=order.subtotal,
            tax_amount=order.tax,
            total_amount=order.total_amount,
            paid_amount=0,
            balance_amount=order.total_amount,
            status=InvoiceStatus.SENT.value,
            issue_date=ctx.now,
            due_date=ctx.now + timedelta(days=self.payment_term_days),
            description=f"Sales order invoice {order.order_number}",
        )
        self.db.add(invoice)
        await self.db.flush()
        # 直接写外键，避免再次刷新销售单时 onupdate 覆盖 updated_at
        await self.db.execute(
            update(SalesOrder)
            .where(SalesOrder.id == order.id)
            .values(invoice_id=invoice.id, updated_at=ctx.now)
        )

        updated = await apply_customer_balance_delta(self.customer_store, order.customer_id, order.total_amount)
        if not updated:
            ctx.warnings.append(f"客户 {order.customer_id} 不存在，未更新客户余额")

        ctx.posting = InvoicePosting(
            invoice_id=invoice.id,
            customer_id=order.customer_id,
            amount=order.total_amount,
            user_id=ctx.actor_id,
            description=f"Invoice created for sales order {order.order_number}",
            issue_date=ctx.now,
        )
        logger.info(f"💰 销售单 {order.order_number} 开票 {invoice_number}，金额 {order.total_amount}")
