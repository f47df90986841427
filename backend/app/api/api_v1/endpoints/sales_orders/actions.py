"""
销售单状态变更操作模块
- 提交、审批、发货、开票、取消
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_actor, get_db, get_ledger_poster, get_permission_checker
from app.core.permissions import Actor, PermissionChecker, require_permission
from app.schemas.sales_order import SalesOrderAction, SalesOrderEnvelope
from app.services.audit import record_audit_log
from app.services.ledger_poster import LedgerPoster
from app.services.order_workflow import (
    TRANSITIONS, OrderAction, SalesOrderWorkflow, TransitionOutcome
)

from .core import build_order_response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.patch("/{order_id}", response_model=SalesOrderEnvelope)
async def change_order_status(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    checker: PermissionChecker = Depends(get_permission_checker),
    ledger_poster: LedgerPoster = Depends(get_ledger_poster),
    order_id: int,
    action_in: SalesOrderAction) -> Any:
    """
    变更销售单状态

    权限按操作区分：sales_order.submit / approve / deliver / invoice / cancel
    """
    action = OrderAction.parse(action_in.action)
    require_permission(checker, actor, TRANSITIONS[action].permission)

    workflow = SalesOrderWorkflow(db, ledger_poster)
    result = await workflow.apply(order_id, action, actor.user_id)
    result.raise_for_error()

    for warning in result.warnings:
        logger.warning(f"销售单 {order_id} {action.value}: {warning}")
    if result.outcome is TransitionOutcome.COMMITTED_WITH_DEGRADED_LEDGER:
        logger.warning(f"⚠️ 销售单 {order_id} 已开票，但总账过账失败: {result.ledger_error}")

    order = result.order
    response = SalesOrderEnvelope(data=build_order_response(order))

    await record_audit_log(
        db, actor,
        action=f"SALES_ORDER_{action.value}",
        resource_type="SalesOrder",
        resource_id=order.id,
        resource_name=order.order_number,
        description=f"Sales order {action.value.lower()}: {order.order_number}",
        metadata={"orderNumber": order.order_number},
    )
    return response
