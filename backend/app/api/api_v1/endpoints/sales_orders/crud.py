"""
销售单 CRUD 操作模块
- 创建
- 读取
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_actor, get_db, get_permission_checker
from app.core.exceptions import NotFoundError
from app.core.permissions import Actor, PermissionChecker, require_permission
from app.schemas.sales_order import SalesOrderCreate, SalesOrderEnvelope
from app.services.audit import record_audit_log
from app.services.sales_orders import create_sales_order, load_order

from .core import build_order_response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=SalesOrderEnvelope, status_code=201)
async def create_order(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    checker: PermissionChecker = Depends(get_permission_checker),
    order_in: SalesOrderCreate) -> Any:
    """创建销售单 - 需要 sales_order.create 权限"""
    require_permission(checker, actor, "sales_order.create")

    order = await create_sales_order(db, order_in, actor.user_id)
    response = SalesOrderEnvelope(data=build_order_response(order))

    await record_audit_log(
        db, actor,
        action="CREATE_SALES_ORDER",
        resource_type="SalesOrder",
        resource_id=order.id,
        resource_name=order.order_number,
        description=f"Sales order created: {order.order_number}",
        metadata={"orderNumber": order.order_number, "totalAmount": str(order.total_amount)},
    )
    return response


@router.get("/{order_id}", response_model=SalesOrderEnvelope)
async def get_order(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    checker: PermissionChecker = Depends(get_permission_checker),
    order_id: int) -> Any:
    """获取销售单详情 - 需要 sales_order.view 权限"""
    require_permission(checker, actor, "sales_order.view")

    order = await load_order(db, order_id)
    if not order:
        raise NotFoundError("销售单", {"orderId": order_id})
    return SalesOrderEnvelope(data=build_order_response(order))
