"""
销售单API模块

按功能拆分为多个子模块：
- core: 响应构建
- crud: 创建、读取
- actions: 状态变更（提交、审批、发货、开票、取消）
"""

from fastapi import APIRouter
from .crud import router as crud_router
from .actions import router as actions_router

router = APIRouter()

# 合并所有路由
router.include_router(crud_router, prefix="/sales-orders")
router.include_router(actions_router, prefix="/sales-orders")
