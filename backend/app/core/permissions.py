"""
权限定义与校验

权限策略属于外部协作方：这里只定义权限码和校验接口。
默认实现放行所有操作（单机版无需权限检查），部署时可替换 get_permission_checker 依赖。
"""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from app.core.exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)

PERMISSIONS = {
    "sales_order.view": "查看销售单",
    "sales_order.create": "创建销售单",
    "sales_order.submit": "提交销售单",
    "sales_order.approve": "审批销售单",
    "sales_order.deliver": "销售单发货",
    "sales_order.invoice": "销售单开票",
    "sales_order.cancel": "取消销售单",
}


@dataclass(frozen=True)
class Actor:
    """当前操作人及请求元数据（写入审计日志）"""
    user_id: int
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    permissions: FrozenSet[str] = field(default_factory=frozenset)


class PermissionChecker:
    """权限校验接口"""

    def has_permission(self, actor: Actor, permission: str) -> bool:
        raise NotImplementedError


class AllowAllPermissionChecker(PermissionChecker):
    """单机版：所有操作放行"""

    def has_permission(self, actor: Actor, permission: str) -> bool:
        return True


class GrantedPermissionChecker(PermissionChecker):
    """按 Actor.permissions 中显式授予的权限码校验"""

    def has_permission(self, actor: Actor, permission: str) -> bool:
        return permission in actor.permissions


def require_permission(checker: PermissionChecker, actor: Actor, permission: str) -> Actor:
    """校验权限，不通过时抛出 PermissionDeniedError"""
    if permission not in PERMISSIONS:
        raise ValueError(f"未知权限码: {permission}")
    if not checker.has_permission(actor, permission):
        logger.warning(f"用户 {actor.user_id} 缺少权限 {permission}")
        raise PermissionDeniedError(f"缺少权限: {PERMISSIONS[permission]}", {"permission": permission})
    return actor
