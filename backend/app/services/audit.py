"""
审计日志写入

在业务事务提交之后写入，写入失败只记录日志，不影响已成功的业务操作。
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Actor
from app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def create_audit_log(
    db: AsyncSession,
    user_id: int,
    action: str,
    resource_type: str,
    resource_id: Optional[int] = None,
    resource_name: Optional[str] = None,
    description: Optional[str] = None,
    new_value: Optional[dict] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None) -> AuditLog:
    """创建审计日志（只加入会话，不提交）"""
    log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        resource_name=resource_name,
        description=description,
        new_value=new_value,
        ip_address=ip_address,
        user_agent=user_agent[:300] if user_agent else None,
    )
    db.add(log)
    return log


async def record_audit_log(
    db: AsyncSession,
    actor: Actor,
    action: str,
    resource_type: str,
    resource_id: Optional[int] = None,
    resource_name: Optional[str] = None,
    description: Optional[str] = None,
    metadata: Optional[dict] = None) -> Optional[AuditLog]:
    """写入并提交一条审计日志，失败时返回 None"""
    try:
        log = create_audit_log(
            db,
            user_id=actor.user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            resource_name=resource_name,
            description=description,
            new_value=metadata,
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
        )
        await db.commit()
        return log
    except Exception:
        await db.rollback()
        logger.exception(f"审计日志写入失败: {action} {resource_type}:{resource_id}")
        return None
