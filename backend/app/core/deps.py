"""依赖注入"""
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.permissions import Actor, AllowAllPermissionChecker, PermissionChecker
from app.db import session as db_session
from app.services.ledger_poster import DoubleEntryLedgerPoster, LedgerPoster, NullLedgerPoster

# 未携带 X-User-Id 时的默认操作人（单机版管理员）
DEFAULT_OPERATOR_ID = 1


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    获取数据库会话依赖
    """
    async with db_session.SessionLocal() as session:
        yield session


def get_current_actor(request: Request) -> Actor:
    """从请求头解析操作人和请求元数据"""
    raw_user_id = request.headers.get("X-User-Id")
    try:
        user_id = int(raw_user_id) if raw_user_id else DEFAULT_OPERATOR_ID
    except ValueError:
        user_id = DEFAULT_OPERATOR_ID

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else None

    granted = request.headers.get("X-User-Permissions", "")
    return Actor(
        user_id=user_id,
        ip_address=ip_address,
        user_agent=request.headers.get("User-Agent"),
        permissions=frozenset(p.strip() for p in granted.split(",") if p.strip()),
    )


def get_permission_checker() -> PermissionChecker:
    """权限校验器（默认放行）"""
    return AllowAllPermissionChecker()


def get_ledger_poster() -> LedgerPoster:
    """总账过账器，过账使用独立会话，不参与销售单事务"""
    if not settings.LEDGER_POSTING_ENABLED:
        return NullLedgerPoster()
    return DoubleEntryLedgerPoster(db_session.SessionLocal)
