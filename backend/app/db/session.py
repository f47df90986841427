import os
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings


def build_engine(database_uri: str = None):
    """创建异步引擎，仅在开发环境打印SQL（通过环境变量控制）"""
    uri = database_uri or settings.async_database_uri
    return create_async_engine(
        uri,
        echo=os.getenv("SQL_DEBUG", "false").lower() == "true",
        future=True,
    )


def build_session_factory(bind) -> sessionmaker:
    """创建异步会话工厂"""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = build_engine()
SessionLocal = build_session_factory(engine)
