"""Shared pytest fixtures for the order-to-cash backend tests."""

import os

# 测试不写日志文件，模块级引擎指向内存库
os.environ["LOG_DIR"] = ""
os.environ.setdefault("DATABASE_URI", "sqlite:///:memory:")

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.deps import get_db, get_ledger_poster
from app.core.exceptions import LedgerPostingError
from app.db.init_db import ensure_ledger_accounts, ensure_tables_exist
from app.db.session import build_session_factory
from app.models import Customer, Product, SalesQuote
from app.services.ledger_poster import DoubleEntryLedgerPoster, InvoicePosting


@dataclass
class SeedData:
    customer_id: int
    product_ids: List[int]
    quote_id: Optional[int] = None


class RecordingLedgerPoster:
    """记录收到的过账请求，不落库"""

    def __init__(self):
        self.postings: List[InvoicePosting] = []

    async def post_invoice_created(self, posting: InvoicePosting):
        self.postings.append(posting)
        return f"LEDGER-TEST-{len(self.postings)}"


class FailingLedgerPoster:
    def __init__(self):
        self.calls = 0

    async def post_invoice_created(self, posting: InvoicePosting):
        self.calls += 1
        raise LedgerPostingError("总账服务不可用")


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await ensure_tables_exist(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def file_engine(tmp_path):
    """文件库，每个会话拿到独立连接（并发场景用）"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await ensure_tables_exist(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def file_session_factory(file_engine):
    return build_session_factory(file_engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def ledger_accounts(session_factory):
    async with session_factory() as session:
        return await ensure_ledger_accounts(session)


async def seed_catalog(
    session_factory,
    stock=(10, 5),
    prices=(Decimal("500.00"), Decimal("1000.00")),
    quote_status: Optional[str] = None) -> SeedData:
    """写入一个客户和若干商品（可选一张报价单）"""
    async with session_factory() as session:
        customer = Customer(name="华东贸易", code="C001")
        session.add(customer)
        products = [
            Product(name=f"商品{i + 1}", sku=f"SKU-{i + 1:03d}", unit_price=price, quantity=qty)
            for i, (qty, price) in enumerate(zip(stock, prices))
        ]
        session.add_all(products)
        await session.flush()

        quote_id = None
        if quote_status is not None:
            quote = SalesQuote(quote_number="QT-000001", customer_id=customer.id, status=quote_status)
            session.add(quote)
            await session.flush()
            quote_id = quote.id

        await session.commit()
        return SeedData(customer.id, [p.id for p in products], quote_id)


@pytest.fixture
async def seeded(session_factory) -> SeedData:
    return await seed_catalog(session_factory)


@pytest.fixture
def ledger_poster(session_factory):
    return DoubleEntryLedgerPoster(session_factory)


@pytest.fixture
def app(session_factory, ledger_poster):
    from app.main import app as fastapi_app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_ledger_poster] = lambda: ledger_poster
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
