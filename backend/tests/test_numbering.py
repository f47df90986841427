"""Tests for sequential document numbering and the conflict retry loop."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import InvalidStateError
from app.models import SalesOrder
from app.schemas.sales_order import SalesOrderCreate
from app.services.numbering import (
    DocumentFamily, SqlSequenceSource, extract_suffix, format_document_number,
    generate_document_number, next_sequence_value, run_with_sequence_retry
)
from app.services.sales_orders import create_sales_order


class FakeSequenceSource:
    """按创建顺序保存的单号列表"""

    def __init__(self, **numbers):
        self.numbers = {DocumentFamily(k): list(v) for k, v in numbers.items()}

    async def latest_number(self, family):
        existing = self.numbers.get(family) or []
        return existing[-1] if existing else None

    async def count(self, family):
        return len(self.numbers.get(family) or [])


class FakeSession:
    def __init__(self):
        self.commits = 0
        self.rollbacks = 0

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


def _conflict():
    return IntegrityError("INSERT INTO sales_orders", {}, Exception("UNIQUE constraint failed"))


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "number, expected",
    [(None, 0), ("", 0), ("SO-000042", 42), ("INV-7", 7), ("LEGACY", 0), ("DEL-2024-000015", 15)],
)
def test_extract_suffix(number, expected):
    assert extract_suffix(number) == expected


def test_next_value_skips_gaps_left_by_higher_suffix():
    assert next_sequence_value("SO-000010", 3) == 11


def test_next_value_uses_count_when_suffix_lags():
    assert next_sequence_value("SO-000001", 5) == 6


def test_first_number_of_a_family():
    assert next_sequence_value(None, 0) == 1


def test_format_is_zero_padded_and_lexically_sortable():
    numbers = [format_document_number(DocumentFamily.SALES_ORDER, n) for n in (1, 9, 10, 123456)]
    assert numbers == ["SO-000001", "SO-000009", "SO-000010", "SO-123456"]
    assert numbers == sorted(numbers)


def test_supplier_payment_prefix_is_reserved():
    assert format_document_number(DocumentFamily.SUPPLIER_PAYMENT, 3) == "SUPPAY-000003"


async def test_generate_number_per_family():
    source = FakeSequenceSource(SO=["SO-000001", "SO-000002"], INV=["INV-000009"])
    assert await generate_document_number(source, DocumentFamily.SALES_ORDER) == "SO-000003"
    assert await generate_document_number(source, DocumentFamily.INVOICE) == "INV-000010"
    assert await generate_document_number(source, DocumentFamily.DELIVERY) == "DEL-000001"


async def test_sql_source_rejects_unmapped_family(db):
    with pytest.raises(ValueError):
        await SqlSequenceSource(db).count(DocumentFamily.SUPPLIER_PAYMENT)


# ---------------------------------------------------------------------------
# Retry loop
# ---------------------------------------------------------------------------


async def test_retry_reruns_body_after_unique_conflict():
    session = FakeSession()
    attempts = []

    async def body():
        attempts.append(len(attempts) + 1)
        if len(attempts) == 1:
            raise _conflict()
        return "ok"

    assert await run_with_sequence_retry(session, body, retries=1) == "ok"
    assert attempts == [1, 2]
    assert session.rollbacks == 1
    # 第一次冲突发生在 body 内，只有第二次提交
    assert session.commits == 1


async def test_retry_gives_up_after_configured_attempts():
    session = FakeSession()
    calls = 0

    async def body():
        nonlocal calls
        calls += 1
        raise _conflict()

    with pytest.raises(IntegrityError):
        await run_with_sequence_retry(session, body, retries=1)
    assert calls == 2
    assert session.rollbacks == 2


async def test_domain_errors_are_not_retried():
    session = FakeSession()
    calls = 0

    async def body():
        nonlocal calls
        calls += 1
        raise InvalidStateError()

    with pytest.raises(InvalidStateError):
        await run_with_sequence_retry(session, body, retries=3)
    assert calls == 1
    assert session.rollbacks == 1
    assert session.commits == 0


# ---------------------------------------------------------------------------
# Against the database
# ---------------------------------------------------------------------------


def _order_payload(seeded):
    return SalesOrderCreate(
        customer_id=seeded.customer_id,
        items=[{"product_id": seeded.product_ids[0], "quantity": 1, "unit_price": Decimal("10")}],
    )


async def test_sales_order_numbers_are_unique_and_increasing(db, seeded):
    numbers = []
    for _ in range(4):
        order = await create_sales_order(db, _order_payload(seeded), actor_id=1)
        numbers.append(order.order_number)

    assert numbers == ["SO-000001", "SO-000002", "SO-000003", "SO-000004"]
    assert len(set(numbers)) == len(numbers)


async def test_unresolvable_number_collision_persists_nothing(db, seeded):
    # 最近创建的单号末尾为1、总数为2，算出的 SO-000003 与旧单重复
    old = datetime.utcnow() - timedelta(days=1)
    for number, created_at in (("SO-000003", old), ("SO-000001", datetime.utcnow())):
        db.add(SalesOrder(
            order_number=number, customer_id=seeded.customer_id, created_by=1, created_at=created_at,
        ))
    await db.commit()

    with pytest.raises(IntegrityError):
        await create_sales_order(db, _order_payload(seeded), actor_id=1)

    count = (await db.execute(select(func.count()).select_from(SalesOrder))).scalar()
    assert count == 2
