"""Integration tests for the sales order state machine."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import delete, func, select

from app.core.exceptions import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from app.models import Customer, Invoice, OrderStatus, Product, SalesDelivery, SalesOrder
from app.schemas.sales_order import SalesOrderCreate
from app.services.order_workflow import (
    TERMINAL_STATUSES, TRANSITIONS, OrderAction, SalesOrderWorkflow, TransitionError, TransitionOutcome
)
from app.services.sales_orders import create_sales_order

from conftest import FailingLedgerPoster, RecordingLedgerPoster, seed_catalog

FIXED_NOW = datetime(2024, 5, 1, 10, 0, 0)


async def _reference_order(db, seeded, first_qty=2, tax=16):
    order_in = SalesOrderCreate(
        customerId=seeded.customer_id,
        items=[
            {"productId": seeded.product_ids[0], "quantity": first_qty, "unitPrice": "500"},
            {"productId": seeded.product_ids[1], "quantity": 1, "unitPrice": "1000"},
        ],
        tax=tax,
    )
    return await create_sales_order(db, order_in, actor_id=1)


def _workflow(db, poster=None, **kwargs):
    return SalesOrderWorkflow(db, poster or RecordingLedgerPoster(), clock=lambda: FIXED_NOW, **kwargs)


async def _advance(workflow, order_id, *actions):
    result = None
    for action in actions:
        result = await workflow.apply(order_id, action, actor_id=2)
        assert result.outcome is TransitionOutcome.COMMITTED, result.error_message
    return result


async def _stock(db):
    db.expire_all()
    rows = (await db.execute(select(Product.id, Product.quantity).order_by(Product.id))).all()
    return [qty for _, qty in rows]


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------


def test_every_action_has_a_transition():
    assert set(TRANSITIONS) == set(OrderAction)


def test_terminal_statuses():
    assert TERMINAL_STATUSES == {OrderStatus.INVOICED, OrderStatus.CANCELLED}


@pytest.mark.parametrize("raw", ["submit", " Approve ", "DELIVER", "invoice", "cancel"])
def test_actions_are_parsed_case_insensitively(raw):
    assert OrderAction.parse(raw).value == raw.strip().upper()


@pytest.mark.parametrize("raw", ["SHIP", "", None, 3])
def test_unknown_actions_are_rejected(raw):
    with pytest.raises(ValidationError):
        OrderAction.parse(raw)


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


async def test_full_order_to_cash_flow(db, seeded):
    poster = RecordingLedgerPoster()
    order = await _reference_order(db, seeded)
    order_id = order.id
    assert (order.subtotal, order.tax, order.total_amount) == (
        Decimal("2000.00"), Decimal("320.00"), Decimal("2320.00")
    )
    assert order.status == "DRAFT"
    assert order.approval_status == "NOT_SUBMITTED"

    workflow = _workflow(db, poster)

    result = await _advance(workflow, order_id, "SUBMIT")
    assert result.order.status == "PENDING_APPROVAL"
    assert result.order.approval_status == "PENDING"
    assert result.order.submitted_at == FIXED_NOW

    result = await _advance(workflow, order_id, OrderAction.APPROVE)
    assert result.order.status == "APPROVED"
    assert result.order.approval_status == "APPROVED"
    assert result.order.approved_by == 2
    assert result.order.approved_at == FIXED_NOW

    result = await _advance(workflow, order_id, "DELIVER")
    assert result.order.status == "DELIVERED"
    assert result.order.delivered_at == FIXED_NOW
    [delivery] = result.order.deliveries
    assert delivery.delivery_number == "DEL-000001"
    assert delivery.status == "DELIVERED"
    assert delivery.dispatched_at == delivery.delivered_at == FIXED_NOW
    assert [(i.product_id, i.quantity) for i in delivery.items] == [
        (seeded.product_ids[0], 2), (seeded.product_ids[1], 1)
    ]
    assert await _stock(db) == [8, 4]

    result = await _advance(workflow, order_id, "INVOICE")
    order = result.order
    assert order.status == "INVOICED"
    invoice = order.invoice
    assert invoice.invoice_number == "INV-000001"
    assert invoice.subtotal == order.subtotal
    assert invoice.tax_amount == order.tax
    assert invoice.total_amount == order.total_amount == Decimal("2320.00")
    assert invoice.paid_amount == Decimal("0")
    assert invoice.balance_amount == invoice.total_amount - invoice.paid_amount
    assert invoice.status == "SENT"
    assert invoice.issue_date == invoice.due_date == FIXED_NOW
    assert invoice.description == f"Sales order invoice {order.order_number}"
    assert order.customer.current_balance == Decimal("2320.00")
    assert order.customer.total_outstanding == Decimal("2320.00")

    [posting] = poster.postings
    assert posting.invoice_id == invoice.id
    assert posting.customer_id == seeded.customer_id
    assert posting.amount == Decimal("2320.00")
    assert posting.user_id == 2
    assert posting.description == f"Invoice created for sales order {order.order_number}"
    assert posting.issue_date == FIXED_NOW


async def test_payment_term_sets_due_date(db, seeded):
    order = await _reference_order(db, seeded)
    workflow = _workflow(db, payment_term_days=30)
    result = await _advance(workflow, order.id, "SUBMIT", "APPROVE", "DELIVER", "INVOICE")

    assert (result.order.invoice.due_date - result.order.invoice.issue_date).days == 30


async def test_cancel_from_draft_and_pending(db, seeded):
    workflow = _workflow(db)
    draft_id = (await _reference_order(db, seeded)).id
    pending_id = (await _reference_order(db, seeded)).id
    await _advance(workflow, pending_id, "SUBMIT")

    for order_id in (draft_id, pending_id):
        result = await _advance(workflow, order_id, "CANCEL")
        assert result.order.status == "CANCELLED"
        assert result.order.approval_status == "REJECTED"


async def test_invoice_numbers_follow_across_orders(db, seeded):
    workflow = _workflow(db)
    numbers = []
    for _ in range(2):
        order = await _reference_order(db, seeded, first_qty=1)
        result = await _advance(workflow, order.id, "SUBMIT", "APPROVE", "DELIVER", "INVOICE")
        numbers.append((result.order.deliveries[0].delivery_number, result.order.invoice.invoice_number))

    assert numbers == [("DEL-000001", "INV-000001"), ("DEL-000002", "INV-000002")]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


async def test_unknown_order_fails_not_found(db):
    result = await _workflow(db).apply(12345, "SUBMIT", actor_id=1)

    assert result.outcome is TransitionOutcome.FAILED
    assert result.error is TransitionError.NOT_FOUND
    assert not result.ok
    with pytest.raises(NotFoundError):
        result.raise_for_error()


@pytest.mark.parametrize(
    "path, action",
    [
        ((), "APPROVE"),
        ((), "DELIVER"),
        ((), "INVOICE"),
        (("SUBMIT",), "SUBMIT"),
        (("SUBMIT", "APPROVE"), "CANCEL"),
        (("SUBMIT", "APPROVE", "DELIVER"), "DELIVER"),
        (("SUBMIT", "APPROVE", "DELIVER", "INVOICE"), "INVOICE"),
        (("SUBMIT", "APPROVE", "DELIVER", "INVOICE"), "CANCEL"),
        (("CANCEL",), "SUBMIT"),
    ],
)
async def test_wrong_state_leaves_order_unchanged(db, seeded, path, action):
    order = await _reference_order(db, seeded)
    order_id = order.id
    workflow = _workflow(db)
    before = await _advance(workflow, order_id, *path) if path else None
    before_status = before.order.status if before else "DRAFT"
    before_updated = before.order.updated_at if before else order.updated_at

    result = await workflow.apply(order_id, action, actor_id=1)

    assert result.error is TransitionError.INVALID_STATE
    with pytest.raises(InvalidStateError):
        result.raise_for_error()
    db.expire_all()
    reloaded = await db.get(SalesOrder, order_id)
    assert reloaded.status == before_status
    assert reloaded.updated_at == before_updated


async def test_insufficient_stock_leaves_everything_unchanged(session_factory, db):
    seeded = await seed_catalog(session_factory, stock=(1, 5))
    order_id = (await _reference_order(db, seeded, first_qty=2)).id
    workflow = _workflow(db)
    await _advance(workflow, order_id, "SUBMIT", "APPROVE")

    result = await workflow.apply(order_id, "DELIVER", actor_id=1)

    assert result.error is TransitionError.INSUFFICIENT_STOCK
    with pytest.raises(InsufficientStockError):
        result.raise_for_error()
    assert await _stock(db) == [1, 5]
    assert (await db.execute(select(func.count()).select_from(SalesDelivery))).scalar() == 0
    reloaded = await db.get(SalesOrder, order_id)
    assert reloaded.status == "APPROVED"
    assert reloaded.delivered_at is None


async def test_degraded_ledger_still_commits_invoice(db, seeded):
    poster = FailingLedgerPoster()
    order = await _reference_order(db, seeded)
    workflow = _workflow(db, poster)
    await _advance(workflow, order.id, "SUBMIT", "APPROVE", "DELIVER")

    result = await workflow.apply(order.id, "INVOICE", actor_id=1)

    assert result.outcome is TransitionOutcome.COMMITTED_WITH_DEGRADED_LEDGER
    assert result.ok
    assert "总账服务不可用" in result.ledger_error
    assert poster.calls == 1
    assert result.order.status == "INVOICED"
    assert (await db.execute(select(func.count()).select_from(Invoice))).scalar() == 1


async def test_missing_customer_is_a_warning(db, seeded):
    order = await _reference_order(db, seeded)
    workflow = _workflow(db)
    await _advance(workflow, order.id, "SUBMIT", "APPROVE", "DELIVER")
    await db.execute(delete(Customer).where(Customer.id == seeded.customer_id))
    await db.commit()

    result = await workflow.apply(order.id, "INVOICE", actor_id=1)

    assert result.outcome is TransitionOutcome.COMMITTED
    assert result.order.status == "INVOICED"
    assert result.order.invoice.balance_amount == Decimal("2320.00")
    assert len(result.warnings) == 1
    assert str(seeded.customer_id) in result.warnings[0]


# ---------------------------------------------------------------------------
# Fields written by side effects
# ---------------------------------------------------------------------------


async def _rows(db, model):
    db.expire_all()
    columns = [c for c in model.__table__.columns]
    rows = (await db.execute(select(*columns).order_by(model.id))).mappings().all()
    return [dict(row) for row in rows]


def _changed(before, after):
    return sorted({key for old, new in zip(before, after) for key in old if old[key] != new[key]})


async def test_delivery_writes_only_quantity_and_timestamp_on_products(db, seeded):
    order_id = (await _reference_order(db, seeded)).id
    workflow = _workflow(db)
    await _advance(workflow, order_id, "SUBMIT", "APPROVE")
    before = await _rows(db, Product)

    await _advance(workflow, order_id, "DELIVER")

    after = await _rows(db, Product)
    assert set(_changed(before, after)) <= {"quantity", "updated_at"}
    assert [row["quantity"] for row in after] == [8, 4]
    assert all(row["updated_at"] is not None for row in after)


async def test_invoice_writes_only_balances_and_timestamp_on_customer(db, seeded):
    order_id = (await _reference_order(db, seeded)).id
    workflow = _workflow(db)
    await _advance(workflow, order_id, "SUBMIT", "APPROVE", "DELIVER")
    before = await _rows(db, Customer)

    await _advance(workflow, order_id, "INVOICE")

    after = await _rows(db, Customer)
    assert set(_changed(before, after)) <= {"current_balance", "total_outstanding", "updated_at"}
    assert "current_balance" in _changed(before, after)


async def test_transition_stamps_order_with_workflow_clock(db, seeded):
    order_id = (await _reference_order(db, seeded)).id
    workflow = _workflow(db)

    for action in ("SUBMIT", "APPROVE", "DELIVER", "INVOICE"):
        result = await _advance(workflow, order_id, action)
        assert result.order.updated_at == FIXED_NOW, action
