"""
销售单核心功能模块
- 响应构建
"""

from app.models.sales_order import SalesOrder
from app.schemas.sales_order import (
    CustomerSummary, DeliveryItemResponse, DeliveryResponse, InvoiceSummary,
    SalesOrderItemResponse, SalesOrderResponse
)


def build_order_response(order: SalesOrder) -> SalesOrderResponse:
    """构建销售单响应"""
    customer = None
    if order.customer:
        customer = CustomerSummary(
            id=order.customer.id,
            name=order.customer.name,
            code=order.customer.code,
            current_balance=float(order.customer.current_balance or 0),
            total_outstanding=float(order.customer.total_outstanding or 0),
        )

    invoice = None
    if order.invoice:
        invoice = InvoiceSummary(
            id=order.invoice.id,
            invoice_number=order.invoice.invoice_number,
            subtotal=float(order.invoice.subtotal),
            tax_amount=float(order.invoice.tax_amount),
            total_amount=float(order.invoice.total_amount),
            paid_amount=float(order.invoice.paid_amount),
            balance_amount=float(order.invoice.balance_amount),
            status=order.invoice.status,
            issue_date=order.invoice.issue_date,
            due_date=order.invoice.due_date,
            description=order.invoice.description,
        )

    return SalesOrderResponse(
        id=order.id,
        order_number=order.order_number,
        status=order.status,
        status_display=order.status_display,
        approval_status=order.approval_status,
        customer_id=order.customer_id,
        customer=customer,
        quote_id=order.quote_id,
        subtotal=float(order.subtotal or 0),
        tax_rate=float(order.tax_rate or 0),
        tax=float(order.tax or 0),
        total_amount=float(order.total_amount or 0),
        invoice_id=order.invoice_id,
        invoice=invoice,
        notes=order.notes,
        submitted_at=order.submitted_at,
        approved_at=order.approved_at,
        approved_by=order.approved_by,
        delivered_at=order.delivered_at,
        created_by=order.created_by,
        created_at=order.created_at,
        updated_at=order.updated_at,
        items=[
            SalesOrderItemResponse(
                id=item.id,
                product_id=item.product_id,
                product_name=item.product.name if item.product else "",
                product_sku=item.product.sku if item.product else None,
                quantity=item.quantity,
                unit_price=float(item.unit_price),
                discount=float(item.discount or 0),
                line_total=float(item.line_total),
            )
            for item in order.items
        ],
        deliveries=[
            DeliveryResponse(
                id=delivery.id,
                delivery_number=delivery.delivery_number,
                status=delivery.status,
                dispatched_at=delivery.dispatched_at,
                delivered_at=delivery.delivered_at,
                created_by=delivery.created_by,
                items=[
                    DeliveryItemResponse(id=d.id, product_id=d.product_id, quantity=d.quantity)
                    for d in delivery.items
                ],
            )
            for delivery in order.deliveries
        ],
    )
