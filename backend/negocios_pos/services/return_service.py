# Overview: Service-layer operations for returns; compensating sales that put stock back.

"""
Return Transaction Orchestrator

A return is stored as a Sale with is_return=True and negative totals. Its
invoice number is "DEV-" followed by a number from the tenant's regular
invoice sequence (returns and sales share one counter). Stock goes back up
by the returned quantity, with a RETURN movement per line.

No availability check applies, but every product must still exist in the
caller's tenant. Same atomicity as a sale.
"""

from __future__ import annotations

from flask import current_app

from ..errors import EmptyReturn, ProductNotFound
from ..models import Product
from ..validation import clean_reason, parse_customer, parse_line_items
from . import stock_service
from .concurrency import run_atomic
from .invoice_sequence_service import allocate_invoice_number
from .sales_service import build_sale, get_sale_receipt
from .tenant_service import note_foreign_lookup, require_tenant


RETURN_PAYMENT_METHOD = "devolucion"


def create_return(
    tenant_id: int | None,
    user_id: int,
    customer=None,
    reason=None,
    line_items=None,
) -> dict:
    """
    Record a return atomically and return its receipt.

    Raises:
        EmptyReturn: no line items
        ValidationError: malformed input
        NoTenantAssigned / ProductNotFound / ConfigurationError / InfrastructureError
    """
    tenant_id = require_tenant(tenant_id)
    items = parse_line_items(line_items)
    if not items:
        raise EmptyReturn()
    customer_info = parse_customer(customer)
    reason = clean_reason(reason)
    prefix = current_app.config.get("RETURN_INVOICE_PREFIX", "DEV-")

    def _op() -> int:
        for item in items:
            stock_service.check_available(tenant_id, item.product_id, active_only=False)

        invoice_number = prefix + allocate_invoice_number(tenant_id)
        sale = build_sale(
            tenant_id,
            user_id,
            invoice_number,
            customer_info,
            items,
            sign=-1,
            payment_method=RETURN_PAYMENT_METHOD,
            return_reason=reason,
        )

        for item in items:
            stock_service.increment(
                tenant_id,
                item.product_id,
                item.quantity,
                user_id=user_id,
                sale_id=sale.id,
                reason=reason or f"Return {invoice_number}",
            )
        return sale.id

    try:
        sale_id = run_atomic(_op)
    except ProductNotFound as e:
        note_foreign_lookup(Product, e.product_id, tenant_id)
        current_app.logger.warning("Return rejected for tenant %s: %s", tenant_id, e)
        raise

    receipt = get_sale_receipt(tenant_id, sale_id)
    current_app.logger.info(
        "Return %s committed for tenant %s (total %s cents)",
        receipt["sale"]["invoice_number"], tenant_id, receipt["sale"]["total_cents"],
    )
    return receipt
