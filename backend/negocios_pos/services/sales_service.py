# Overview: Service-layer operations for sales; atomic sale orchestration and receipt projections.

"""
Sale Transaction Orchestrator

create_sale() validates stock, mints the invoice number, stores the sale
header and lines, and decrements stock as one unit of work. Any failure
rolls everything back, including the invoice counter, so a rejected sale
leaves no trace.

Order inside the unit of work:
1. check_available per line, in input order (repeated products are
   validated against their cumulative quantity)
2. allocate_invoice_number (only after every line passed)
3. totals: subtotal, tax (rounded half up), total
4. insert Sale header, then each SaleLine with its stock decrement
5. commit; the receipt is read back after commit
"""

from __future__ import annotations

from flask import current_app

from ..errors import InsufficientStock, ProductNotFound, ResourceNotFound
from ..extensions import db
from ..models import Product, Sale, SaleLine
from ..validation import CustomerInfo, LineItem, ValidationError, parse_customer, parse_line_items
from . import stock_service
from .concurrency import run_atomic
from .invoice_sequence_service import allocate_invoice_number
from .tenant_service import note_foreign_lookup, require_tenant


PAYMENT_METHODS = {"efectivo", "tarjeta", "transferencia", "credito"}
DEFAULT_PAYMENT_METHOD = "efectivo"


def compute_tax_cents(subtotal_cents: int, rate_bps: int) -> int:
    """
    Tax on a subtotal, rounded half up on the magnitude.

    The sign follows the subtotal, so a return's tax mirrors the sale's.
    """
    magnitude = (abs(subtotal_cents) * rate_bps * 2 + 10_000) // 20_000
    return -magnitude if subtotal_cents < 0 else magnitude


def _tax_rate_bps() -> int:
    return int(current_app.config.get("SALES_TAX_RATE_BPS", 1900))


def _clean_payment_method(value) -> str:
    if value is None or str(value).strip() == "":
        return DEFAULT_PAYMENT_METHOD
    method = str(value).strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of: {', '.join(sorted(PAYMENT_METHODS))}"
        )
    return method


def build_sale(
    tenant_id: int,
    user_id: int,
    invoice_number: str,
    customer: CustomerInfo,
    items: list[LineItem],
    *,
    sign: int = 1,
    payment_method: str | None = None,
    return_reason: str | None = None,
) -> Sale:
    """
    Insert a sale header and its lines (no stock changes). Does not commit.

    sign=-1 stores a compensating return: quantities, line subtotals and
    header totals are negated.
    """
    subtotal = sign * sum(item.line_total_cents for item in items)
    tax = compute_tax_cents(subtotal, _tax_rate_bps())

    sale = Sale(
        tenant_id=tenant_id,
        invoice_number=invoice_number,
        customer_name=customer.name,
        customer_document=customer.document,
        customer_phone=customer.phone,
        customer_address=customer.address,
        subtotal_cents=subtotal,
        tax_cents=tax,
        total_cents=subtotal + tax,
        user_id=user_id,
        payment_method=payment_method,
        is_return=sign < 0,
        return_reason=return_reason,
    )
    db.session.add(sale)
    db.session.flush()

    for item in items:
        db.session.add(SaleLine(
            sale_id=sale.id,
            product_id=item.product_id,
            quantity=sign * item.quantity,
            unit_price_cents=item.unit_price_cents,
            line_subtotal_cents=sign * item.line_total_cents,
        ))
    db.session.flush()

    return sale


def create_sale(
    tenant_id: int | None,
    user_id: int,
    customer=None,
    payment_method=None,
    line_items=None,
) -> dict:
    """
    Record a sale atomically and return its receipt.

    Raises:
        ValidationError: malformed input (before any transaction opens)
        NoTenantAssigned: no tenant context
        ProductNotFound: a line references a missing/inactive/foreign product
        InsufficientStock: cumulative quantity exceeds current stock
        ConfigurationError: tenant has no invoice sequence
        InfrastructureError: persistence failure after rollback
    """
    tenant_id = require_tenant(tenant_id)
    items = parse_line_items(line_items)
    if not items:
        raise ValidationError("At least one line item is required")
    customer_info = parse_customer(customer)
    method = _clean_payment_method(payment_method)

    def _op() -> int:
        requested: dict[int, int] = {}
        for item in items:
            level = stock_service.check_available(tenant_id, item.product_id)
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
            if requested[item.product_id] > level.current_stock:
                raise InsufficientStock(level.product_name, level.current_stock, requested[item.product_id])

        invoice_number = allocate_invoice_number(tenant_id)
        sale = build_sale(
            tenant_id,
            user_id,
            invoice_number,
            customer_info,
            items,
            payment_method=method,
        )

        for item in items:
            stock_service.decrement(
                tenant_id,
                item.product_id,
                item.quantity,
                user_id=user_id,
                sale_id=sale.id,
                reason=f"Sale {invoice_number}",
            )
        return sale.id

    try:
        sale_id = run_atomic(_op)
    except ProductNotFound as e:
        note_foreign_lookup(Product, e.product_id, tenant_id)
        current_app.logger.warning("Sale rejected for tenant %s: %s", tenant_id, e)
        raise
    except InsufficientStock as e:
        current_app.logger.warning("Sale rejected for tenant %s: %s", tenant_id, e)
        raise

    receipt = get_sale_receipt(tenant_id, sale_id)
    current_app.logger.info(
        "Sale %s committed for tenant %s (total %s cents)",
        receipt["sale"]["invoice_number"], tenant_id, receipt["sale"]["total_cents"],
    )
    return receipt


def receipt_for(sale: Sale) -> dict:
    """Receipt projection: sale header, lines with product names, business and operator."""
    tenant = sale.tenant
    return {
        "sale": sale.to_dict(),
        "lines": [line.to_dict() for line in sale.lines],
        "business": {
            "name": tenant.name,
            "address": tenant.address,
            "phone": tenant.phone,
            "email": tenant.email,
            "tax_id": tenant.tax_id,
            "logo_url": tenant.logo_url,
        },
        "operator_name": sale.user.name if sale.user else None,
    }


def get_sale_receipt(tenant_id: int | None, sale_id: int) -> dict:
    tenant_id = require_tenant(tenant_id)
    sale = db.session.query(Sale).filter_by(id=sale_id, tenant_id=tenant_id).first()
    if sale is None:
        note_foreign_lookup(Sale, sale_id, tenant_id)
        raise ResourceNotFound("Sale", sale_id)
    return receipt_for(sale)


def list_sales(tenant_id: int | None, limit: int = 50, include_returns: bool = True) -> list[dict]:
    """Newest first, each with the operator's name."""
    tenant_id = require_tenant(tenant_id)
    query = db.session.query(Sale).filter(Sale.tenant_id == tenant_id)
    if not include_returns:
        query = query.filter(Sale.is_return.is_(False))
    sales = query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()

    results = []
    for sale in sales:
        row = sale.to_dict()
        row["operator_name"] = sale.user.name if sale.user else None
        results.append(row)
    return results
