# Overview: Service-layer operations for invoice numbering; per-tenant gap-free sequence.

"""
Invoice Sequence Allocator

One InvoiceSequence row per tenant holds the prefix and the next number to
hand out. Allocation locks that row for the rest of the caller's unit of
work, so numbers are unique per tenant and never reused; a rollback of the
enclosing transaction also rolls back the counter (no gaps from failed
sales).

USAGE (inside run_atomic / unit_of_work only, never commits):
    invoice_number = allocate_invoice_number(tenant_id)   # "FAC000001"
"""

from __future__ import annotations

from flask import current_app

from ..errors import ConfigurationError
from ..extensions import db
from ..models import InvoiceSequence
from .concurrency import lock_for_update


DEFAULT_PREFIX = "FAC"
DEFAULT_WIDTH = 6


def format_invoice_number(prefix: str, number: int, width: int | None = None) -> str:
    if width is None:
        width = current_app.config.get("INVOICE_NUMBER_WIDTH", DEFAULT_WIDTH)
    return f"{prefix}{number:0{width}d}"


def allocate_invoice_number(tenant_id: int) -> str:
    """
    Mint the next invoice number for a tenant.

    Locks the sequence row (FOR UPDATE), returns prefix + zero-padded number
    and advances next_number by one. Must run inside an open unit of work.

    Raises:
        ConfigurationError: the tenant has no sequence row
    """
    seq = lock_for_update(
        db.session.query(InvoiceSequence).filter_by(tenant_id=tenant_id)
    ).first()

    if seq is None:
        raise ConfigurationError(
            "No invoicing sequence configured for this tenant",
            details={"tenant_id": tenant_id},
        )

    number = seq.next_number
    seq.next_number = number + 1
    db.session.flush()

    return format_invoice_number(seq.prefix, number)


def ensure_invoice_sequence(tenant_id: int, prefix: str | None = None) -> InvoiceSequence:
    """Create the tenant's sequence row if missing (idempotent). Does not commit."""
    seq = db.session.query(InvoiceSequence).filter_by(tenant_id=tenant_id).first()
    if seq:
        return seq

    if prefix is None:
        prefix = current_app.config.get("INVOICE_PREFIX", DEFAULT_PREFIX)

    seq = InvoiceSequence(tenant_id=tenant_id, prefix=prefix, next_number=1)
    db.session.add(seq)
    db.session.flush()
    return seq


def get_invoice_sequence(tenant_id: int) -> InvoiceSequence | None:
    return db.session.query(InvoiceSequence).filter_by(tenant_id=tenant_id).first()
