from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

class Sale(db.Model):
    """
    Committed sale (or return) with header totals.

    Created atomically with its lines and never updated afterwards;
    corrections are new compensating sales (is_return=True) with negative
    totals. Invariant: total_cents == subtotal_cents + tax_cents.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "invoice_number", name="uq_sales_tenant_invoice"),
        db.Index("ix_sales_tenant_created", "tenant_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    # Human-readable invoice number (e.g., "FAC000123", "DEV-FAC000124")
    invoice_number = db.Column(db.String(64), nullable=False)

    # Customer snapshot (free text, not normalized)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_document = db.Column(db.String(64), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_address = db.Column(db.String(255), nullable=True)

    # Totals (all amounts in cents, negative for returns)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    payment_method = db.Column(db.String(32), nullable=True)

    is_return = db.Column(db.Boolean, nullable=False, default=False, index=True)
    return_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    tenant = db.relationship("Tenant", backref=db.backref("sales", lazy=True))
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "invoice_number": self.invoice_number,
            "customer_name": self.customer_name,
            "customer_document": self.customer_document,
            "customer_phone": self.customer_phone,
            "customer_address": self.customer_address,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "user_id": self.user_id,
            "payment_method": self.payment_method,
            "is_return": self.is_return,
            "return_reason": self.return_reason,
            "created_at": to_utc_z(self.created_at),
        }

class SaleLine(db.Model):
    """
    Individual line items on a sale.

    quantity and line_subtotal_cents carry the sign of the parent sale
    (negative on returns). unit_price_cents is a snapshot taken at sale time.
    """
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_subtotal_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship(
        "Sale",
        backref=db.backref("lines", lazy=True, cascade="all, delete-orphan", order_by="SaleLine.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_subtotal_cents": self.line_subtotal_cents,
        }
