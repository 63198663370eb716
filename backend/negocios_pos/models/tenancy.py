from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

class Tenant(db.Model):
    """
    Multi-tenant root: every business ("negocio") is a Tenant.

    All users, products, categories, sales and the invoice sequence belong
    to exactly one tenant. No data may cross tenant boundaries.
    Tenants are never hard-deleted while referenced; deactivate via is_active.
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    tax_id = db.Column(db.String(64), nullable=True)  # RUC / NIT printed on invoices
    logo_url = db.Column(db.String(512), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "tax_id": self.tax_id,
            "logo_url": self.logo_url,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class InvoiceSequence(db.Model):
    """
    Per-tenant invoice counter.

    The row is the single serialization point for invoice numbering: it is
    only mutated under a row lock inside the unit of work that consumes the
    number, so a rollback also rolls back the counter.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        db.CheckConstraint("next_number >= 1", name="ck_invoice_sequences_next_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, unique=True, index=True)
    prefix = db.Column(db.String(16), nullable=False, default="FAC")
    next_number = db.Column(db.Integer, nullable=False, default=1)

    tenant = db.relationship("Tenant", backref=db.backref("invoice_sequence", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "prefix": self.prefix,
            "next_number": self.next_number,
        }
