"""
Products Service with Multi-Tenant Support

Thin catalog CRUD. Every query filters by tenant_id; a product id from
another tenant behaves exactly like a missing one. Catalog updates never
touch stock: initial stock is booked as a RESTOCK movement on create, and
later changes go through stock_service.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..errors import ProductNotFound
from ..extensions import db
from ..models import Category, Product
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, enforce_rules_product, validate_payload
from . import stock_service
from .concurrency import run_atomic
from .tenant_service import note_foreign_lookup, require_tenant

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "ean_code", "name", "description", "purchase_price_cents",
        "sale_price_cents", "stock", "min_stock", "category_id",
    },
    required_on_create={"name", "sale_price_cents"},
)

# Stock is deliberately absent: it only changes through the ledger
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "ean_code", "name", "description", "purchase_price_cents",
        "sale_price_cents", "min_stock", "category_id", "is_active",
    },
)


def _get_product(tenant_id: int, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, tenant_id=tenant_id).first()
    if product is None:
        note_foreign_lookup(Product, product_id, tenant_id)
        raise ProductNotFound(product_id)
    return product


def _check_category(tenant_id: int, category_id) -> None:
    if category_id is None:
        return
    exists = db.session.query(Category.id).filter_by(id=category_id, tenant_id=tenant_id).first()
    if not exists:
        raise ValidationError(f"Unknown category: {category_id}")


def _check_ean_free(tenant_id: int, ean_code: str | None, exclude_id: int | None = None) -> None:
    if not ean_code:
        return
    query = db.session.query(Product.id).filter(Product.tenant_id == tenant_id, Product.ean_code == ean_code)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("EAN code already exists for this business.")


def list_products(tenant_id: int | None, search: str | None = None, include_inactive: bool = False) -> list[dict]:
    """Name substring (case-insensitive) or exact EAN match, ordered by name."""
    tenant_id = require_tenant(tenant_id)
    query = db.session.query(Product).filter(Product.tenant_id == tenant_id)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))

    search = (search or "").strip()
    if search:
        query = query.filter(or_(Product.name.ilike(f"%{search}%"), Product.ean_code == search))

    return [p.to_dict() for p in query.order_by(Product.name.asc(), Product.id.asc()).all()]


def get_product_by_ean(tenant_id: int | None, ean_code: str) -> dict:
    tenant_id = require_tenant(tenant_id)
    product = (
        db.session.query(Product)
        .filter_by(tenant_id=tenant_id, ean_code=ean_code, is_active=True)
        .first()
    )
    if product is None:
        raise ProductNotFound(ean_code)
    return product.to_dict()


def create_product(tenant_id: int | None, payload: dict, user_id: int | None = None) -> dict:
    tenant_id = require_tenant(tenant_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
    enforce_rules_product(patch)
    _check_category(tenant_id, patch.get("category_id"))
    _check_ean_free(tenant_id, patch.get("ean_code"))

    initial_stock = patch.pop("stock", None) or 0

    def _op() -> int:
        product = Product(tenant_id=tenant_id, stock=0, **patch)
        db.session.add(product)
        db.session.flush()
        if initial_stock:
            stock_service.increment(
                tenant_id,
                product.id,
                initial_stock,
                user_id=user_id,
                reason="Initial stock",
                movement_type=stock_service.MOVEMENT_RESTOCK,
            )
        return product.id

    product_id = run_atomic(_op)
    return db.session.get(Product, product_id).to_dict()


def update_product(tenant_id: int | None, product_id: int, payload: dict) -> dict:
    tenant_id = require_tenant(tenant_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)

    product = _get_product(tenant_id, product_id)
    if "category_id" in patch:
        _check_category(tenant_id, patch["category_id"])
    if "ean_code" in patch:
        _check_ean_free(tenant_id, patch["ean_code"], exclude_id=product.id)

    for key, value in patch.items():
        setattr(product, key, value)

    db.session.commit()
    return product.to_dict()


def delete_product(tenant_id: int | None, product_id: int) -> dict:
    """Soft delete: the product disappears from sales but keeps its history."""
    tenant_id = require_tenant(tenant_id)
    product = _get_product(tenant_id, product_id)
    product.is_active = False
    db.session.commit()
    return product.to_dict()


def list_categories(tenant_id: int | None) -> list[dict]:
    tenant_id = require_tenant(tenant_id)
    categories = (
        db.session.query(Category)
        .filter(Category.tenant_id == tenant_id)
        .order_by(Category.name.asc())
        .all()
    )
    return [c.to_dict() for c in categories]
