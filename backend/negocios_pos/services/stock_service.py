# Overview: Service-layer operations for stock; per-product quantity ledger with movement history.

"""
Stock Ledger

Product.stock is the available quantity; every change to it appends a
StockMovement (before/after snapshot, delta, reason) in the same
transaction. check_available / decrement / increment run inside the
caller's unit of work and hold the product row lock until it commits.
add_stock / adjust_stock are complete operations with their own unit of
work.

All reads and writes are scoped by tenant_id: a product owned by another
tenant is indistinguishable from a missing one.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InsufficientStock, ProductNotFound
from ..extensions import db
from ..models import Product, StockMovement
from ..time_utils import utcnow
from ..validation import MAX_QUANTITY, ValidationError, clean_reason
from .concurrency import lock_for_update, run_atomic


MOVEMENT_SALE = "SALE"
MOVEMENT_RETURN = "RETURN"
MOVEMENT_RESTOCK = "RESTOCK"
MOVEMENT_ADJUSTMENT = "ADJUSTMENT"

STATUS_OUT = "Agotado"
STATUS_LOW = "Bajo"


@dataclass(frozen=True)
class StockLevel:
    product_id: int
    product_name: str
    current_stock: int


def _locked_product(tenant_id: int, product_id: int, *, active_only: bool = True) -> Product:
    query = db.session.query(Product).filter(
        Product.id == product_id,
        Product.tenant_id == tenant_id,
    )
    if active_only:
        query = query.filter(Product.is_active.is_(True))

    product = lock_for_update(query).first()
    if product is None:
        raise ProductNotFound(product_id)
    return product


def check_available(tenant_id: int, product_id: int, *, active_only: bool = True) -> StockLevel:
    """
    Read a product's current stock under a row lock.

    Does not reserve anything: the caller compares the quantity it needs and
    then calls decrement() in the same unit of work.

    Raises:
        ProductNotFound: missing, inactive or owned by another tenant
    """
    product = _locked_product(tenant_id, product_id, active_only=active_only)
    return StockLevel(
        product_id=product.id,
        product_name=product.name,
        current_stock=product.stock,
    )


def _apply_delta(
    product: Product,
    delta: int,
    *,
    movement_type: str,
    user_id: int | None,
    sale_id: int | None = None,
    reason: str | None = None,
) -> StockMovement:
    before = product.stock
    after = before + delta

    product.stock = after
    product.updated_at = utcnow()

    movement = StockMovement(
        tenant_id=product.tenant_id,
        product_id=product.id,
        movement_type=movement_type,
        quantity_delta=delta,
        stock_before=before,
        stock_after=after,
        reason=reason,
        sale_id=sale_id,
        user_id=user_id,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def decrement(
    tenant_id: int,
    product_id: int,
    quantity: int,
    *,
    user_id: int | None = None,
    sale_id: int | None = None,
    reason: str | None = None,
) -> int:
    """
    Remove quantity from stock and return the new level.

    The caller already validated quantity <= stock in the same unit of work;
    the check is repeated here so stock can never go negative.
    """
    product = _locked_product(tenant_id, product_id)
    if quantity > product.stock:
        raise InsufficientStock(product.name, product.stock, quantity)

    _apply_delta(
        product,
        -quantity,
        movement_type=MOVEMENT_SALE,
        user_id=user_id,
        sale_id=sale_id,
        reason=reason,
    )
    return product.stock


def increment(
    tenant_id: int,
    product_id: int,
    quantity: int,
    *,
    user_id: int | None = None,
    sale_id: int | None = None,
    reason: str | None = None,
    movement_type: str = MOVEMENT_RETURN,
) -> int:
    """Add quantity back to stock (no upper bound) and return the new level."""
    product = _locked_product(tenant_id, product_id, active_only=False)
    _apply_delta(
        product,
        quantity,
        movement_type=movement_type,
        user_id=user_id,
        sale_id=sale_id,
        reason=reason,
    )
    return product.stock


def _check_quantity(key: str, value, *, allow_zero: bool) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{key} must be {'>= 0' if allow_zero else '> 0'}")
    if value > MAX_QUANTITY:
        raise ValidationError(f"{key} cannot exceed {MAX_QUANTITY}")
    return value


def add_stock(tenant_id: int, product_id: int, quantity: int, user_id: int | None, reason: str | None = None) -> StockMovement:
    """Manual restock (merchandise received). Atomic."""
    quantity = _check_quantity("quantity", quantity, allow_zero=False)
    reason = clean_reason(reason)

    def _op() -> int:
        product = _locked_product(tenant_id, product_id)
        movement = _apply_delta(
            product,
            quantity,
            movement_type=MOVEMENT_RESTOCK,
            user_id=user_id,
            reason=reason or "Restock",
        )
        return movement.id

    movement_id = run_atomic(_op)
    return db.session.get(StockMovement, movement_id)


def adjust_stock(tenant_id: int, product_id: int, new_stock: int, user_id: int | None, reason: str | None = None) -> StockMovement | None:
    """
    Set stock to an absolute value after a physical count. Atomic.

    Returns the ADJUSTMENT movement, or None when the count matched.
    """
    new_stock = _check_quantity("new_stock", new_stock, allow_zero=True)
    reason = clean_reason(reason)

    def _op() -> int | None:
        product = _locked_product(tenant_id, product_id)
        delta = new_stock - product.stock
        if delta == 0:
            return None
        movement = _apply_delta(
            product,
            delta,
            movement_type=MOVEMENT_ADJUSTMENT,
            user_id=user_id,
            reason=reason or "Physical count",
        )
        return movement.id

    movement_id = run_atomic(_op)
    if movement_id is None:
        return None
    return db.session.get(StockMovement, movement_id)


def list_low_stock(tenant_id: int) -> list[dict]:
    """Active products at or below their minimum, most urgent first."""
    products = (
        db.session.query(Product)
        .filter(
            Product.tenant_id == tenant_id,
            Product.is_active.is_(True),
            Product.stock <= Product.min_stock,
        )
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )

    results = []
    for product in products:
        row = product.to_dict()
        row["status"] = STATUS_OUT if product.stock == 0 else STATUS_LOW
        results.append(row)
    return results


def list_movements(tenant_id: int, product_id: int | None = None, limit: int = 100) -> list[StockMovement]:
    query = db.session.query(StockMovement).filter(StockMovement.tenant_id == tenant_id)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    return (
        query.order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )
