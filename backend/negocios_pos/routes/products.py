# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/negocios_pos/routes/products.py
"""
Product catalog routes, scoped to g.tenant_id.

Reads are open to every tenant user; writes require the admin role.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..errors import PosError
from ..models.auth import ROLE_ADMIN
from ..services import products_service
from ..validation import ValidationError, ConflictError

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    Query params:
    - q: name substring or exact EAN (optional)
    - include_inactive: "true" to include soft-deleted products
    """
    search = request.args.get("q")
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    try:
        items = products_service.list_products(g.tenant_id, search=search, include_inactive=include_inactive)
        return jsonify({"items": items, "count": len(items)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.get("/ean/<ean_code>")
@require_auth
def get_by_ean(ean_code: str):
    try:
        return jsonify(products_service.get_product_by_ean(g.tenant_id, ean_code)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.get("/categories")
@require_auth
def list_categories():
    try:
        return jsonify({"items": products_service.list_categories(g.tenant_id)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_product():
    try:
        payload = request.get_json(silent=True)
        product = products_service.create_product(g.tenant_id, payload, user_id=g.current_user.id)
        return jsonify(product), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_product(product_id: int):
    try:
        payload = request.get_json(silent=True)
        return jsonify(products_service.update_product(g.tenant_id, product_id, payload)), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_product(product_id: int):
    try:
        return jsonify(products_service.delete_product(g.tenant_id, product_id)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
