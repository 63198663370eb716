# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/negocios_pos/routes/inventory.py
"""Stock ledger routes: restock, physical-count adjustment, low stock and movement history."""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..errors import PosError
from ..models.auth import ROLE_ADMIN
from ..services import stock_service
from ..services.tenant_service import require_tenant
from ..validation import ValidationError, _coerce_int

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/restock")
@require_auth
@require_role(ROLE_ADMIN)
def restock_route():
    """Body: {"product_id": 1, "quantity": 5, "reason": "..."}"""
    try:
        data = request.get_json(silent=True) or {}
        tenant_id = require_tenant(g.tenant_id)
        product_id = _coerce_int("product_id", data.get("product_id"))
        quantity = _coerce_int("quantity", data.get("quantity"))

        movement = stock_service.add_stock(
            tenant_id, product_id, quantity, g.current_user.id, reason=data.get("reason")
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to restock product")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/adjust")
@require_auth
@require_role(ROLE_ADMIN)
def adjust_route():
    """Body: {"product_id": 1, "new_stock": 12, "reason": "..."}"""
    try:
        data = request.get_json(silent=True) or {}
        tenant_id = require_tenant(g.tenant_id)
        product_id = _coerce_int("product_id", data.get("product_id"))
        new_stock = _coerce_int("new_stock", data.get("new_stock"))

        movement = stock_service.adjust_stock(
            tenant_id, product_id, new_stock, g.current_user.id, reason=data.get("reason")
        )
        return jsonify({"movement": movement.to_dict() if movement else None}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/low-stock")
@require_auth
def low_stock_route():
    try:
        items = stock_service.list_low_stock(require_tenant(g.tenant_id))
        return jsonify({"items": items, "count": len(items)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/movements")
@require_auth
def movements_route():
    product_id = request.args.get("product_id", type=int)
    limit = max(1, min(request.args.get("limit", default=100, type=int) or 100, 1000))
    try:
        movements = stock_service.list_movements(require_tenant(g.tenant_id), product_id=product_id, limit=limit)
        return jsonify({"items": [m.to_dict() for m in movements]}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
