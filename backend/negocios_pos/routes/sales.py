# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/negocios_pos/routes/sales.py
"""
Sales and returns API routes.

The tenant comes from g.tenant_id (set by @require_auth); the operator is
g.current_user. Domain errors are answered with their own status and
details, anything else is logged and answered with a generic 500.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import PosError
from ..services import return_service, sales_service
from ..validation import ValidationError


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Record a sale.

    Body:
    {
        "line_items": [{"product_id": 1, "quantity": 3, "unit_price_cents": 1000}],
        "customer": {"name": "...", "document": "...", "phone": "...", "address": "..."},
        "payment_method": "efectivo"
    }

    Returns 201 with the receipt.
    """
    try:
        data = request.get_json(silent=True) or {}
        receipt = sales_service.create_sale(
            g.tenant_id,
            g.current_user.id,
            customer=data.get("customer"),
            payment_method=data.get("payment_method"),
            line_items=data.get("line_items"),
        )
        return jsonify(receipt), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/returns")
@require_auth
def create_return_route():
    """
    Record a return (compensating sale with negative totals).

    Body: same as a sale, with "reason" instead of "payment_method".
    """
    try:
        data = request.get_json(silent=True) or {}
        receipt = return_service.create_return(
            g.tenant_id,
            g.current_user.id,
            customer=data.get("customer"),
            reason=data.get("reason"),
            line_items=data.get("line_items"),
        )
        return jsonify(receipt), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create return")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    limit = max(1, min(request.args.get("limit", default=50, type=int) or 50, 500))
    include_returns = request.args.get("include_returns", "true").lower() != "false"
    try:
        sales = sales_service.list_sales(g.tenant_id, limit=limit, include_returns=include_returns)
        return jsonify({"items": sales, "count": len(sales)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/<int:sale_id>/receipt")
@require_auth
def receipt_route(sale_id: int):
    try:
        return jsonify(sales_service.get_sale_receipt(g.tenant_id, sale_id)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
