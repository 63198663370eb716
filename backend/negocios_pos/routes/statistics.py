# Overview: Flask API routes for sales statistics; parses period filters and returns JSON responses.

"""
Statistics Routes

Query params (both routes):
- period: hoy (default), semana, mes, personalizado
- start_date, end_date: YYYY-MM-DD, required for personalizado
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role, require_super_admin
from ..errors import PosError
from ..models.auth import ROLE_ADMIN
from ..services import statistics_service
from ..validation import ValidationError

statistics_bp = Blueprint("statistics", __name__, url_prefix="/api/statistics")


def _period_args() -> dict:
    return {
        "period": request.args.get("period"),
        "start_date": request.args.get("start_date"),
        "end_date": request.args.get("end_date"),
    }


@statistics_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def tenant_statistics_route():
    """Statistics of the caller's tenant (super admins pass ?tenant_id=)."""
    try:
        return jsonify(statistics_service.tenant_statistics(g.tenant_id, **_period_args())), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute statistics")
        return jsonify({"error": "Internal server error"}), 500


@statistics_bp.get("/tenants/<int:tenant_id>")
@require_auth
@require_super_admin
def business_statistics_route(tenant_id: int):
    try:
        return jsonify(statistics_service.business_statistics(tenant_id, **_period_args())), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute business statistics")
        return jsonify({"error": "Internal server error"}), 500
