# Overview: Flask API routes for tenant administration; super admin only.

# backend/negocios_pos/routes/tenants.py
"""
Tenant ("negocio") administration.

Only super admins reach these routes. Creating a tenant also creates its
invoice sequence and default category.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_super_admin
from ..errors import PosError
from ..models.auth import ROLE_WORKER
from ..services import auth_service, tenant_service
from ..services.invoice_sequence_service import get_invoice_sequence
from ..validation import ValidationError, ConflictError

tenants_bp = Blueprint("tenants", __name__, url_prefix="/api/tenants")


@tenants_bp.post("")
@require_auth
@require_super_admin
def create_tenant_route():
    """
    Body: {"name": "...", "address": "...", "phone": "...", "email": "...",
           "tax_id": "...", "logo_url": "...", "invoice_prefix": "FAC"}
    """
    try:
        data = dict(request.get_json(silent=True) or {})
        invoice_prefix = data.pop("invoice_prefix", None)
        tenant = tenant_service.create_tenant(data, invoice_prefix=invoice_prefix)
        sequence = get_invoice_sequence(tenant.id)
        return jsonify({
            "tenant": tenant.to_dict(),
            "invoice_sequence": sequence.to_dict() if sequence else None,
        }), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create tenant")
        return jsonify({"error": "Internal server error"}), 500


@tenants_bp.get("")
@require_auth
@require_super_admin
def list_tenants_route():
    tenants = tenant_service.list_tenants()
    return jsonify({"items": [t.to_dict() for t in tenants]}), 200


@tenants_bp.delete("/<int:tenant_id>")
@require_auth
@require_super_admin
def deactivate_tenant_route(tenant_id: int):
    try:
        return jsonify({"tenant": tenant_service.deactivate_tenant(tenant_id).to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@tenants_bp.get("/<int:tenant_id>/users")
@require_auth
@require_super_admin
def list_users_route(tenant_id: int):
    try:
        tenant_service.get_tenant(tenant_id)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    users = auth_service.list_users(tenant_id)
    return jsonify({"items": [u.to_dict() for u in users]}), 200


@tenants_bp.post("/<int:tenant_id>/users")
@require_auth
@require_super_admin
def create_user_route(tenant_id: int):
    """Body: {"name": "...", "email": "...", "password": "...", "role": "admin|trabajador"}"""
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.create_user(
            tenant_id,
            data.get("name"),
            data.get("email"),
            data.get("password"),
            role=data.get("role") or ROLE_WORKER,
        )
        return jsonify({"user": user.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@tenants_bp.delete("/users/<int:user_id>")
@require_auth
@require_super_admin
def deactivate_user_route(user_id: int):
    try:
        user = auth_service.deactivate_user(user_id)
        return jsonify({"user": user.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
