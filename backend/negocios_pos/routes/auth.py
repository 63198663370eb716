# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/negocios_pos/routes/auth.py
"""
Authentication API routes

Self-registration does not exist: tenant users are created by a super
admin (POST /api/tenants/<id>/users) or from the CLI.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..services import auth_service
from ..services import session_service
from ..services.security_service import LOGIN_FAILED, log_security_event
from ..validation import ValidationError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)

        if not user:
            log_security_event(
                user_id=None,
                event_type=LOGIN_FAILED,
                success=False,
                reason=f"Invalid credentials for {str(email)[:255]}",
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "tenant_id": session.tenant_id,
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the bearer token of this request."""
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authorization header required"}), 401

        token = auth_header.split(" ", 1)[1]

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    tenant = user.tenant
    return jsonify({
        "user": user.to_dict(),
        "tenant_id": g.tenant_id,
        "tenant": tenant.to_dict() if tenant else None,
    }), 200


@auth_bp.put("/password")
@require_auth
def change_password_route():
    """Change own password; every session of the user is revoked afterwards."""
    try:
        data = request.get_json(silent=True) or {}
        auth_service.change_password(
            g.current_user,
            data.get("current_password"),
            data.get("new_password"),
        )
        session_service.revoke_all_user_sessions(g.current_user.id, reason="Password changed")
        return jsonify({"message": "Password updated"}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500
