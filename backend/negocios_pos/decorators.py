# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import PosError
from .services import session_service, tenant_service
from .services.security_service import ROLE_DENIED, log_security_event
from .validation import ValidationError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'tenant_id')


def require_auth(f):
    """
    Require authentication and establish tenant context.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.tenant_id: The tenant the request runs in (None only for a super
      admin without ?tenant_id=)
    - g.session_context: The full SessionContext object

    Returns 401 for a missing/invalid/expired token; tenant resolution
    errors are answered with their own status.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        try:
            tenant_id = tenant_service.resolve_tenant(context.user, request.args.get("tenant_id"))
        except (PosError, ValidationError) as e:
            status = getattr(e, "status_code", 400)
            return jsonify({"error": str(e), "details": getattr(e, "details", {})}), status

        g.current_user = context.user
        g.tenant_id = tenant_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """
    Require one of the given roles. Super admins always pass.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            if user.is_super_admin or user.role in roles:
                return f(*args, **kwargs)

            log_security_event(
                user_id=user.id,
                event_type=ROLE_DENIED,
                success=False,
                reason=f"Role {user.role} not in {', '.join(roles)}",
                tenant_id=g.tenant_id,
            )
            return jsonify({
                "error": "Permission denied",
                "required_roles": list(roles),
            }), 403

        return decorated_function
    return decorator


def require_super_admin(f):
    """Require the cross-tenant super admin capability."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if not g.current_user.is_super_admin:
            log_security_event(
                user_id=g.current_user.id,
                event_type=ROLE_DENIED,
                success=False,
                reason="Super admin access required",
                tenant_id=g.tenant_id,
            )
            return jsonify({"error": "Super admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function
