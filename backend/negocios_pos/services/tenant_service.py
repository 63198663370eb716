"""
Multi-Tenant Service: Tenant Resolution and Isolation Guard

Every read and write in the transactional core is scoped to one tenant id.
The tenant comes from the acting user, never from client input, except for
super admins who hold the cross-tenant capability and pick a tenant with
?tenant_id=.

SECURITY INVARIANTS:
1. Regular users always act inside their own tenant
2. A requested tenant_id from a regular user is ignored (and logged)
3. Records owned by another tenant are reported as "not found"
4. Cross-tenant lookups are logged as security events

USAGE:
    from negocios_pos.services.tenant_service import resolve_tenant, require_tenant

    tenant_id = require_tenant(resolve_tenant(g.current_user, request.args.get("tenant_id")))
"""

from __future__ import annotations

from ..errors import NoTenantAssigned, ResourceNotFound, UserInactiveOrMissing
from ..extensions import db
from ..models import Category, Tenant, User
from ..validation import ModelValidationPolicy, ValidationError, _coerce_int, validate_payload
from .concurrency import run_atomic
from .invoice_sequence_service import ensure_invoice_sequence
from .security_service import (
    CROSS_TENANT_ACCESS_DENIED,
    TENANT_CONTEXT_MISSING,
    current_user_id,
    log_security_event,
)


DEFAULT_CATEGORY = "General"

TENANT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address", "phone", "email", "tax_id", "logo_url"},
    required_on_create={"name"},
)


def resolve_tenant(user, requested_tenant_id=None) -> int | None:
    """
    Resolve the tenant an operation runs in.

    Args:
        user: acting User (or its id)
        requested_tenant_id: tenant chosen by a super admin (query string)

    Returns:
        The tenant id, or None for a super admin working unscoped

    Raises:
        UserInactiveOrMissing: user no longer exists or was deactivated
        NoTenantAssigned: regular user without a tenant
    """
    user_id = getattr(user, "id", user)
    current = db.session.get(User, user_id) if user_id is not None else None

    if current is None or not current.is_active:
        raise UserInactiveOrMissing()

    if current.is_super_admin:
        if requested_tenant_id is None or requested_tenant_id == "":
            return None
        tenant_id = _coerce_int("tenant_id", requested_tenant_id)
        if db.session.get(Tenant, tenant_id) is None:
            raise ResourceNotFound("Tenant", tenant_id)
        return tenant_id

    if current.tenant_id is None:
        raise NoTenantAssigned()

    if requested_tenant_id not in (None, ""):
        try:
            requested = _coerce_int("tenant_id", requested_tenant_id)
        except ValidationError:
            requested = None
        if requested != current.tenant_id:
            log_security_event(
                user_id=current.id,
                event_type=CROSS_TENANT_ACCESS_DENIED,
                success=False,
                reason=f"User of tenant {current.tenant_id} requested tenant {requested_tenant_id}",
                tenant_id=current.tenant_id,
            )

    return current.tenant_id


def require_tenant(tenant_id: int | None) -> int:
    """Operations that write tenant data cannot run unscoped."""
    if tenant_id is None:
        log_security_event(
            user_id=current_user_id(),
            event_type=TENANT_CONTEXT_MISSING,
            success=False,
            reason="Tenant-scoped operation without a selected tenant",
        )
        raise NoTenantAssigned("A tenant must be selected for this operation")
    return tenant_id


def note_foreign_lookup(model, record_id, tenant_id: int | None) -> None:
    """
    Log a lookup that missed because the record belongs to another tenant.

    Call after the failed unit of work rolled back. Genuinely missing
    records are not logged.
    """
    if record_id is None or tenant_id is None:
        return
    owner = db.session.query(model.tenant_id).filter(model.id == record_id).scalar()
    if owner is None or owner == tenant_id:
        return

    log_security_event(
        user_id=current_user_id(),
        event_type=CROSS_TENANT_ACCESS_DENIED,
        success=False,
        reason=f"{model.__name__} {record_id} belongs to tenant {owner}, not {tenant_id}",
        tenant_id=tenant_id,
    )


def create_tenant(payload: dict, invoice_prefix: str | None = None) -> Tenant:
    """
    Create a tenant with its invoice sequence and default category.

    All three rows are written in one transaction.
    """
    patch = validate_payload(model=Tenant, payload=payload, policy=TENANT_POLICY, partial=False)

    if invoice_prefix is not None:
        invoice_prefix = str(invoice_prefix).strip()
        if not invoice_prefix or len(invoice_prefix) > 16:
            raise ValidationError("invoice_prefix must be 1-16 characters")

    def _op() -> int:
        tenant = Tenant(**patch, is_active=True)
        db.session.add(tenant)
        db.session.flush()

        ensure_invoice_sequence(tenant.id, prefix=invoice_prefix)
        db.session.add(Category(tenant_id=tenant.id, name=DEFAULT_CATEGORY))
        db.session.flush()
        return tenant.id

    tenant_id = run_atomic(_op)
    return db.session.get(Tenant, tenant_id)


def get_tenant(tenant_id: int) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise ResourceNotFound("Tenant", tenant_id)
    return tenant


def list_tenants(include_inactive: bool = True) -> list[Tenant]:
    query = db.session.query(Tenant)
    if not include_inactive:
        query = query.filter(Tenant.is_active.is_(True))
    return query.order_by(Tenant.name.asc(), Tenant.id.asc()).all()


def deactivate_tenant(tenant_id: int) -> Tenant:
    """Soft-delete a tenant. Its sessions stop validating on next use."""
    tenant = get_tenant(tenant_id)
    tenant.is_active = False
    db.session.commit()
    return tenant
