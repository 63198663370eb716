# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service with Multi-Tenant Support

Users belong to one tenant; emails are unique within a tenant. Super
admins have no tenant and are created from the CLI only.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters with upper, lower, digit and special character
- Authentication rejects inactive users and users of inactive tenants
"""

from __future__ import annotations

import re

import bcrypt

from ..errors import ResourceNotFound
from ..extensions import db
from ..models import Tenant, User
from ..models.auth import ROLE_ADMIN, ROLE_SUPER_ADMIN, ROLE_WORKER
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError


TENANT_ROLES = (ROLE_ADMIN, ROLE_WORKER)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt (cost 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _normalize_email(email) -> str:
    email = str(email or "").strip().lower()
    if not EMAIL_RE.match(email) or len(email) > 255:
        raise ValidationError("A valid email is required")
    return email


def _normalize_name(name) -> str:
    name = str(name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if len(name) > 120:
        raise ValidationError("name exceeds max length 120")
    return name


def create_user(
    tenant_id: int,
    name: str,
    email: str,
    password: str,
    role: str = ROLE_WORKER,
) -> User:
    """
    Create a user inside a tenant.

    Raises:
        ValidationError / PasswordValidationError: bad input
        ResourceNotFound: tenant missing
        ConflictError: email already used in this tenant
    """
    if role not in TENANT_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(TENANT_ROLES)}")
    name = _normalize_name(name)
    email = _normalize_email(email)

    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise ResourceNotFound("Tenant", tenant_id)
    if not tenant.is_active:
        raise ValidationError("Business is not active")

    existing = db.session.query(User.id).filter_by(tenant_id=tenant_id, email=email).first()
    if existing:
        raise ConflictError("Email already exists in this business")

    user = User(
        tenant_id=tenant_id,
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def create_super_admin(name: str, email: str, password: str) -> User:
    """Cross-tenant administrator (no tenant). Emails are unique among super admins."""
    name = _normalize_name(name)
    email = _normalize_email(email)

    existing = db.session.query(User.id).filter(User.tenant_id.is_(None), User.email == email).first()
    if existing:
        raise ConflictError("A super admin with this email already exists")

    user = User(
        tenant_id=None,
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=ROLE_SUPER_ADMIN,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Return the active user matching the credentials, or None.

    Emails are only unique per tenant, so every active account with that
    email is tried; users of inactive tenants cannot log in.
    """
    email = str(email or "").strip().lower()
    candidates = (
        db.session.query(User)
        .filter(User.email == email, User.is_active.is_(True))
        .order_by(User.id.asc())
        .all()
    )

    for user in candidates:
        if user.tenant_id is not None and (user.tenant is None or not user.tenant.is_active):
            continue
        if verify_password(password, user.password_hash):
            user.last_login_at = utcnow()
            db.session.commit()
            return user

    return None


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password or "", user.password_hash):
        raise ValidationError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    db.session.commit()


def list_users(tenant_id: int | None = None) -> list[User]:
    query = db.session.query(User)
    if tenant_id is not None:
        query = query.filter(User.tenant_id == tenant_id)
    return query.order_by(User.tenant_id.asc(), User.name.asc()).all()


def deactivate_user(user_id: int) -> User:
    """Soft delete. Super admins cannot be deactivated."""
    user = db.session.get(User, user_id)
    if user is None:
        raise ResourceNotFound("User", user_id)
    if user.is_super_admin:
        raise ValidationError("Super admin accounts cannot be deactivated")
    user.is_active = False
    db.session.commit()
    return user
