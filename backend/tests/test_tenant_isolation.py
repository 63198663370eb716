# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

Two tenants with their own users and products. Verifies that:
1. The tenant of an operation comes from the acting user
2. Super admins choose a tenant explicitly (or act unscoped)
3. Records of another tenant behave exactly like missing ones
4. Cross-tenant attempts are logged as security events
5. Sessions stop working when the user or tenant is deactivated
"""

import pytest
from negocios_pos.errors import NoTenantAssigned, ProductNotFound, ResourceNotFound, UserInactiveOrMissing
from negocios_pos.models import Category, Product, SecurityEvent, User
from negocios_pos.services import auth_service, products_service, sales_service
from negocios_pos.services.security_service import list_security_events
from negocios_pos.services.session_service import create_session, validate_session
from negocios_pos.services.tenant_service import (
    deactivate_tenant,
    list_tenants,
    require_tenant,
    resolve_tenant,
)
from negocios_pos.validation import ValidationError

from conftest import PASSWORD, stock_of


class TestResolveTenant:

    def test_regular_user_gets_own_tenant(self, db_session, tenant_a, worker_a):
        assert resolve_tenant(worker_a) == tenant_a.id

    def test_accepts_user_id(self, db_session, tenant_a, worker_a):
        assert resolve_tenant(worker_a.id) == tenant_a.id

    def test_requested_tenant_ignored_for_regular_user(self, db_session, tenant_a, tenant_b, worker_a):
        assert resolve_tenant(worker_a, str(tenant_b.id)) == tenant_a.id

        events = list_security_events(event_type="CROSS_TENANT_ACCESS_DENIED")
        assert len(events) == 1
        assert events[0].user_id == worker_a.id

    def test_requesting_own_tenant_is_not_logged(self, db_session, tenant_a, worker_a):
        assert resolve_tenant(worker_a, tenant_a.id) == tenant_a.id
        assert db_session.query(SecurityEvent).count() == 0

    def test_super_admin_unscoped(self, db_session, super_admin):
        assert resolve_tenant(super_admin) is None
        assert resolve_tenant(super_admin, "") is None

    def test_super_admin_selects_tenant(self, db_session, super_admin, tenant_b):
        assert resolve_tenant(super_admin, str(tenant_b.id)) == tenant_b.id

    def test_super_admin_unknown_tenant(self, db_session, super_admin):
        with pytest.raises(ResourceNotFound):
            resolve_tenant(super_admin, 9999)

    def test_super_admin_bad_tenant_id(self, db_session, super_admin):
        with pytest.raises(ValidationError):
            resolve_tenant(super_admin, "abc")

    def test_inactive_user(self, db_session, worker_a):
        auth_service.deactivate_user(worker_a.id)
        with pytest.raises(UserInactiveOrMissing):
            resolve_tenant(worker_a)

    def test_missing_user(self, db_session):
        with pytest.raises(UserInactiveOrMissing):
            resolve_tenant(12345)

    def test_user_without_tenant(self, db_session):
        user = User(name="Orphan", email="orphan@x.test", password_hash="x", role="trabajador")
        db_session.add(user)
        db_session.commit()

        with pytest.raises(NoTenantAssigned) as exc:
            resolve_tenant(user)
        assert str(exc.value) == "User has no tenant assigned"

    def test_require_tenant(self, db_session):
        assert require_tenant(3) == 3
        with pytest.raises(NoTenantAssigned):
            require_tenant(None)

        events = list_security_events(event_type="TENANT_CONTEXT_MISSING")
        assert len(events) == 1
        assert events[0].success is False


class TestTenantCreation:

    def test_creates_sequence_and_default_category(self, db_session, tenant_a):
        assert tenant_a.invoice_sequence.next_number == 1
        names = [c.name for c in db_session.query(Category).filter_by(tenant_id=tenant_a.id)]
        assert names == ["General"]

    def test_name_required(self, db_session):
        with pytest.raises(ValidationError):
            from negocios_pos.services.tenant_service import create_tenant
            create_tenant({"address": "nowhere"})

    def test_list_and_deactivate(self, db_session, tenant_a, tenant_b):
        deactivate_tenant(tenant_b.id)

        assert {t.name for t in list_tenants()} == {"Tienda A", "Tienda B"}
        assert [t.name for t in list_tenants(include_inactive=False)] == ["Tienda A"]


class TestProductIsolation:

    def test_product_id_collision_across_tenants(self, db_session, tenant_a, tenant_b, admin_a, product_b):
        """A tenant A sale naming tenant B's product id fails and touches nothing."""
        with pytest.raises(ProductNotFound):
            sales_service.create_sale(
                tenant_a.id,
                admin_a.id,
                line_items=[{"product_id": product_b.id, "quantity": 1, "unit_price_cents": 2000}],
            )
        assert stock_of(product_b.id) == 5

    def test_listing_only_shows_own_products(self, db_session, tenant_a, tenant_b, product_a, product_b):
        names_a = [p["name"] for p in products_service.list_products(tenant_a.id)]
        names_b = [p["name"] for p in products_service.list_products(tenant_b.id)]

        assert names_a == ["A"]
        assert names_b == ["B"]

    def test_update_other_tenants_product(self, db_session, tenant_a, product_b):
        with pytest.raises(ProductNotFound):
            products_service.update_product(tenant_a.id, product_b.id, {"name": "Hacked"})

        assert db_session.get(Product, product_b.id).name == "B"
        assert db_session.query(SecurityEvent).filter_by(tenant_id=tenant_a.id).count() == 1

    def test_same_ean_in_two_tenants(self, db_session, tenant_a, tenant_b):
        products_service.create_product(tenant_a.id, {"name": "Leche", "sale_price_cents": 300, "ean_code": "7701"})
        products_service.create_product(tenant_b.id, {"name": "Leche", "sale_price_cents": 320, "ean_code": "7701"})

        assert products_service.get_product_by_ean(tenant_a.id, "7701")["sale_price_cents"] == 300
        assert products_service.get_product_by_ean(tenant_b.id, "7701")["sale_price_cents"] == 320


class TestUserIsolation:

    def test_same_email_different_tenants(self, db_session, tenant_a, tenant_b):
        a = auth_service.create_user(tenant_a.id, "Ana", "ana@shared.test", PASSWORD)
        b = auth_service.create_user(tenant_b.id, "Ana", "ana@shared.test", PASSWORD)

        assert a.tenant_id != b.tenant_id

    def test_duplicate_email_same_tenant(self, db_session, tenant_a):
        from negocios_pos.validation import ConflictError

        auth_service.create_user(tenant_a.id, "Ana", "ana@a.test", PASSWORD)
        with pytest.raises(ConflictError):
            auth_service.create_user(tenant_a.id, "Ana 2", "ANA@a.test", PASSWORD)


class TestSessionTenantContext:

    def test_session_captures_tenant(self, db_session, tenant_a, worker_a):
        session, token = create_session(worker_a)

        assert session.tenant_id == tenant_a.id
        context = validate_session(token)
        assert context.tenant_id == tenant_a.id
        assert context.user.id == worker_a.id

    def test_session_invalid_when_tenant_deactivated(self, db_session, tenant_a, worker_a):
        session, token = create_session(worker_a)
        deactivate_tenant(tenant_a.id)

        assert validate_session(token) is None

    def test_session_invalid_when_user_deactivated(self, db_session, worker_a):
        session, token = create_session(worker_a)
        auth_service.deactivate_user(worker_a.id)

        assert validate_session(token) is None

    def test_inactive_tenant_users_cannot_log_in(self, db_session, tenant_a, worker_a):
        deactivate_tenant(tenant_a.id)
        assert auth_service.authenticate("cajero@a.test", PASSWORD) is None
