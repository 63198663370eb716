"""
Invoice sequence allocation tests.

Numbers are prefix + zero-padded counter, unique per tenant, and a rolled
back unit of work gives its number back.
"""

import pytest

from negocios_pos.errors import ConfigurationError
from negocios_pos.extensions import db
from negocios_pos.models import InvoiceSequence
from negocios_pos.services.concurrency import run_atomic
from negocios_pos.services.invoice_sequence_service import (
    allocate_invoice_number,
    ensure_invoice_sequence,
    format_invoice_number,
    get_invoice_sequence,
)


class TestFormatting:

    def test_zero_padded_to_width(self, app):
        with app.app_context():
            assert format_invoice_number("FAC", 1) == "FAC000001"
            assert format_invoice_number("FAC", 123456) == "FAC123456"

    def test_wider_numbers_are_not_truncated(self, app):
        with app.app_context():
            assert format_invoice_number("FAC", 1234567) == "FAC1234567"

    def test_explicit_width(self, app):
        with app.app_context():
            assert format_invoice_number("X-", 7, width=3) == "X-007"


class TestAllocation:

    def test_new_tenant_starts_at_one(self, db_session, tenant_a):
        seq = get_invoice_sequence(tenant_a.id)
        assert seq.prefix == "FAC"
        assert seq.next_number == 1

    def test_allocates_consecutive_numbers(self, db_session, tenant_a):
        first = run_atomic(lambda: allocate_invoice_number(tenant_a.id))
        second = run_atomic(lambda: allocate_invoice_number(tenant_a.id))

        assert first == "FAC000001"
        assert second == "FAC000002"
        assert get_invoice_sequence(tenant_a.id).next_number == 3

    def test_tenants_have_independent_counters(self, db_session, tenant_a, tenant_b):
        run_atomic(lambda: allocate_invoice_number(tenant_a.id))
        run_atomic(lambda: allocate_invoice_number(tenant_a.id))

        assert run_atomic(lambda: allocate_invoice_number(tenant_b.id)) == "FAC000001"

    def test_missing_sequence_raises_configuration_error(self, db_session, tenant_a):
        db_session.query(InvoiceSequence).filter_by(tenant_id=tenant_a.id).delete()
        db_session.commit()

        with pytest.raises(ConfigurationError) as exc:
            run_atomic(lambda: allocate_invoice_number(tenant_a.id))

        assert "No invoicing sequence" in str(exc.value)
        assert exc.value.details == {"tenant_id": tenant_a.id}

    def test_rollback_returns_the_number(self, db_session, tenant_a):
        class Boom(Exception):
            pass

        def _op():
            allocate_invoice_number(tenant_a.id)
            raise Boom()

        with pytest.raises(Boom):
            run_atomic(_op)

        assert get_invoice_sequence(tenant_a.id).next_number == 1
        assert run_atomic(lambda: allocate_invoice_number(tenant_a.id)) == "FAC000001"

    def test_custom_prefix(self, db_session):
        from negocios_pos.services.tenant_service import create_tenant

        tenant = create_tenant({"name": "Ferreteria"}, invoice_prefix="FE-")
        assert run_atomic(lambda: allocate_invoice_number(tenant.id)) == "FE-000001"


class TestEnsureSequence:

    def test_is_idempotent(self, db_session, tenant_a):
        seq = get_invoice_sequence(tenant_a.id)
        again = ensure_invoice_sequence(tenant_a.id, prefix="OTHER")
        db_session.commit()

        assert again.id == seq.id
        assert again.prefix == "FAC"
        assert db_session.query(InvoiceSequence).filter_by(tenant_id=tenant_a.id).count() == 1

    def test_recreates_missing_row(self, db_session, tenant_a):
        db_session.query(InvoiceSequence).filter_by(tenant_id=tenant_a.id).delete()
        db_session.commit()

        ensure_invoice_sequence(tenant_a.id)
        db.session.commit()

        assert get_invoice_sequence(tenant_a.id).next_number == 1
