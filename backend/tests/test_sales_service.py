"""
Sale orchestration tests.

Covers the happy path totals, all-or-nothing failure behavior (stock and
invoice counter untouched), cumulative validation of repeated products,
and the receipt/list projections.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from negocios_pos.errors import (
    ConfigurationError,
    InfrastructureError,
    InsufficientStock,
    NoTenantAssigned,
    ProductNotFound,
    ResourceNotFound,
)
from negocios_pos.models import InvoiceSequence, Sale, SaleLine, SecurityEvent, StockMovement
from negocios_pos.services import sales_service
from negocios_pos.services.concurrency import run_atomic
from negocios_pos.services.invoice_sequence_service import allocate_invoice_number, get_invoice_sequence
from negocios_pos.validation import LineItem, ValidationError

from conftest import stock_of


def line(product, quantity, price=None):
    return {
        "product_id": product.id,
        "quantity": quantity,
        "unit_price_cents": product.sale_price_cents if price is None else price,
    }


class TestComputeTax:

    @pytest.mark.parametrize("subtotal,expected", [
        (3000, 570),
        (0, 0),
        (1, 0),        # 0.19
        (3, 1),        # 0.57
        (50, 10),      # 9.5 rounds half up
        (-3000, -570),
        (-50, -10),    # magnitude rounded, sign follows
    ])
    def test_rounding(self, subtotal, expected):
        assert sales_service.compute_tax_cents(subtotal, 1900) == expected

    def test_zero_rate(self):
        assert sales_service.compute_tax_cents(12345, 0) == 0


class TestCreateSale:

    def test_single_line_sale(self, db_session, tenant_a, admin_a, product_a):
        receipt = sales_service.create_sale(
            tenant_a.id,
            admin_a.id,
            customer={"name": "Juan", "document": "123"},
            payment_method="efectivo",
            line_items=[line(product_a, 3)],
        )

        sale = receipt["sale"]
        assert sale["invoice_number"] == "FAC000001"
        assert sale["subtotal_cents"] == 3000
        assert sale["tax_cents"] == 570
        assert sale["total_cents"] == 3570
        assert sale["is_return"] is False
        assert sale["customer_name"] == "Juan"
        assert stock_of(product_a.id) == 7
        assert get_invoice_sequence(tenant_a.id).next_number == 2

    def test_receipt_projection(self, db_session, tenant_a, admin_a, product_a):
        receipt = sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_a, 2)])

        assert receipt["operator_name"] == "Admin A"
        assert receipt["business"]["name"] == "Tienda A"
        assert receipt["business"]["tax_id"] == "900100100-1"
        assert receipt["lines"] == [{
            "id": receipt["lines"][0]["id"],
            "sale_id": receipt["sale"]["id"],
            "product_id": product_a.id,
            "product_name": "A",
            "quantity": 2,
            "unit_price_cents": 1000,
            "line_subtotal_cents": 2000,
        }]
        assert receipt["sale"]["payment_method"] == "efectivo"

    def test_unit_price_is_taken_from_the_line(self, db_session, tenant_a, admin_a, product_a):
        receipt = sales_service.create_sale(
            tenant_a.id, admin_a.id, line_items=[line(product_a, 1, price=850)]
        )
        assert receipt["sale"]["subtotal_cents"] == 850
        assert receipt["sale"]["tax_cents"] == 162  # 161.5 rounds up

    def test_accepts_line_item_objects(self, db_session, tenant_a, admin_a, product_a):
        receipt = sales_service.create_sale(
            tenant_a.id, admin_a.id, line_items=[LineItem(product_a.id, 1, 1000)]
        )
        assert receipt["sale"]["total_cents"] == 1190

    def test_multi_line_totals(self, db_session, tenant_a, admin_a, product_a, make_product):
        other = make_product(tenant_a, name="C", price_cents=2500, stock=4)

        receipt = sales_service.create_sale(
            tenant_a.id, admin_a.id, line_items=[line(product_a, 2), line(other, 3)]
        )

        sale = receipt["sale"]
        assert sale["subtotal_cents"] == 2000 + 7500
        assert sale["total_cents"] == sale["subtotal_cents"] + sale["tax_cents"]
        assert [l["product_name"] for l in receipt["lines"]] == ["A", "C"]
        assert stock_of(product_a.id) == 8
        assert stock_of(other.id) == 1

    def test_movements_reference_the_sale(self, db_session, tenant_a, admin_a, product_a):
        receipt = sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_a, 3)])

        movement = db_session.query(StockMovement).one()
        assert movement.sale_id == receipt["sale"]["id"]
        assert movement.user_id == admin_a.id
        assert movement.reason == "Sale FAC000001"

    def test_sequential_sales_get_gap_free_numbers(self, db_session, tenant_a, admin_a, product_a):
        numbers = [
            sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_a, 1)])["sale"]["invoice_number"]
            for _ in range(5)
        ]
        assert numbers == [f"FAC00000{i}" for i in range(1, 6)]
        assert stock_of(product_a.id) == 5


class TestSaleFailuresLeaveNoTrace:

    def test_insufficient_stock(self, db_session, tenant_a, admin_a, product_a):
        with pytest.raises(InsufficientStock) as exc:
            sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_a, 20)])

        assert exc.value.product_name == "A"
        assert exc.value.available == 10
        assert exc.value.requested == 20
        assert str(exc.value) == 'Insufficient stock for "A". Available: 10, requested: 20'
        assert stock_of(product_a.id) == 10
        assert get_invoice_sequence(tenant_a.id).next_number == 1
        assert db_session.query(Sale).count() == 0
        assert db_session.query(StockMovement).count() == 0

    def test_repeated_product_is_validated_cumulatively(self, db_session, tenant_a, admin_a, product_a):
        with pytest.raises(InsufficientStock) as exc:
            sales_service.create_sale(
                tenant_a.id, admin_a.id, line_items=[line(product_a, 6), line(product_a, 6)]
            )

        assert exc.value.available == 10
        assert exc.value.requested == 12
        assert stock_of(product_a.id) == 10

    def test_repeated_product_within_stock(self, db_session, tenant_a, admin_a, product_a):
        receipt = sales_service.create_sale(
            tenant_a.id, admin_a.id, line_items=[line(product_a, 4), line(product_a, 6)]
        )
        assert len(receipt["lines"]) == 2
        assert stock_of(product_a.id) == 0

    def test_failure_on_later_line_rolls_back_earlier_lines(self, db_session, tenant_a, admin_a, product_a):
        with pytest.raises(ProductNotFound) as exc:
            sales_service.create_sale(
                tenant_a.id, admin_a.id, line_items=[line(product_a, 2), {"product_id": 4242, "quantity": 1, "unit_price_cents": 1}]
            )

        assert exc.value.product_id == 4242
        assert stock_of(product_a.id) == 10
        assert db_session.query(SaleLine).count() == 0
        assert get_invoice_sequence(tenant_a.id).next_number == 1

    def test_missing_sequence(self, db_session, tenant_a, admin_a, product_a):
        db_session.query(InvoiceSequence).filter_by(tenant_id=tenant_a.id).delete()
        db_session.commit()

        with pytest.raises(ConfigurationError):
            sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_a, 1)])

        assert stock_of(product_a.id) == 10
        assert db_session.query(Sale).count() == 0

    def test_foreign_product_logs_security_event(self, db_session, tenant_a, admin_a, product_b):
        with pytest.raises(ProductNotFound):
            sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_b, 1)])

        event = db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").one()
        assert event.tenant_id == tenant_a.id
        assert stock_of(product_b.id) == 5

    def test_unknown_product_is_not_logged(self, db_session, tenant_a, admin_a):
        with pytest.raises(ProductNotFound):
            sales_service.create_sale(
                tenant_a.id, admin_a.id, line_items=[{"product_id": 77, "quantity": 1, "unit_price_cents": 1}]
            )
        assert db_session.query(SecurityEvent).count() == 0


class TestSaleValidation:

    def test_requires_tenant(self, db_session, super_admin, product_a):
        with pytest.raises(NoTenantAssigned):
            sales_service.create_sale(None, super_admin.id, line_items=[line(product_a, 1)])

    @pytest.mark.parametrize("items", [None, [], "abc", {"product_id": 1}, 5, True, 3.5])
    def test_rejects_missing_or_malformed_items(self, db_session, tenant_a, admin_a, items):
        with pytest.raises(ValidationError):
            sales_service.create_sale(tenant_a.id, admin_a.id, line_items=items)

    @pytest.mark.parametrize("bad", [
        {"quantity": 0},
        {"quantity": -1},
        {"quantity": 1.5},
        {"unit_price_cents": -1},
        {"product_id": None},
    ])
    def test_rejects_bad_line_values(self, db_session, tenant_a, admin_a, product_a, bad):
        item = line(product_a, 1)
        item.update(bad)
        with pytest.raises(ValidationError):
            sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[item])
        assert get_invoice_sequence(tenant_a.id).next_number == 1

    def test_rejects_unknown_payment_method(self, db_session, tenant_a, admin_a, product_a):
        with pytest.raises(ValidationError):
            sales_service.create_sale(
                tenant_a.id, admin_a.id, payment_method="bitcoin", line_items=[line(product_a, 1)]
            )

    def test_rejects_oversized_customer_fields(self, db_session, tenant_a, admin_a, product_a):
        with pytest.raises(ValidationError):
            sales_service.create_sale(
                tenant_a.id, admin_a.id, customer={"name": "x" * 300}, line_items=[line(product_a, 1)]
            )


class TestSaleQueries:

    def test_list_sales_newest_first(self, db_session, tenant_a, admin_a, product_a):
        for qty in (1, 2, 3):
            sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_a, qty)])

        rows = sales_service.list_sales(tenant_a.id)

        assert [r["invoice_number"] for r in rows] == ["FAC000003", "FAC000002", "FAC000001"]
        assert rows[0]["operator_name"] == "Admin A"

    def test_list_sales_scoped_to_tenant(self, db_session, tenant_a, tenant_b, admin_a, product_a):
        sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_a, 1)])
        assert sales_service.list_sales(tenant_b.id) == []

    def test_receipt_of_other_tenant_is_not_found(self, db_session, tenant_a, tenant_b, admin_a, product_a):
        receipt = sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_a, 1)])

        with pytest.raises(ResourceNotFound):
            sales_service.get_sale_receipt(tenant_b.id, receipt["sale"]["id"])


class TestUnitOfWork:

    def test_persistence_failure_becomes_infrastructure_error(self, db_session, tenant_a, admin_a, product_a, monkeypatch):
        def broken_build(*args, **kwargs):
            raise IntegrityError("INSERT INTO sales", {}, Exception("boom"))

        monkeypatch.setattr(sales_service, "build_sale", broken_build)

        with pytest.raises(InfrastructureError) as exc:
            sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_a, 1)])

        assert str(exc.value) == "Internal server error"
        assert stock_of(product_a.id) == 10
        assert get_invoice_sequence(tenant_a.id).next_number == 1

    def test_lock_conflicts_are_retried(self, db_session, tenant_a):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))
            return allocate_invoice_number(tenant_a.id)

        assert run_atomic(flaky) == "FAC000001"
        assert len(calls) == 2
        assert get_invoice_sequence(tenant_a.id).next_number == 2
