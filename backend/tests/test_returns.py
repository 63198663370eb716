"""
Return (compensating sale) tests.
"""

import pytest

from negocios_pos.errors import EmptyReturn, NoTenantAssigned, ProductNotFound
from negocios_pos.models import Sale, StockMovement
from negocios_pos.services import return_service, sales_service
from negocios_pos.services.invoice_sequence_service import get_invoice_sequence
from negocios_pos.validation import ValidationError

from conftest import stock_of


def line(product, quantity, price=None):
    return {
        "product_id": product.id,
        "quantity": quantity,
        "unit_price_cents": product.sale_price_cents if price is None else price,
    }


class TestCreateReturn:

    def test_sale_then_return_restores_stock(self, db_session, tenant_a, admin_a, product_a):
        sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_a, 3)])
        assert stock_of(product_a.id) == 7

        receipt = return_service.create_return(
            tenant_a.id, admin_a.id, reason="damaged", line_items=[line(product_a, 3)]
        )

        sale = receipt["sale"]
        assert stock_of(product_a.id) == 10
        assert sale["is_return"] is True
        assert sale["return_reason"] == "damaged"
        assert sale["payment_method"] == "devolucion"
        assert sale["subtotal_cents"] == -3000
        assert sale["tax_cents"] == -570
        assert sale["total_cents"] == -3570
        assert sale["invoice_number"] == "DEV-FAC000002"

    def test_lines_are_negative(self, db_session, tenant_a, admin_a, product_a):
        receipt = return_service.create_return(tenant_a.id, admin_a.id, line_items=[line(product_a, 2)])

        (ret_line,) = receipt["lines"]
        assert ret_line["quantity"] == -2
        assert ret_line["unit_price_cents"] == 1000
        assert ret_line["line_subtotal_cents"] == -2000

    def test_returns_share_the_sales_counter(self, db_session, tenant_a, admin_a, product_a):
        first = return_service.create_return(tenant_a.id, admin_a.id, line_items=[line(product_a, 1)])
        sale = sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_a, 1)])

        assert first["sale"]["invoice_number"] == "DEV-FAC000001"
        assert sale["sale"]["invoice_number"] == "FAC000002"
        assert get_invoice_sequence(tenant_a.id).next_number == 3

    def test_return_movement(self, db_session, tenant_a, admin_a, product_a):
        receipt = return_service.create_return(
            tenant_a.id, admin_a.id, reason="wrong size", line_items=[line(product_a, 4)]
        )

        movement = db_session.query(StockMovement).one()
        assert movement.movement_type == "RETURN"
        assert movement.quantity_delta == 4
        assert movement.sale_id == receipt["sale"]["id"]
        assert movement.reason == "wrong size"

    def test_no_availability_check(self, db_session, tenant_a, admin_a, make_product):
        product = make_product(tenant_a, name="Empty", stock=0)
        return_service.create_return(tenant_a.id, admin_a.id, line_items=[line(product, 50)])
        assert stock_of(product.id) == 50

    def test_inactive_product_can_be_returned(self, db_session, tenant_a, admin_a, make_product):
        product = make_product(tenant_a, name="Discontinued", stock=1, is_active=False)
        return_service.create_return(tenant_a.id, admin_a.id, line_items=[line(product, 1)])
        assert stock_of(product.id) == 2


class TestReturnFailures:

    @pytest.mark.parametrize("items", [None, []])
    def test_empty_return(self, db_session, tenant_a, admin_a, items):
        with pytest.raises(EmptyReturn) as exc:
            return_service.create_return(tenant_a.id, admin_a.id, line_items=items)
        assert str(exc.value) == "No products to return"
        assert get_invoice_sequence(tenant_a.id).next_number == 1

    @pytest.mark.parametrize("items", [5, True, 3.5, "abc"])
    def test_line_items_must_be_a_list(self, db_session, tenant_a, admin_a, product_a, items):
        with pytest.raises(ValidationError, match="line_items must be a list"):
            return_service.create_return(tenant_a.id, admin_a.id, line_items=items)
        assert stock_of(product_a.id) == 10
        assert get_invoice_sequence(tenant_a.id).next_number == 1

    def test_reason_is_trimmed_and_bounded(self, db_session, tenant_a, admin_a, product_a):
        receipt = return_service.create_return(
            tenant_a.id, admin_a.id, reason="   ", line_items=[line(product_a, 1)]
        )
        assert receipt["sale"]["return_reason"] is None

        with pytest.raises(ValidationError, match="reason exceeds max length 255"):
            return_service.create_return(
                tenant_a.id, admin_a.id, reason="x" * 256, line_items=[line(product_a, 1)]
            )

    def test_foreign_product(self, db_session, tenant_a, admin_a, product_a, product_b):
        with pytest.raises(ProductNotFound):
            return_service.create_return(
                tenant_a.id, admin_a.id, line_items=[line(product_a, 1), line(product_b, 1)]
            )

        assert stock_of(product_a.id) == 10
        assert stock_of(product_b.id) == 5
        assert db_session.query(Sale).count() == 0
        assert get_invoice_sequence(tenant_a.id).next_number == 1

    def test_requires_tenant(self, db_session, super_admin, product_a):
        with pytest.raises(NoTenantAssigned):
            return_service.create_return(None, super_admin.id, line_items=[line(product_a, 1)])


class TestStockInvariant:

    def test_mixed_sequence_never_goes_negative(self, db_session, tenant_a, admin_a, product_a):
        from negocios_pos.errors import InsufficientStock

        operations = [("sale", 4), ("sale", 4), ("sale", 4), ("return", 2), ("sale", 4), ("sale", 1)]
        expected = 10
        for kind, qty in operations:
            if kind == "return":
                return_service.create_return(tenant_a.id, admin_a.id, line_items=[line(product_a, qty)])
                expected += qty
                continue
            if qty > expected:
                with pytest.raises(InsufficientStock):
                    sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_a, qty)])
            else:
                sales_service.create_sale(tenant_a.id, admin_a.id, line_items=[line(product_a, qty)])
                expected -= qty
            assert stock_of(product_a.id) == expected >= 0

        assert stock_of(product_a.id) == 0
