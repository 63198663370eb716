"""
Pytest fixtures for backend tests.

Provides the in-memory test app, a per-test table wipe, two tenants with
users and products, and helpers to log in through the API.
"""

import pytest
from negocios_pos import create_app
from negocios_pos.extensions import db
from negocios_pos.models import Product
from negocios_pos.services import auth_service, tenant_service


PASSWORD = "Password123!"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'SALES_TAX_RATE_BPS': 1900,
    'INVOICE_PREFIX': 'FAC',
    'RETURN_INVOICE_PREFIX': 'DEV-',
    'INVOICE_NUMBER_WIDTH': 6,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Tenant A with its FAC sequence and default category."""
    return tenant_service.create_tenant({
        "name": "Tienda A",
        "address": "Calle 1 #2-3",
        "phone": "555-0101",
        "tax_id": "900100100-1",
    })


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Tenant B (second tenant)."""
    return tenant_service.create_tenant({"name": "Tienda B"})


@pytest.fixture(scope='function')
def admin_a(db_session, tenant_a):
    return auth_service.create_user(tenant_a.id, "Admin A", "admin@a.test", PASSWORD, role="admin")


@pytest.fixture(scope='function')
def worker_a(db_session, tenant_a):
    return auth_service.create_user(tenant_a.id, "Cajero A", "cajero@a.test", PASSWORD, role="trabajador")


@pytest.fixture(scope='function')
def admin_b(db_session, tenant_b):
    return auth_service.create_user(tenant_b.id, "Admin B", "admin@b.test", PASSWORD, role="admin")


@pytest.fixture(scope='function')
def super_admin(db_session):
    return auth_service.create_super_admin("Root", "root@negocios.test", PASSWORD)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: insert an active product with the given stock."""
    def _make(tenant, name="A", price_cents=1000, stock=10, **kwargs):
        product = Product(
            tenant_id=tenant.id,
            name=name,
            sale_price_cents=price_cents,
            stock=stock,
            **kwargs,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product_a(make_product, tenant_a):
    """Product "A" in tenant A: 1000 cents, stock 10."""
    return make_product(tenant_a, name="A", price_cents=1000, stock=10)


@pytest.fixture(scope='function')
def product_b(make_product, tenant_b):
    """Product in tenant B: 2000 cents, stock 5."""
    return make_product(tenant_b, name="B", price_cents=2000, stock=5)


def stock_of(product_id: int) -> int:
    """Current stock straight from the database."""
    return db.session.query(Product.stock).filter(Product.id == product_id).scalar()


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
