"""CLI commands: system bootstrap and tenant/user administration."""

from negocios_pos.models import InvoiceSequence, Tenant, User

from conftest import PASSWORD


def test_system_init_creates_super_admin_once(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init", "--email", "root@cli.test", "--password", PASSWORD])
    second = runner.invoke(args=["system", "init", "--email", "other@cli.test", "--password", PASSWORD])

    assert first.exit_code == 0, first.output
    assert "Created super admin: root@cli.test" in first.output
    assert second.exit_code == 0
    assert "already exists" in second.output
    assert db_session.query(User).filter_by(role="super_admin").count() == 1


def test_tenants_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["tenants", "create", "--name", "Ferreteria", "--prefix", "FER"])
    assert result.exit_code == 0, result.output

    tenant = db_session.query(Tenant).filter_by(name="Ferreteria").one()
    assert db_session.query(InvoiceSequence).filter_by(tenant_id=tenant.id).one().prefix == "FER"

    listing = runner.invoke(args=["tenants", "list"])
    assert "Ferreteria" in listing.output
    assert "FER000001" in listing.output


def test_tenants_create_requires_valid_name(app, db_session):
    result = app.test_cli_runner().invoke(args=["tenants", "create", "--name", " "])
    assert result.exit_code != 0


def test_users_create(app, tenant_a):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "users", "create",
        "--tenant-id", str(tenant_a.id),
        "--name", "Ana",
        "--email", "ana@a.test",
        "--password", PASSWORD,
        "--role", "admin",
    ])
    assert result.exit_code == 0, result.output
    assert "role: admin" in result.output

    listing = runner.invoke(args=["users", "list", "--tenant-id", str(tenant_a.id)])
    assert "ana@a.test" in listing.output


def test_users_create_weak_password(app, tenant_a):
    result = app.test_cli_runner().invoke(args=[
        "users", "create",
        "--tenant-id", str(tenant_a.id),
        "--name", "Ana",
        "--email", "ana@a.test",
        "--password", "weak",
    ])
    assert result.exit_code != 0
    assert "at least 8 characters" in result.output
