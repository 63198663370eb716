# Overview: Flask CLI command groups for bootstrap and tenant/user administration.

# backend/negocios_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --email root@negocios.local --password "Password123!"
#   Create tables if missing and the first super admin (idempotent).
#
# Tenant management:
# - python -m flask tenants list
#   List all tenants with their invoice sequence.
# - python -m flask tenants create --name "Tienda Centro" [--tax-id 900123] [--prefix FAC]
#   Create a tenant with its invoice sequence and default category.
#
# User management:
# - python -m flask users list [--tenant-id 1]
# - python -m flask users create --tenant-id 1 --name "Ana" --email ana@tienda.local --password "Password123!" --role admin

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import InvoiceSequence, Tenant, User
from .services import auth_service, tenant_service
from .services.invoice_sequence_service import format_invoice_number
from .validation import ValidationError, ConflictError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--name', default='Super Admin', help='Super admin display name')
@click.option('--email', default='root@negocios.local', help='Super admin email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Super admin password')
@with_appcontext
def init_system(name, email, password):
    """
    Create missing tables and the first super admin.

    Use `flask db upgrade` for managed schemas; create_all only fills gaps
    on a fresh development database.
    """
    click.echo("START Initializing system...")
    db.create_all()

    existing = db.session.query(User).filter(User.tenant_id.is_(None), User.role == "super_admin").first()
    if existing:
        click.echo(f"PASS Super admin already exists: {existing.email}")
        return

    try:
        user = auth_service.create_super_admin(name, email, password)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created super admin: {user.email} (ID: {user.id})")
    click.echo("SECURITY Change the password after the first login in production.")


@click.group('tenants')
def tenants_group():
    """Tenant ("negocio") management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    tenants = tenant_service.list_tenants()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Active':<8} {'Next invoice':<15} {'Users'}")
    click.echo("="*80)

    for tenant in tenants:
        seq = db.session.query(InvoiceSequence).filter_by(tenant_id=tenant.id).first()
        next_invoice = format_invoice_number(seq.prefix, seq.next_number) if seq else "-"
        user_count = db.session.query(User).filter_by(tenant_id=tenant.id).count()
        active_str = "Yes" if tenant.is_active else "No"
        click.echo(f"{tenant.id:<5} {tenant.name[:30]:<30} {active_str:<8} {next_invoice:<15} {user_count}")

    click.echo("="*80 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Business name')
@click.option('--address', default=None)
@click.option('--phone', default=None)
@click.option('--email', default=None)
@click.option('--tax-id', default=None, help='RUC / NIT printed on invoices')
@click.option('--prefix', default=None, help='Invoice prefix (default from INVOICE_PREFIX)')
@with_appcontext
def create_tenant_cli(name, address, phone, email, tax_id, prefix):
    payload = {"name": name}
    for key, value in (("address", address), ("phone", phone), ("email", email), ("tax_id", tax_id)):
        if value is not None:
            payload[key] = value

    try:
        tenant = tenant_service.create_tenant(payload, invoice_prefix=prefix)
    except (ValidationError, PosError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id})")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--tenant-id', type=int, required=True)
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(['admin', 'trabajador']), default='trabajador')
@with_appcontext
def create_user_cli(tenant_id, name, email, password, role):
    try:
        user = auth_service.create_user(tenant_id, name, email, password, role=role)
    except (ValidationError, ConflictError, PosError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}, role: {user.role}, tenant: {tenant_id})")


@users_group.command('list')
@click.option('--tenant-id', type=int, default=None)
@with_appcontext
def list_users_cli(tenant_id):
    users = auth_service.list_users(tenant_id)
    if not users:
        click.echo("No users found.")
        return

    for user in users:
        tenant = db.session.get(Tenant, user.tenant_id) if user.tenant_id else None
        tenant_name = tenant.name if tenant else "(all tenants)"
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:<5} {user.email:<35} {user.role:<12} {status:<9} {tenant_name}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(users_group)
