# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to the factory (PowerShell: $env:FLASK_APP="app:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (development; production uses `flask db upgrade`).
#
# Tenant management:
# - python -m flask tenants list
#   List all tenants.
# - python -m flask tenants create --name "Acme" --code "ACME"
#   Create a new tenant.
#
# Notification inbox:
# - python -m flask notifications reconcile [--tenant-id 1]
#   Self-heal PENDING notifications (all active tenants when omitted).
# - python -m flask notifications digest --tenant-id 1
#   Project due agenda events into the inbox and print the daily summary.
#
# Card machines:
# - python -m flask machines list --tenant-id 1
#   List card machines with settlement policy and fee schedule.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Tenant, User
from .services import agenda_service, card_machine_service, notification_service
from .services.reconciliation_service import reconcile


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the configured database (idempotent)."""
    click.echo("BUILD  Creating all tables...")
    db.create_all()
    click.echo("PASS Database ready.")


@click.group('tenants')
def tenants_group():
    """Tenant management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all tenants."""
    tenants = db.session.query(Tenant).order_by(Tenant.id.asc()).all()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Users'}")
    click.echo("="*70)

    for tenant in tenants:
        user_count = db.session.query(User).filter_by(tenant_id=tenant.id).count()
        active_str = "Yes" if tenant.is_active else "No"
        click.echo(f"{tenant.id:<5} {tenant.name:<30} {tenant.code or '-':<15} {active_str:<8} {user_count}")

    click.echo("="*70 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_tenant_cli(name, code):
    """Create a new tenant."""
    existing = db.session.query(Tenant).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Tenant with code '{code}' already exists")
        return

    tenant = Tenant(name=name, code=code, is_active=True)
    db.session.add(tenant)
    db.session.commit()

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Code: {tenant.code})")


@click.group('notifications')
def notifications_group():
    """Notification inbox maintenance commands."""


@notifications_group.command('reconcile')
@click.option('--tenant-id', type=int, help='Tenant ID (all active tenants if omitted)')
@with_appcontext
def reconcile_cli(tenant_id):
    """Run the reconciliation sweep."""
    if tenant_id is not None:
        tenant_ids = [tenant_id]
    else:
        tenant_ids = [t.id for t in db.session.query(Tenant).filter_by(is_active=True).all()]

    total = 0
    for tid in tenant_ids:
        updated = reconcile(tid)
        total += updated
        click.echo(f"  tenant {tid}: {updated} notification(s) updated")

    click.echo(f"PASS Reconciled {len(tenant_ids)} tenant(s), {total} update(s)")


@notifications_group.command('digest')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@with_appcontext
def digest_cli(tenant_id):
    """Project due events into the inbox and print today's summary."""
    due = agenda_service.list_due_events(tenant_id)
    click.echo(f"Due events: {len(due)}")
    for event in due:
        click.echo(f"  #{event['id']:<6} {event['start']}  {event['title']}")

    summary = notification_service.get_daily_summary(tenant_id)
    if summary is None:
        click.echo("No notifications due today.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"Daily summary {summary['date']}")
    click.echo("="*60)
    click.echo(f"Total: {summary['total']}  Pending: {summary['pending']}  Acted: {summary['acted']}  "
               f"Action rate: {summary['action_rate']}%")
    click.echo(f"Expected: {summary['total_expected_cents']}c  Billed: {summary['total_billed_cents']}c")
    for line in summary["highlights"]:
        click.echo(f"  - {line}")


@click.group('machines')
def machines_group():
    """Card machine inspection commands."""


@machines_group.command('list')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@with_appcontext
def list_machines_cli(tenant_id):
    """List card machines and their fee schedules."""
    machines = card_machine_service.list_card_machines(tenant_id)
    if not machines:
        click.echo("No card machines found.")
        return

    for machine in machines:
        status = "active" if machine["is_active"] else "inactive"
        click.echo(
            f"#{machine['id']} {machine['name']} ({status}) "
            f"{machine['settlement_mode']} +{machine['settlement_delay_days']}d"
        )
        for rate in machine["rates"]:
            click.echo(f"    {rate['method_code']:<14} {rate['fee_rate']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(notifications_group)
    app.cli.add_command(machines_group)
