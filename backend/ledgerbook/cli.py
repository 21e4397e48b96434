# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/ledgerbook/cli.py
# Commands Legend (run from the backend directory):
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask businesses create --name "Corner Shop" --code SHOP
# - python -m flask businesses list
# - python -m flask ledger balances --business-id 1
#   Balance per payment mode (receipts minus payments).
# - python -m flask operations list --business-id 1 --status FAILED
#   Document/transaction writes that stopped part-way.
# - python -m flask items low-stock --business-id 1

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import catalog_service, operation_log_service, settlement_service, stock_service
from .validation import ValidationFailure


def _cents(value: int) -> str:
    sign = "-" if value < 0 else ""
    value = abs(value)
    return f"{sign}{value // 100}.{value % 100:02d}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('businesses')
def businesses_group():
    """Business (tenant) management commands."""


@businesses_group.command('list')
@with_appcontext
def list_businesses():
    """List all businesses."""
    businesses = catalog_service.list_businesses()
    if not businesses:
        click.echo("No businesses found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active'}")
    click.echo("="*60)
    for business in businesses:
        active_str = "Yes" if business.is_active else "No"
        click.echo(f"{business.id:<5} {business.name:<30} {business.code or '-':<15} {active_str}")
    click.echo("="*60 + "\n")


@businesses_group.command('create')
@click.option('--name', required=True, help='Business name')
@click.option('--code', help='Short code (unique)')
@with_appcontext
def create_business_cli(name, code):
    """Create a new business."""
    try:
        business = catalog_service.create_business(name, code=code)
    except ValidationFailure as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created business: {business.name} (ID: {business.id}, Code: {business.code or '-'})")


@click.group('ledger')
def ledger_group():
    """Settlement ledger inspection."""


@ledger_group.command('balances')
@click.option('--business-id', type=int, required=True, help='Business ID')
@with_appcontext
def ledger_balances(business_id):
    """Show the balance of every payment mode."""
    try:
        balances = settlement_service.mode_balances(business_id)
    except ValidationFailure as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"\n{'Mode':<20} {'Balance':>14}")
    click.echo("-"*35)
    for mode, cents in balances.items():
        click.echo(f"{mode:<20} {_cents(cents):>14}")
    click.echo("-"*35)
    click.echo(f"{'TOTAL':<20} {_cents(sum(balances.values())):>14}\n")


@click.group('operations')
def operations_group():
    """Operation step log inspection."""


@operations_group.command('list')
@click.option('--business-id', type=int, required=True, help='Business ID')
@click.option('--status', type=click.Choice(['IN_PROGRESS', 'COMPLETED', 'FAILED']), help='Filter by status')
@click.option('--limit', type=int, default=20, show_default=True)
@click.option('--steps', is_flag=True, help='Show the steps of each operation')
@with_appcontext
def list_operations_cli(business_id, status, limit, steps):
    """List recent operations, newest first."""
    ops = operation_log_service.list_operations(business_id, status=status, limit=limit)
    if not ops:
        click.echo("No operations found.")
        return

    for op in ops:
        failed = f" step={op.failed_step}" if op.failed_step is not None else ""
        click.echo(f"#{op.id:<6} {op.operation_type:<20} doc={op.document_id or '-':<6} {op.status}{failed}")
        if op.error:
            click.echo(f"        error: {op.error}")
        if steps:
            for step in op.steps:
                click.echo(f"        {step.step:>2} {step.name:<22} {step.outcome:<10} {step.detail or ''}")


@click.group('items')
def items_group():
    """Catalog item inspection."""


@items_group.command('low-stock')
@click.option('--business-id', type=int, required=True, help='Business ID')
@with_appcontext
def low_stock_cli(business_id):
    """List items at or below their minimum stock."""
    items = stock_service.list_low_stock(business_id)
    if not items:
        click.echo("No items below minimum stock.")
        return

    click.echo(f"{'ID':<6} {'Name':<30} {'Stock':>10} {'Min':>10}")
    for item in items:
        click.echo(f"{item.id:<6} {item.name:<30} {item.stock_quantity:>10} {item.min_stock:>10}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(businesses_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(operations_group)
    app.cli.add_command(items_group)
