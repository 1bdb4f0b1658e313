# Overview: Flask CLI command groups for schema reset, counter inspection, and workflow repair.

# backend/garment_erp/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask db upgrade
#   Apply migrations (Flask-Migrate).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Document counters:
# - python -m flask counters list
#   List every counter with its current value and the next number.
# - python -m flask counters peek globalOrderSeq
#   Show the next number for a counter without issuing it.
# - python -m flask counters reset storeLogSeq --value 0 --yes
#   Administrative reset. Numbers already issued are NOT renumbered.
#
# Workflow repair:
# - python -m flask orders orphans
#   List orders without a purchase and completed purchases without a production.
# - python -m flask orders repair
#   Create the missing placeholder purchases and productions.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services.reconciliation_service import find_workflow_gaps, repair_workflow_gaps
from .services.sequence_service import get_sequence_service
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and maintenance commands."""
    pass


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, counters included!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@click.group('counters')
def counters_group():
    """Document number counter commands."""
    pass


@counters_group.command('list')
@with_appcontext
def list_counters():
    """List all counters."""
    counters = get_sequence_service().all()

    if not counters:
        click.echo("No counters issued yet")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'KEY':<40} {'VALUE':<10} {'NEXT':<10}")
    click.echo("="*70)
    for counter in counters:
        click.echo(f"{counter.key:<40} {counter.value:<10} {counter.value + 1:<10}")
    click.echo("="*70 + "\n")


@counters_group.command('peek')
@click.argument('key')
@with_appcontext
def peek_counter(key):
    """Show the next number for KEY without issuing it."""
    try:
        next_value = get_sequence_service().peek(key)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(f"{key}: next = {next_value}")


@counters_group.command('reset')
@click.argument('key')
@click.option('--value', default=0, show_default=True, type=int, help='Value to store (the next number is value + 1)')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_counter(key, value, yes):
    """
    Administrative reset of one counter.

    Resetting below the highest number in use will make the next document
    collide with an existing one.
    """
    if not yes:
        click.confirm(f"WARN Reset counter '{key}' to {value}?", abort=True)

    service = get_sequence_service()
    try:
        service.reset(key, value)
        db.session.commit()
    except ValidationError as e:
        db.session.rollback()
        raise click.ClickException(str(e))

    click.echo(f"PASS Counter '{key}' reset to {value} (next = {value + 1})")


@click.group('orders')
def orders_group():
    """Order workflow inspection and repair commands."""
    pass


@orders_group.command('orphans')
@with_appcontext
def list_orphans():
    """List workflow documents missing their follow-up document."""
    gaps = find_workflow_gaps()

    orders = gaps["orders_without_purchase"]
    purchases = gaps["completed_purchases_without_production"]

    click.echo(f"\nOrders without purchase: {len(orders)}")
    for row in orders:
        click.echo(f"  {row['order_id']:<6} {row['order_number']:<12} {row['status']}")

    click.echo(f"\nCompleted purchases without production: {len(purchases)}")
    for row in purchases:
        click.echo(f"  {row['purchase_id']:<6} {row['pur_number']:<12} order_id={row['order_id']}")
    click.echo("")


@orders_group.command('repair')
@with_appcontext
def repair_orphans():
    """Create missing placeholder purchases and productions."""
    result = repair_workflow_gaps()

    click.echo(f"PASS Purchases created: {len(result['purchases'])}")
    for number in result["purchases"]:
        click.echo(f"  {number}")
    click.echo(f"PASS Productions created: {len(result['productions'])}")
    for number in result["productions"]:
        click.echo(f"  {number}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(counters_group)
    app.cli.add_command(orders_group)
