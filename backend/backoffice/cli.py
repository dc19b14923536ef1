# Overview: Flask CLI command groups for bootstrap, user accounts, and stock maintenance.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username admin --password "Password123!"
#
# Stock:
# - python -m flask stock reconcile [--code P1] [--dry-run]
#   Rebuild product stock counters from the movement log and report drift.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import auth_service
from .services.inventory_service import reconcile_product_counters
from .validation import ServiceError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


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

    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """User account commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(username, password):
    """
    Create a new user.

    Password must be 8+ characters with uppercase, lowercase, digit and
    special character.
    """
    try:
        user = auth_service.create_user(username, password)
    except ServiceError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.username} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = auth_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Username':<30} {'Active':<8}")
    click.echo("="*60)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<30} {active_str:<8}")

    click.echo("="*60 + "\n")


@click.group('stock')
def stock_group():
    """Stock ledger maintenance."""


@stock_group.command('reconcile')
@click.option('--code', default=None, help='Only reconcile this product code')
@click.option('--dry-run', is_flag=True, help='Report drift without writing')
@with_appcontext
def reconcile_stock(code, dry_run):
    """Rebuild imported/exported/new_stock from stock movements."""
    try:
        drift = reconcile_product_counters(code, dry_run=dry_run)
    except ServiceError as e:
        raise click.ClickException(str(e))

    if not drift:
        click.echo("PASS Stock counters match the movement log")
        return

    for entry in drift:
        cached, ledger = entry["cached"], entry["ledger"]
        click.echo(
            f"WARN {entry['code']}: "
            f"imported {cached['imported']} -> {ledger['imported']}, "
            f"exported {cached['exported']} -> {ledger['exported']}, "
            f"new_stock {cached['new_stock']} -> {ledger['new_stock']}"
        )

    verb = "would be fixed" if dry_run else "fixed"
    click.echo(f"DONE {len(drift)} product(s) {verb}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
