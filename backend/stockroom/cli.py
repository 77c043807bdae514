# Overview: Flask CLI command groups for bootstrap, inspection, and seeding.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create tables and the default dashboard user (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --email owner@stockroom.local --password "Password123!"
#
# Products:
# - python -m flask products list [--low-stock]
# - python -m flask products seed
#   Insert the sample catalogue (skips names that already exist).

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services.auth_service import create_user, PasswordValidationError
from .services.ledger_service import StockLedger, build_product_entry
from .services.mirror import LedgerMirror
from .services.reconciliation_service import Reconciler
from .services.workspace_service import get_store
from .validation import DuplicateName, InventoryError


DEFAULT_EMAIL = "owner@stockroom.local"
DEFAULT_PASSWORD = "Password123!"

SAMPLE_PRODUCTS = [
    ("Rice", 100, "kg", "50.00"),
    ("Sugar", 40, "kg", "42.50"),
    ("Cooking Oil", 25, "litre", "180.00"),
    ("Flour", 80, "kg", "38.00"),
    ("Salt", 120, "packet", "12.00"),
]


def _loaded_ledger() -> StockLedger:
    """A ledger over a freshly loaded mirror, for one-off CLI work."""
    store = get_store()
    mirror = LedgerMirror()
    Reconciler(mirror, store).refresh_all()
    return StockLedger(mirror, store, low_stock_threshold=current_app.config["LOW_STOCK_THRESHOLD"])


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables and the default user if missing."""
    click.echo("START Initializing stockroom...")
    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter_by(email=DEFAULT_EMAIL).first()
    if existing:
        click.echo(f"WARN  User '{DEFAULT_EMAIL}' already exists, skipping...")
    else:
        create_user(DEFAULT_EMAIL, DEFAULT_PASSWORD)
        click.echo(f"PASS Created user: {DEFAULT_EMAIL}")
        click.echo(f"\nDefault Credentials (CHANGE IN PRODUCTION!): {DEFAULT_EMAIL} / {DEFAULT_PASSWORD}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and creation."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return
    for u in users:
        status = "active" if u.is_active else "inactive"
        click.echo(f"{u.id:>4}  {u.email:<40} {status}")


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_user_command(email, password):
    try:
        user = create_user(email, password)
    except (PasswordValidationError, ValueError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created user: {user.email} (ID: {user.id})")


@click.group('products')
def products_group():
    """Product inspection and seeding."""


@products_group.command('list')
@click.option('--low-stock', is_flag=True, help='Only products below the low-stock threshold')
@with_appcontext
def list_products(low_stock):
    ledger = _loaded_ledger()
    products = ledger.low_stock() if low_stock else ledger.mirror.products
    if not products:
        click.echo("No products found.")
        return
    for p in products:
        flag = " LOW" if p.stock < ledger.low_stock_threshold else ""
        click.echo(f"{p.id:>4}  {p.name:<30} {p.stock:>6} {p.unit:<8} {p.price:>10}{flag}")


@products_group.command('seed')
@with_appcontext
def seed_products():
    """Insert the sample catalogue in one batch, skipping names already present."""
    ledger = _loaded_ledger()
    entries = []
    for name, stock, unit, price in SAMPLE_PRODUCTS:
        try:
            ledger.check_name_available(name, entries)
        except DuplicateName:
            click.echo(f"WARN  Product '{name}' already exists, skipping...")
            continue
        entries.append(build_product_entry(name, stock, unit, price))

    if not entries:
        click.echo("PASS Nothing to seed")
        return

    try:
        created = ledger.create_products(entries)
    except InventoryError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created {len(created)} product(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
