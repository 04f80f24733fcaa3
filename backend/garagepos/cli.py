# Overview: Flask CLI command groups for bootstrap, users and business days.

# backend/garagepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--demo/--no-demo]
#   Idempotent bootstrap: tables, the built-in admin (admin / 1234), demo catalog.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system wipe --yes
#   Factory reset: clear trading data, keep users, catalog and settings.
#
# Users:
# - python -m flask users list
# - python -m flask users create --username kamal --password 1234 --role staff
#
# Business days:
# - python -m flask days list [--status open|closed] [--limit 20]

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import (
    BusinessSession,
    Customer,
    DayEndRecord,
    Expense,
    GoodsReceivedNote,
    InventoryItem,
    JournalEntry,
    LoginToken,
    Sale,
    ServiceDefinition,
    User,
    Vehicle,
)
from .models.auth import ROLES, ROLE_STAFF
from .services import auth_service, day_service
from .validation import ServiceError


DEMO_ITEMS = [
    {"part_name": "Engine Oil 4L", "part_number": "EO-4L", "category": "Oils",
     "price_cents": 950000, "buying_price_cents": 820000, "stock": 20},
    {"part_name": "Oil Filter", "part_number": "OF-100", "category": "Filters",
     "price_cents": 150000, "buying_price_cents": 110000, "stock": 30},
    {"part_name": "Air Filter", "part_number": "AF-200", "category": "Filters",
     "price_cents": 250000, "buying_price_cents": 180000, "stock": 15},
    {"part_name": "Brake Pads (Front)", "part_number": "BP-F1", "category": "Brakes",
     "price_cents": 450000, "buying_price_cents": 340000, "stock": 8},
]

DEMO_SERVICES = [
    {"service_name": "Body Wash", "cost_cents": 150000},
    {"service_name": "Full Service", "cost_cents": 500000},
    {"service_name": "Wheel Alignment", "cost_cents": 250000},
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--demo/--no-demo', default=True, help='Seed a demo catalog when it is empty')
@with_appcontext
def init_system(demo):
    """
    Initialize the till: create tables, the built-in admin and a demo catalog.

    Safe to run repeatedly; existing rows are left alone.
    """
    click.echo("START Initializing GaragePOS...")
    db.create_all()

    admin = auth_service.ensure_default_admin()
    click.echo(f"PASS Admin account: {admin.username} (ID: {admin.id})")

    if demo and not db.session.query(InventoryItem).first():
        db.session.add_all(InventoryItem(**row) for row in DEMO_ITEMS)
        db.session.add_all(ServiceDefinition(**row) for row in DEMO_SERVICES)
        db.session.commit()
        click.echo(f"PASS Seeded {len(DEMO_ITEMS)} items and {len(DEMO_SERVICES)} services")
    else:
        click.echo("PASS Catalog left unchanged")

    click.echo("\nDefault credentials (CHANGE IN PRODUCTION!): admin / 1234")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@system_group.command('wipe')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def wipe_data(yes):
    """
    Factory reset of trading data.

    Keeps: users, inventory items (stock untouched), services, suppliers,
    settings. Removes: sales, business days, day-end reports, customers,
    vehicles, expenses, GRNs, journal entries, login tokens.
    """
    if not yes:
        click.confirm("WARN This will DELETE all trading data. Are you sure?", abort=True)

    click.echo("WIPE  Clearing trading data...")

    # Children before parents
    tables = [
        ("DayEndRecord", DayEndRecord),
        ("Sale", Sale),
        ("BusinessSession", BusinessSession),
        ("Customer", Customer),
        ("Vehicle", Vehicle),
        ("Expense", Expense),
        ("GoodsReceivedNote", GoodsReceivedNote),
        ("JournalEntry", JournalEntry),
        ("LoginToken", LoginToken),
    ]
    for label, model in tables:
        count = db.session.query(model).delete(synchronize_session=False)
        click.echo(f"  {label:<20} {count} rows")
    db.session.commit()

    click.echo("PASS Trading data cleared.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(sorted(ROLES)), default=ROLE_STAFF, show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, password, role):
    """Create a till user."""
    try:
        user = auth_service.create_user(username, password, role=role)
        click.echo(f"PASS Created user: {user.username} with role '{user.role}'")
    except ServiceError as e:
        click.echo(f"FAIL Failed to create user: {e}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<10} {'Active'}")
    click.echo("="*60)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<10} {active_str}")
    click.echo("="*60 + "\n")


@click.group('days')
def days_group():
    """Business day inspection."""


@days_group.command('list')
@click.option('--status', type=click.Choice(['open', 'closed']), help='Filter by status')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_days(status, limit):
    """List recent business days."""
    sessions = day_service.list_sessions(status=status, limit=limit)
    if not sessions:
        click.echo("No business days found.")
        return

    click.echo(f"{'ID':<5} {'User':<15} {'Status':<8} {'Float':>12} {'Invoices':>9} {'Started'}")
    for s in sessions:
        username = s.user.username if s.user else "-"
        click.echo(
            f"{s.id:<5} {username:<15} {s.status:<8} {s.float_cash_cents / 100:>12,.2f} "
            f"{s.invoice_counter:>9} {s.start_time:%Y-%m-%d %H:%M}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(days_group)
