# Overview: Flask CLI command groups for bootstrap and user inspection.

# backend/boutique/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, the store settings row and default users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --email admin@boutique.local --name Admin --password "Password123!" --role ADMIN
#   Create a user (prompts if options are omitted).

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import User
from .permissions import ROLES
from .services.auth_service import create_user, list_users, PasswordValidationError
from .services.settings_service import get_settings


DEFAULT_PASSWORD = "Password123!"

DEFAULT_USERS = [
    ("admin@boutique.local", "Admin", "ADMIN"),
    ("cashier@boutique.local", "Cashier", "CASHIER"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the back office: schema, store settings and default users.

    Creates:
    - All tables (no-op for existing ones)
    - Store settings row with defaults
    - Users: admin@boutique.local (ADMIN), cashier@boutique.local (CASHIER)
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing boutique back office...")

    db.create_all()
    click.echo("PASS Tables ready")

    settings = get_settings()
    click.echo(f"PASS Store settings ready (exchange window: {settings.exchange_days} days)")

    click.echo("\nUSERS Creating default users...")
    for email, name, role in DEFAULT_USERS:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            create_user(email=email, password=DEFAULT_PASSWORD, name=name, role=role)
            click.echo(f"PASS Created user: {email} with role '{role}'")
        except ServiceError as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{email}': {e.message}")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for email, _, _ in DEFAULT_USERS:
        click.echo(f"   {email:<25} / {DEFAULT_PASSWORD}")
    click.echo("")


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


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES), case_sensitive=False), prompt=True, help='Role')
@click.option('--owner-id', type=int, default=None, help='Owner record for OWNER users')
@with_appcontext
def create_user_cli(email, name, password, role, owner_id):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(email=email, password=password, name=name, role=role, owner_id=owner_id)
        click.echo(f"PASS Created user: {user.email} with role '{user.role}'")
        click.echo("SECURITY Password securely hashed with bcrypt")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e.message}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ServiceError as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create user: {e.message}")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List all users with their role."""
    users = list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<32} {'Name':<24} {'Role':<9} {'Active'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<32} {user.name:<24} {user.role:<9} {active_str}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
