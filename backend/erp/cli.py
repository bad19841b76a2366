# Overview: Flask CLI command groups for bootstrap, accounts and maintenance.

# backend/erp/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create missing tables and seed the default chart of accounts (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User bootstrap:
# - python -m flask users create --email owner@example.com --name "홍길동" --phone 010-1234-5678
#       --business-number 123-45-67890 --company-name "테스트상사" --representative "홍길동"
#   Create an owner account with its first business (prompts for the password).
# - python -m flask users list
#   List all users with role, business and active status.
#
# Chart of accounts:
# - python -m flask accounts seed
#   Insert any missing default accounts.
#
# Maintenance:
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.
# - python -m flask maintenance cleanup-otps --older-than-hours 24
#   Delete OTP rows that expired before the cutoff.

from datetime import timedelta

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services import account_service, auth_service, otp_service, security_service
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables that do not exist yet and seed default accounts."""
    db.create_all()
    created = account_service.seed_default_accounts()
    click.echo(f"PASS Tables ready. {created} default accounts created.")


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
    account_service.seed_default_accounts()

    click.echo("PASS Database reset complete.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address (login id)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--name', prompt=True, help='Display name')
@click.option('--phone', prompt=True, help='Mobile number for OTP delivery')
@click.option('--business-number', prompt=True, help='Business number (123-45-67890)')
@click.option('--company-name', prompt=True, help='Company name')
@click.option('--representative', prompt=True, help='Representative name')
@with_appcontext
def create_user_cli(email, password, name, phone, business_number, company_name, representative):
    """
    Create an owner account and its first business, same rules as signup.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    payload = {
        "email": email,
        "password": password,
        "name": name,
        "phone": phone,
        "businessInfo": {
            "businessNumber": business_number,
            "companyName": company_name,
            "representative": representative,
        },
    }
    try:
        user, business = auth_service.signup(payload=payload)
    except ValidationError as e:
        click.echo(f"FAIL {e.message}")
        for error in e.errors:
            click.echo(f"     - {error}")
        raise SystemExit(1)
    except ConflictError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.email} (ID: {user.id})")
    click.echo(f"     Business: {business.company_name} (ID: {business.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    for user in users:
        status = "active" if user.is_active else "inactive"
        business = f"business {user.business_id}" if user.business_id else "owner"
        click.echo(f"{user.id:>4}  {user.email:<32} {user.role:<13} {business:<14} {status}")


@click.group('accounts')
def accounts_group():
    """Chart of accounts commands."""


@accounts_group.command('seed')
@with_appcontext
def seed_accounts():
    created = account_service.seed_default_accounts()
    click.echo(f"PASS {created} default accounts created.")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    try:
        deleted = security_service.purge_security_events(retention_days=retention_days)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='--retention-days')
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


@maintenance_group.command('cleanup-otps')
@click.option('--older-than-hours', type=click.IntRange(min=1), default=24, show_default=True)
@with_appcontext
def cleanup_otps_cli(older_than_hours):
    deleted = otp_service.cleanup_expired(older_than=timedelta(hours=older_than_hours))
    click.echo(f"Deleted {deleted} OTP codes expired more than {older_than_hours} hours ago.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(maintenance_group)
