# Overview: Flask CLI command groups for bootstrap, notification and inspection.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--email admin@backoffice.local] [--password ...]
#   Idempotent: admin role, default windows, full grants, admin user.
#
# Users:
# - python -m flask users create --name "Jane" --email jane@example.com --password "..." [--role-id ...]
#
# Low stock (schedule this, e.g. hourly from cron):
# - python -m flask notification check-low-stock [--threshold 500]
#   Always exits 0; failed recipients are reported, not fatal.
#
# Role inspection:
# - python -m flask role usage <role_id>
#   Pretty JSON of every record that still references the role.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services import auth_service, bootstrap_service, notification_service, role_usage_service
from .services.auth_service import PasswordValidationError
from .validation import ConflictError, NotFoundError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--name', default='Administrator', help='Admin user name')
@click.option('--email', default='admin@backoffice.local', help='Admin user email')
@click.option('--password', default='Password123!', help='Admin user password')
@with_appcontext
def init_system(name, email, password):
    """
    Bootstrap the back office (idempotent).

    Creates the admin role, the default windows, grants every window to the
    admin role with edit and admin flags, and creates the admin user.
    """
    click.echo("START Initializing back office...")

    windows = bootstrap_service.ensure_default_windows()
    click.echo(f"PASS Default windows ready: {len(windows)}")

    role = bootstrap_service.ensure_admin_role()
    click.echo(f"PASS Admin role: {role.name} (ID: {role.id})")

    granted = bootstrap_service.grant_all_windows(role)
    click.echo(f"PASS Granted {granted} new window(s) to {role.name}")

    existing = db.session.query(User).filter(User.email == email).first()
    if existing:
        click.echo(f"WARN  User '{email}' already exists, skipping...")
    else:
        try:
            user = auth_service.create_user(
                {"name": name, "email": email, "password": password, "role_id": role.id},
                send_welcome=False,
            )
            click.echo(f"PASS Created user: {user.email} with role '{role.name}'")
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed for '{email}': {str(e)}")
            return

    click.echo("\n" + "="*60)
    click.echo("DONE Back office initialized")
    click.echo("="*60)
    click.echo("\nChange the default admin password before going to production.")


@click.group('users')
def users_group():
    """User commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Full name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role-id', default=None, help='Role ID')
@click.option('--send-email/--no-send-email', default=False, help='Send the welcome email')
@with_appcontext
def create_user_cli(name, email, password, role_id, send_email):
    """Create a user."""
    try:
        user = auth_service.create_user(
            {"name": name, "email": email, "password": password, "role_id": role_id},
            send_welcome=send_email,
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        return
    except (ValidationError, ConflictError) as e:
        detail = f" {e.errors}" if isinstance(e, ValidationError) and e.errors else ""
        click.echo(f"FAIL {str(e)}{detail}")
        return

    click.echo(f"PASS Created user: {user.name} ({user.email}) ID: {user.id}")


@click.group('notification')
def notification_group():
    """Low-stock notification commands."""


@notification_group.command('check-low-stock')
@click.option('--threshold', type=int, default=None, help='Minimum stock threshold (default: LOW_STOCK_THRESHOLD, 500)')
@with_appcontext
def check_low_stock(threshold):
    """Check raw materials with low stock and email the recipients."""
    report = notification_service.notify_low_stock(threshold=threshold)
    click.echo(f"Checking raw materials with stock below {report.threshold}...")

    if not report.materials:
        click.echo("No low stock materials found. No notifications sent.")
        return

    click.echo(f"Found {len(report.materials)} material(s) with low stock.")
    for material in report.materials:
        marker = "CRITICAL" if material.is_critical else "WARNING "
        click.echo(f"  {marker} {material.name}: {material.stock:g} {material.unit}")

    if not report.recipients:
        click.secho("No users found to send notifications.", fg="yellow")
        return

    if report.used_fallback:
        click.secho("No user opted in; using fallback recipients.", fg="yellow")

    failed = set(report.failed_recipients)
    for email in report.recipients:
        if email in failed:
            click.secho(f"  FAIL {email}", fg="red")
        else:
            click.echo(f"  SENT {email}")

    click.echo(f"\nNotifications sent: {report.success_count}")
    if report.failed_recipients:
        click.secho("Failed to send to: " + ", ".join(report.failed_recipients), fg="yellow")


@click.group('role')
def role_group():
    """Role inspection commands."""


@role_group.command('usage')
@click.argument('role_id')
@with_appcontext
def role_usage(role_id):
    """Show every record that references ROLE_ID."""
    try:
        result = role_usage_service.find_role_usage(role_id)
    except NotFoundError as e:
        click.echo(f"FAIL {str(e)}")
        raise SystemExit(1)
    click.echo(json.dumps(result, indent=2, ensure_ascii=False, default=str))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(notification_group)
    app.cli.add_command(role_group)
