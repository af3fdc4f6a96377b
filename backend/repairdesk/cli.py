# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/repairdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--company "Shop Name"] [--company-code SHOP]
#   Idempotent bootstrap: company, location, roles and one user per role.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list [--company-id 1]
# - python -m flask users create --company-id 1 --username tech --email tech@shop.local --role technician
#
# Cash drawer:
# - python -m flask drawer current --company-id 1 [--location-id 1]
#   Show the open drawer session with its running expected cash.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Company, Location, User
from .money import from_cents
from .permissions import ROLE_DESCRIPTIONS
from .services import cash_drawer_service, permission_service
from .services.auth_service import create_user, create_default_roles, assign_role, PasswordValidationError


DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--company', 'company_name', default='Default Repair Shop', help='Company name')
@click.option('--company-code', default='DEFAULT', help='Company code')
@with_appcontext
def init_system(company_name, company_code):
    """
    Initialize a company with one location, the standard roles and a user per role.

    Users: admin, manager, frontdesk, technician (password "Password123!").
    Safe to re-run; existing rows are reused.
    """
    click.echo("START Initializing repair desk...")

    company = db.session.query(Company).filter_by(code=company_code).first()
    if not company:
        company = Company(name=company_name, code=company_code, is_active=True)
        db.session.add(company)
        db.session.commit()
        click.echo(f"PASS Created company: {company.name} (ID: {company.id}, Code: {company.code})")
    else:
        click.echo(f"PASS Using existing company: {company.name} (ID: {company.id})")

    location = db.session.query(Location).filter_by(company_id=company.id).first()
    if not location:
        location = Location(company_id=company.id, name="Main Shop", tax_rate_bps=0, tax_enabled=False)
        db.session.add(location)
        db.session.commit()
        click.echo(f"PASS Created location: {location.name} (ID: {location.id})")
    else:
        click.echo(f"PASS Using existing location: {location.name} (ID: {location.id})")

    create_default_roles(company.id)
    click.echo(f"PASS Roles ready: {', '.join(ROLE_DESCRIPTIONS)}")

    for role_name in ROLE_DESCRIPTIONS:
        existing = db.session.query(User).filter_by(company_id=company.id, username=role_name).first()
        if existing:
            click.echo(f"WARN  User '{role_name}' already exists, skipping...")
            continue
        try:
            user = create_user(
                username=role_name,
                email=f"{role_name}@{company.code.lower()}.local",
                password=DEFAULT_PASSWORD,
                company_id=company.id,
                location_id=location.id,
            )
            assign_role(user.id, role_name)
            click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{role_name}'")
        except (PasswordValidationError, ValueError) as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{role_name}': {e}")

    click.echo("\nDONE Initialized. Default password for all users: Password123! (change it)")


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
@click.option('--company-id', type=int, help='Company ID (uses the first company if not specified)')
@click.option('--location-id', type=int, help='Home location ID')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLE_DESCRIPTIONS)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(company_id, location_id, username, email, password, role):
    """
    Create a user in a company and assign one role.

    Password must be 8+ chars with uppercase, lowercase, digit and special char.
    """
    if company_id:
        company = db.session.query(Company).filter_by(id=company_id).first()
    else:
        company = db.session.query(Company).order_by(Company.id).first()
    if not company:
        click.echo("FAIL Company not found. Run 'python -m flask system init' first.")
        return

    create_default_roles(company.id)

    try:
        user = create_user(
            username=username,
            email=email,
            password=password,
            company_id=company.id,
            location_id=location_id,
        )
        assign_role(user.id, role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create user: {e}")
        return

    click.echo(f"PASS Created user: {username} ({email}) with role '{role}' in {company.name}")


@users_group.command('list')
@click.option('--company-id', type=int, help='Filter by company ID')
@with_appcontext
def list_users(company_id):
    """List all users with their roles."""
    query = db.session.query(User)
    if company_id:
        query = query.filter_by(company_id=company_id)

    users = query.order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Co':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Roles'}")
    click.echo("="*100)

    for user in users:
        roles_str = ", ".join(permission_service.get_user_roles(user.id)) or "none"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.company_id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {roles_str}")

    click.echo("="*100 + "\n")


@click.group('drawer')
def drawer_group():
    """Cash drawer inspection commands."""


@drawer_group.command('current')
@click.option('--company-id', type=int, required=True, help='Company ID')
@click.option('--location-id', type=int, help='Location ID (omit for the company-wide drawer)')
@with_appcontext
def current_drawer(company_id, location_id):
    """Show the open drawer session for a location."""
    drawer_session = cash_drawer_service.get_current_session(company_id, location_id)
    if not drawer_session:
        click.echo("No open cash drawer session.")
        return

    click.echo(f"Session {drawer_session.id} opened {drawer_session.opened_at} by user {drawer_session.opened_by_user_id}")
    click.echo(f"  Opening:  {from_cents(drawer_session.opening_amount_cents):.2f}")
    click.echo(f"  Sales:    {from_cents(drawer_session.cash_sales_cents):.2f}")
    click.echo(f"  Refunds:  {from_cents(drawer_session.cash_refunds_cents):.2f}")
    click.echo(f"  Expected: {from_cents(drawer_session.running_expected_cents()):.2f}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(drawer_group)
