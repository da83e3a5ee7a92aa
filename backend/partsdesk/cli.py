# Overview: Flask CLI command groups for bootstrap, inspection, and demo data.

# backend/partsdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--email super@partsdesk.local]
#   Create all tables and a super_admin account (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Demo companies, stores, retailers, parts and one user per role.
#
# User inspection/bootstrap:
# - python -m flask users list [--company-id 1]
#   List all users with role, scope and active status.
# - python -m flask users create --name "Bob Manager" --email manager@store1.com --role manager --company-id 1 --store-id NYC001
#   Create a user (prompts for the password if omitted).
# - python -m flask users deactivate alice@store1.com  (or: users activate <email>)
#   Toggle login; deactivation revokes every open session.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Company, Store, Retailer, Part, User
from .permissions import Role
from .services.auth_service import (
    create_user,
    set_user_active,
    PasswordValidationError,
    UserValidationError,
)


DEFAULT_PASSWORD = "Password123!"

DEMO_COMPANIES = [
    ("1", "AutoParts Plus", "123 Main St, New York, NY 10001", "info@autopartsplus.com"),
    ("2", "Premier Auto Supply", "456 Oak Ave, Los Angeles, CA 90210", "contact@premierautosupply.com"),
    ("3", "Metro Parts Distribution", "789 Elm St, Chicago, IL 60601", "sales@metroparts.com"),
]

DEMO_STORES = [
    ("NYC001", "1", "Manhattan Central Store", "123 Broadway, New York, NY 10001"),
    ("NYC002", "1", "Brooklyn East Store", "456 Atlantic Ave, Brooklyn, NY 11217"),
    ("LA001", "2", "Hollywood Store", "789 Sunset Blvd, Los Angeles, CA 90028"),
    ("CHI001", "3", "Downtown Chicago Store", "321 Michigan Ave, Chicago, IL 60601"),
]

# (id, name, contact, email, credit limit, home store)
DEMO_RETAILERS = [
    (1, "Downtown Auto Parts", "Michael Johnson", "michael@downtownauto.com", 50000, "NYC001"),
    (2, "Quick Fix Auto", "Sarah Williams", "sarah@quickfixauto.com", 75000, "NYC001"),
    (3, "Sunset Auto Supply", "David Chen", "david@sunsetauto.com", 100000, "LA001"),
    (4, "Brooklyn Parts Hub", "Lisa Rodriguez", "lisa@brooklynparts.com", 25000, "CHI001"),
]

# (part number, name, category, price, min qty, basic, scheme, additional)
DEMO_PARTS = [
    ("SP-001-NGK", "NGK Spark Plug - Standard", "Ignition System", 1299, 10, 5, 3, 2),
    ("BP-002-BREMBO", "Brembo Brake Pads - Front Set", "Brake Pads", 4599, 5, 8, 5, 3),
    ("OF-003-MANN", "Mann Oil Filter - Premium", "Filters", 899, 20, 3, 2, 1),
]

# (name, email, role, company, store, retailer)
DEMO_USERS = [
    ("John Super", "super@nextapp.com", Role.SUPER_ADMIN, None, None, None),
    ("Jane Admin", "admin@company1.com", Role.ADMIN, "1", None, None),
    ("Bob Manager", "manager@store1.com", Role.MANAGER, "1", "NYC001", None),
    ("Alice Storeman", "alice@store1.com", Role.STOREMAN, "1", "NYC001", None),
    ("Charlie Sales", "charlie@company1.com", Role.SALESMAN, "1", "NYC001", None),
    ("Michael Johnson", "retailer@downtownauto.com", Role.RETAILER, None, None, 1),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--name', default='System Administrator', show_default=True, help='Super admin display name')
@click.option('--email', default='super@partsdesk.local', show_default=True, help='Super admin email')
@click.option('--password', default=DEFAULT_PASSWORD, show_default=True, help='Super admin password')
@with_appcontext
def init_system(name, email, password):
    """
    Create all tables and a super_admin account.

    Safe to run repeatedly; an existing account with the same email is kept.

    SECURITY: Change the password immediately in production!
    """
    click.echo("START Initializing PartsDesk...")
    db.create_all()
    click.echo("PASS Tables created")

    existing = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if existing:
        click.echo(f"WARN  User '{email}' already exists, skipping...")
        return

    try:
        create_user(name, email, password, Role.SUPER_ADMIN.value)
    except (PasswordValidationError, UserValidationError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created super_admin: {email}")


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


@system_group.command('seed-demo')
@click.option('--password', default=DEFAULT_PASSWORD, show_default=True, help='Password for seeded users')
@with_appcontext
def seed_demo(password):
    """
    Seed demo companies, stores, retailers, parts and one user per role.

    Idempotent: rows that already exist are left untouched.
    """
    db.create_all()

    for company_id, name, address, email in DEMO_COMPANIES:
        if db.session.get(Company, company_id) is None:
            db.session.add(Company(id=company_id, name=name, address=address, contact_email=email))
    db.session.flush()

    for code, company_id, name, address in DEMO_STORES:
        if db.session.get(Store, code) is None:
            db.session.add(Store(code=code, company_id=company_id, name=name, address=address))
    db.session.flush()

    for retailer_id, name, contact, email, credit_limit, store_code in DEMO_RETAILERS:
        if db.session.get(Retailer, retailer_id) is None:
            db.session.add(Retailer(
                id=retailer_id,
                name=name,
                contact_person=contact,
                email=email,
                credit_limit=credit_limit,
                store_code=store_code,
            ))

    for part_number, name, category, price, min_qty, basic, scheme, additional in DEMO_PARTS:
        if db.session.get(Part, part_number) is None:
            db.session.add(Part(
                part_number=part_number,
                name=name,
                category=category,
                price=price,
                min_qty=min_qty,
                basic_discount=basic,
                scheme_discount=scheme,
                additional_discount=additional,
            ))
    db.session.commit()
    click.echo(
        f"PASS Seeded {len(DEMO_COMPANIES)} companies, {len(DEMO_STORES)} stores, "
        f"{len(DEMO_RETAILERS)} retailers, {len(DEMO_PARTS)} parts"
    )

    for name, email, role, company_id, store_id, retailer_id in DEMO_USERS:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            create_user(
                name, email, password, role.value,
                company_id=company_id, store_id=store_id, retailer_id=retailer_id,
            )
            click.echo(f"PASS Created user: {email} with role '{role.value}'")
        except (PasswordValidationError, UserValidationError) as e:
            click.echo(f"FAIL Failed to create user '{email}': {e}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([role.value for role in Role]), prompt=True, help='Role')
@click.option('--company-id', default=None, help='Company ID (admin, manager, storeman, salesman)')
@click.option('--store-id', default=None, help='Store code (manager, storeman, salesman)')
@click.option('--retailer-id', type=int, default=None, help='Retailer ID (retailer)')
@with_appcontext
def create_user_cli(name, email, password, role, company_id, store_id, retailer_id):
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
        user = create_user(
            name, email, password, role,
            company_id=company_id, store_id=store_id, retailer_id=retailer_id,
        )
    except PasswordValidationError as e:
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        raise click.ClickException(f"Password validation failed: {e}")
    except UserValidationError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.email} with role '{user.role}' (ID: {user.id})")


@users_group.command('list')
@click.option('--company-id', default=None, help='Filter by company ID')
@with_appcontext
def list_users(company_id):
    """List all users with their role and scope."""
    query = db.session.query(User)
    if company_id:
        query = query.filter_by(company_id=company_id)

    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Email':<32} {'Role':<12} {'Company':<9} {'Store':<9} {'Retailer':<9} {'Active'}")
    click.echo("=" * 100)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.email:<32} {user.role:<12} {user.company_id or '-':<9} "
            f"{user.store_id or '-':<9} {user.retailer_id or '-':<9} {active_str}"
        )

    click.echo("=" * 100 + "\n")


def _set_active(email, is_active):
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if user is None:
        raise click.ClickException(f"User '{email}' not found")
    set_user_active(user.id, is_active)
    state = "active" if is_active else "inactive"
    click.echo(f"PASS User {user.email} is now {state}")


@users_group.command('deactivate')
@click.argument('email')
@with_appcontext
def deactivate_user(email):
    """Block login and revoke all sessions for a user."""
    _set_active(email, False)


@users_group.command('activate')
@click.argument('email')
@with_appcontext
def activate_user(email):
    """Allow a deactivated user to log in again."""
    _set_active(email, True)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
