# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/visitdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to visitdesk (PowerShell: $env:FLASK_APP="visitdesk").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-password "..."]
#   Idempotent bootstrap: creates tables, seeds the priced products, sets the admin password.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Visits:
# - python -m flask visits list
#   Active visits with people remaining and time left.
# - python -m flask visits end <visit_id>
#   Close a visit (e.g. a party that left without checking out).
#
# Products:
# - python -m flask products list
# - python -m flask products set-price "Extension hour" 500

import click
from flask.cli import with_appcontext

from .errors import VisitDeskError
from .extensions import db
from .models import Product
from .services import auth_service, occupancy_service, pricing_service, visit_service
from .services.auth_service import PasswordValidationError

# Seed prices in cents; adjust with `products set-price`
DEFAULT_PRICES = {
    pricing_service.FIRST_HOUR: 1500,
    pricing_service.SUBSEQUENT_HOUR: 500,
    pricing_service.EXTENSION_HOUR: 500,
    pricing_service.DRINK: 300,
}


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-password', default=None, help='Set (or reset) the back-office password')
@with_appcontext
def init_system(admin_password):
    """Create tables, seed priced products and optionally set the admin password."""
    click.echo("START Initializing visitdesk...")

    db.create_all()

    for name, price_cents in DEFAULT_PRICES.items():
        existing = db.session.query(Product).filter_by(name=name).first()
        if existing:
            click.echo(f"WARN  Product '{name}' already exists, skipping...")
            continue
        db.session.add(Product(name=name, price_cents=price_cents, is_active=True))
        click.echo(f"PASS Created product: {name} @ {price_cents} cents")
    db.session.commit()

    if admin_password:
        try:
            auth_service.set_admin_password(admin_password)
            click.echo("PASS Admin password set")
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed: {str(e)}")
    elif not auth_service.is_admin_password_set():
        click.echo("WARN  No admin password set; back office is locked until --admin-password is given")

    click.echo("DONE visitdesk initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('visits')
def visits_group():
    """Visit inspection commands."""


@visits_group.command('list')
@with_appcontext
def list_visits():
    data = occupancy_service.dashboard()
    if not data["visits"]:
        click.echo("No active visits")
    for card in data["visits"]:
        left = card["seconds_left"]
        remaining = f"{left // 60}:{left % 60:02d}" if left is not None else "--:--"
        click.echo(
            f"{card['id']}  {card['name']:<20} inside {card['people_remaining']}/{card['pax']}"
            f"  drinks {card['drinks_collected']}/{card['pax']}  left {remaining}"
        )
    click.echo(f"Total people inside: {data['total_people_inside']}")


@visits_group.command('end')
@click.argument('visit_id')
@with_appcontext
def end_visit(visit_id):
    try:
        visit_service.end_visit(visit_id)
        click.echo(f"PASS Visit {visit_id} closed")
    except VisitDeskError as e:
        click.echo(f"FAIL {e}")


@click.group('products')
def products_group():
    """Catalog inspection commands."""


@products_group.command('list')
@with_appcontext
def list_products():
    for p in db.session.query(Product).order_by(Product.name).all():
        state = "active" if p.is_active else "inactive"
        click.echo(f"{p.id:>4}  {p.name:<20} {p.price_cents:>8} cents  {state}")


@products_group.command('set-price')
@click.argument('name')
@click.argument('price_cents', type=int)
@with_appcontext
def set_price(name, price_cents):
    if price_cents < 0:
        click.echo("FAIL price_cents must be >= 0")
        return
    products = db.session.query(Product).filter_by(name=name, is_active=True).all()
    if len(products) != 1:
        click.echo(f"FAIL Expected exactly one active product named '{name}', found {len(products)}")
        return
    products[0].price_cents = price_cents
    db.session.commit()
    click.echo(f"PASS {name} now {price_cents} cents")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(visits_group)
    app.cli.add_command(products_group)
