# Overview: Flask CLI command groups for bootstrap, catalog seeding, stock and billing.

# backend/retail_assist/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app retail_assist <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask --app retail_assist system init-db
#   Create all tables (use `flask db upgrade` for migration-managed databases).
# - python -m flask --app retail_assist system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask --app retail_assist catalog seed
#   Load the demo catalogue with initial stock (skips products that exist).
#
# Stock:
# - python -m flask --app retail_assist stock receive BISPAR800G 50
#   Record a goods receipt.
#
# Billing:
# - python -m flask --app retail_assist billing stats --from 2024-01-01 --to 2024-01-31
#   Print invoice statistics (all time when no bounds are given).

import click
from flask.cli import with_appcontext

from .errors import RetailError
from .extensions import db
from .models import Product
from .services import billing_service, products_service, stock_service
from .time_utils import parse_iso_datetime


DEMO_CATALOG = [
    # (name, product_type, brand, weight_string, price_cents, active, initial_stock)
    ("Parle-G Gold Biscuits", "BISCUIT", "PARLE", "800g", 10000, True, 50),
    ("Tata Sugar", "SUGAR", "TATA", "1kg", 5000, True, 100),
    ("Tata Salt", "SALT", "TATA", "1kg", 2500, True, 75),
    ("Maggi 2-Minute Noodles", "NOODLES", "MAGGI", "70g", 1500, True, 200),
    ("Britannia Bread", "BREAD", "BRITANNIA", "400g", 3500, False, 0),
    ("Fortune Sunflower Oil", "OIL", "FORTUNE", "1l", 12000, True, 30),
    ("Aashirvaad Atta", "FLOUR", "AASHIRVAAD", "5kg", 28000, True, 25),
    ("Everest Red Chili Powder", "SPICE", "EVEREST", "100g", 4500, True, 80),
    ("Amul Fresh Milk", "DAIRY", "AMUL", "500ml", 2800, True, 60),
    ("Patanjali Basmati Rice", "RICE", "PATANJALI", "1kg", 15000, True, 40),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete. Run 'flask catalog seed' to load demo data.")


@click.group('catalog')
def catalog_group():
    """Product catalog commands."""


@catalog_group.command('seed')
@with_appcontext
def seed_catalog():
    """Load the demo catalogue. Products with an existing name are skipped."""
    created = 0
    for name, product_type, brand, weight_string, price_cents, active, initial_stock in DEMO_CATALOG:
        if db.session.query(Product.id).filter_by(name=name).first() is not None:
            click.echo(f"SKIP {name} (already exists)")
            continue

        product = products_service.create_product(data={
            "name": name,
            "product_type": product_type,
            "brand": brand,
            "weight_string": weight_string,
            "price_cents": price_cents,
            "is_active": active,
            "initial_stock": initial_stock,
        })
        created += 1
        click.echo(f"PASS {product['sku']:<14} {name} ({product['weightDisplay']}, stock {initial_stock})")

    click.echo(f"PASS Seeded {created} product(s).")


@click.group('stock')
def stock_group():
    """Stock ledger commands."""


@stock_group.command('receive')
@click.argument('sku')
@click.argument('qty', type=int)
@with_appcontext
def receive_stock_cli(sku, qty):
    """Record a goods receipt of QTY units for SKU."""
    try:
        stock = stock_service.receive_stock(sku, qty)
    except RetailError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Received {qty} units of {sku}. On hand: {stock['quantity']}")


@click.group('billing')
def billing_group():
    """Billing inspection commands."""


@billing_group.command('stats')
@click.option('--from', 'from_date', help='Start date (ISO-8601)')
@click.option('--to', 'to_date', help='End date (ISO-8601); a bare date covers the whole day')
@with_appcontext
def billing_stats(from_date, to_date):
    """Print paid invoice count, revenue and cancelled count."""
    try:
        start = parse_iso_datetime(from_date)
        end = parse_iso_datetime(to_date, end_of_day=True)
    except ValueError:
        raise click.BadParameter("dates must be ISO-8601, e.g. 2024-01-31")

    if start and end and start > end:
        raise click.BadParameter("--from must be before --to")

    stats = billing_service.get_invoice_stats(start, end)
    period = stats["period"]
    if isinstance(period, dict):
        period = f"{period['from'] or '-'} .. {period['to'] or '-'}"

    click.echo(f"Period:              {period}")
    click.echo(f"Paid invoices:       {stats['totalInvoices']}")
    click.echo(f"Revenue:             {stats['totalRevenueCents'] / 100:,.2f}")
    click.echo(f"Cancelled invoices:  {stats['cancelledInvoices']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(billing_group)
