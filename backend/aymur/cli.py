# Overview: Flask CLI command groups for bootstrap and ledger maintenance.

# backend/aymur/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed --shop "Main Shop" --items 5
#   Create a demo shop with one customer and a few available inventory items.
#
# Ledger maintenance:
# - python -m flask ledger verify [--customer-id 7]
#   Walk every (or one) customer's ledger chain and report breaks.
# - python -m flask ledger reconcile [--customer-id 7]
#   Re-derive customer balances/totals from the ledger (repairs reconciliation debt).

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .extensions import db
from .models import Customer, InventoryItem, Shop, ShopSetting
from .services import ledger_service
from .time_utils import utcnow


SYSTEM_ACTOR_ID = 0


@click.group('system')
def system_group():
    """System bootstrap commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed' to add demo data.")


@system_group.command('seed')
@click.option('--shop', 'shop_name', default='Main Shop', show_default=True, help='Shop name')
@click.option('--currency', default='USD', show_default=True, help='Shop currency')
@click.option('--prefix', default=None, help='Invoice prefix (defaults to DEFAULT_INVOICE_PREFIX)')
@click.option('--items', 'item_count', type=int, default=5, show_default=True, help='Available items to create')
@with_appcontext
def seed(shop_name, currency, prefix, item_count):
    """Create a demo shop, one customer and some available items."""
    now = utcnow()
    shop = Shop(name=shop_name, currency=currency.upper(), is_active=True, created_at=now)
    db.session.add(shop)
    db.session.flush()

    if prefix:
        db.session.add(ShopSetting(shop_id=shop.id, invoice_prefix=prefix))

    customer = Customer(shop_id=shop.id, full_name="Walk-in Customer", created_at=now)
    db.session.add(customer)

    for n in range(1, item_count + 1):
        db.session.add(InventoryItem(
            shop_id=shop.id,
            item_name=f"Demo Ring {n}",
            barcode=f"DEMO-{shop.id:03d}-{n:04d}",
            weight_grams=Decimal("3.500"),
            metal_type="gold",
            metal_purity="18k",
            created_at=now,
        ))

    db.session.commit()
    click.echo(f"PASS Shop {shop.id} '{shop_name}' seeded: customer {customer.id}, {item_count} items")


@click.group('ledger')
def ledger_group():
    """Customer ledger verification and reconciliation."""


def _customer_ids(customer_id):
    if customer_id:
        return [customer_id]
    return [row[0] for row in db.session.query(Customer.id).order_by(Customer.id).all()]


@ledger_group.command('verify')
@click.option('--customer-id', type=int, help='Only this customer')
@with_appcontext
def verify_ledger(customer_id):
    """Check every balance_after against the previous entry and the debit/credit."""
    broken = 0
    for cid in _customer_ids(customer_id):
        problems = ledger_service.verify_chain(cid)
        if problems:
            broken += 1
            click.echo(f"FAIL customer {cid}: {len(problems)} problem(s)")
            for problem in problems:
                click.echo(
                    f"     txn {problem['transaction_id']}: {problem['problem']} "
                    f"(expected {problem['expected']}, actual {problem['actual']})"
                )
    if broken:
        raise click.ClickException(f"{broken} customer ledger(s) failed verification")
    click.echo("PASS All customer ledgers verified")


@ledger_group.command('reconcile')
@click.option('--customer-id', type=int, help='Only this customer')
@with_appcontext
def reconcile_ledger(customer_id):
    """Rewrite customer aggregates from the ledger."""
    changed = 0
    for cid in _customer_ids(customer_id):
        report = ledger_service.reconcile_customer(cid, SYSTEM_ACTOR_ID)
        if report["changed"]:
            changed += 1
            click.echo(f"FIX  customer {cid}: {', '.join(sorted(report['changed']))}")
        if report["chain_problems"]:
            click.echo(f"WARN customer {cid}: ledger chain has {len(report['chain_problems'])} problem(s)")
    click.echo(f"PASS Reconciliation complete ({changed} customer(s) updated)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
