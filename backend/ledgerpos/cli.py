# Overview: Flask CLI command groups for demo bootstrap and ledger inspection.

# backend/ledgerpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Demo bootstrap:
# - python -m flask ledger seed-demo [--tenant "Demo Store"]
#   Idempotent: creates a tenant, location, operator, two products (one with
#   a variant) with opening stock, a customer, a CASH and a BANK treasury
#   account, and maps card/QR/transfer proceeds to the BANK account.
#
# Ledger inspection:
# - python -m flask ledger check-stock [--tenant-id 1]
#   Compare every Stock row against the sum of its movements. Exits 1 on drift.

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Customer, Location, Product, ProductVariant, Tenant, User
from .services import cash_account_service, stock_service
from .services.sale_schemas import ProductRef, VariantRef


DEMO_PRODUCTS = [
    # sku, name, cost, sale, tax_rate, opening stock
    ("DEMO-COFFEE", "Coffee beans 1kg", Decimal("60.00"), Decimal("100.00"), Decimal("21"), 40),
    ("DEMO-MUG", "Ceramic mug", Decimal("12.50"), Decimal("25.00"), Decimal("21"), 25),
]

CARD_METHODS = ("DEBIT_CARD", "CREDIT_CARD", "QR", "TRANSFER")


@click.group('ledger')
def ledger_group():
    """Demo bootstrap and ledger inspection commands."""


@ledger_group.command('seed-demo')
@click.option('--tenant', 'tenant_name', default='Demo Store', help='Tenant name')
@click.option('--tenant-code', default='DEMO', help='Tenant code')
@with_appcontext
def seed_demo(tenant_name, tenant_code):
    """
    Create a ready-to-sell demo tenant.

    Safe to run twice: existing rows are reused, stock is only received the
    first time a product is created.
    """
    click.echo("START Seeding demo data...")

    tenant = db.session.query(Tenant).filter_by(code=tenant_code).first()
    if not tenant:
        tenant = Tenant(name=tenant_name, code=tenant_code, is_active=True)
        db.session.add(tenant)
        db.session.commit()
        click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id})")
    else:
        click.echo(f"PASS Using existing tenant: {tenant.name} (ID: {tenant.id})")

    location = db.session.query(Location).filter_by(tenant_id=tenant.id).order_by(Location.id).first()
    if not location:
        location = Location(tenant_id=tenant.id, name="Main Store", is_active=True)
        db.session.add(location)
        db.session.commit()
        click.echo(f"PASS Created location: {location.name} (ID: {location.id})")

    user = db.session.query(User).filter_by(tenant_id=tenant.id, email="cashier@demo.local").first()
    if not user:
        user = User(
            tenant_id=tenant.id,
            location_id=location.id,
            name="Demo Cashier",
            email="cashier@demo.local",
            is_active=True,
        )
        db.session.add(user)
        db.session.commit()
        click.echo(f"PASS Created operator: {user.email} (ID: {user.id})")

    click.echo("\nLIST Products and opening stock...")
    for sku, name, cost, sale, tax_rate, quantity in DEMO_PRODUCTS:
        product = db.session.query(Product).filter_by(tenant_id=tenant.id, sku=sku).first()
        if product:
            click.echo(f"WARN  Product {sku} already exists, skipping...")
            continue
        product = Product(
            tenant_id=tenant.id,
            sku=sku,
            name=name,
            cost_price=cost,
            sale_price=sale,
            tax_rate=tax_rate,
            is_active=True,
        )
        db.session.add(product)
        db.session.commit()
        stock_service.record_movement(
            tenant_id=tenant.id,
            location_id=location.id,
            item_ref=ProductRef(product.id),
            movement_type="PURCHASE",
            quantity=quantity,
            reason="Opening stock",
            user_id=user.id,
        )
        click.echo(f"PASS {sku}: {name} @ {sale} ({quantity} units)")

        if sku == "DEMO-MUG":
            variant = ProductVariant(
                tenant_id=tenant.id,
                product_id=product.id,
                sku=f"{sku}-BLUE",
                name="Blue",
                is_active=True,
            )
            db.session.add(variant)
            db.session.commit()
            stock_service.record_movement(
                tenant_id=tenant.id,
                location_id=location.id,
                item_ref=VariantRef(product.id, variant.id),
                movement_type="PURCHASE",
                quantity=10,
                reason="Opening stock",
                user_id=user.id,
            )
            click.echo(f"PASS {variant.sku}: {name} (Blue) (10 units)")

    customer = db.session.query(Customer).filter_by(tenant_id=tenant.id, email="customer@demo.local").first()
    if not customer:
        customer = Customer(tenant_id=tenant.id, name="Demo Customer", email="customer@demo.local", is_active=True)
        db.session.add(customer)
        db.session.commit()
        click.echo(f"PASS Created customer: {customer.name} (ID: {customer.id})")

    click.echo("\nLIST Treasury accounts...")
    accounts = {a.name: a for a in cash_account_service.list_accounts(tenant.id)}
    cash = accounts.get("Cash") or cash_account_service.create_account(
        tenant_id=tenant.id, name="Cash", account_type="CASH"
    )
    bank = accounts.get("Bank") or cash_account_service.create_account(
        tenant_id=tenant.id, name="Bank", account_type="BANK"
    )
    for method in CARD_METHODS:
        cash_account_service.set_payment_method_account(
            tenant_id=tenant.id,
            payment_method=method,
            cash_account_id=bank.id,
        )
    click.echo(f"PASS Cash account ID {cash.id}, bank account ID {bank.id}")
    click.echo(f"PASS Mapped {', '.join(CARD_METHODS)} -> {bank.name}")

    click.echo("\n" + "="*60)
    click.echo("DONE Demo data ready")
    click.echo("="*60)
    click.echo("\nRequest headers for the API:")
    click.echo(f"   X-Tenant-ID: {tenant.id}")
    click.echo(f"   X-User-ID:   {user.id}")
    click.echo("\nOpen a register before posting sales: POST /api/registers/open")
    click.echo("")


@ledger_group.command('check-stock')
@click.option('--tenant-id', type=int, help='Limit the check to one tenant')
@with_appcontext
def check_stock(tenant_id):
    """
    Verify that every Stock row equals the sum of its StockMovements.

    Example:
        flask ledger check-stock
        flask ledger check-stock --tenant-id 1
    """
    drift = stock_service.find_ledger_drift(tenant_id=tenant_id)
    if not drift:
        click.echo("PASS Stock rows match their movement ledger")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'Stock ID':<10} {'Location':<10} {'Item':<16} {'Quantity':<10} {'Ledger'}")
    click.echo("="*80)
    for row in drift:
        click.echo(
            f"{row['stock_id']:<10} {row['location_id']:<10} {row['item_key']:<16} "
            f"{row['quantity']:<10} {row['ledger_quantity']}"
        )
    click.echo("="*80)
    click.echo(f"FAIL {len(drift)} stock row(s) differ from their ledger")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
