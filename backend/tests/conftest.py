"""
Pytest fixtures for ledgerpos backend tests.

Provides the test database, a test client, and a small retail setup:
two tenants, a location with an operator, products with stock, a customer,
treasury accounts with card mappings, and an open register session.
"""

from decimal import Decimal

import pytest

from ledgerpos import create_app
from ledgerpos.config import TestConfig
from ledgerpos.extensions import db
from ledgerpos.models import Customer, Location, Product, ProductVariant, Tenant, User
from ledgerpos.services import cash_account_service, register_service, stock_service
from ledgerpos.services.sale_schemas import (
    CartItem,
    PaymentEntry,
    PercentageDiscount,
    ProductRef,
    SaleRequest,
    VariantRef,
)
from ledgerpos.services.sales_service import SaleContext


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


# =============================================================================
# TENANCY
# =============================================================================

@pytest.fixture(scope='function')
def tenant(db_session):
    tenant = Tenant(name="Acme Retail", code="ACME", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def other_tenant(db_session):
    tenant = Tenant(name="Beta Shop", code="BETA", is_active=True)
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def location(db_session, tenant):
    location = Location(tenant_id=tenant.id, name="Main Store", is_active=True)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def user(db_session, tenant, location):
    """Cashier assigned to the main location."""
    user = User(
        tenant_id=tenant.id,
        location_id=location.id,
        name="Cashier",
        email="cashier@acme.test",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def other_user(db_session, other_tenant):
    location = Location(tenant_id=other_tenant.id, name="Beta Store", is_active=True)
    db_session.add(location)
    db_session.commit()
    user = User(
        tenant_id=other_tenant.id,
        location_id=location.id,
        name="Beta Cashier",
        email="cashier@beta.test",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


# =============================================================================
# CATALOG AND STOCK
# =============================================================================

@pytest.fixture(scope='function')
def product(db_session, tenant):
    """Tax-inclusive price 100.00 at 21% VAT, cost 60.00."""
    product = Product(
        tenant_id=tenant.id,
        sku="COFFEE-1KG",
        name="Coffee beans 1kg",
        cost_price=Decimal("60.00"),
        sale_price=Decimal("100.00"),
        tax_rate=Decimal("21"),
        is_active=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant(db_session, tenant):
    """Blue mug variant without its own cost (falls back to the product's 12.50)."""
    mug = Product(
        tenant_id=tenant.id,
        sku="MUG",
        name="Ceramic mug",
        cost_price=Decimal("12.50"),
        sale_price=Decimal("25.00"),
        tax_rate=Decimal("21"),
        is_active=True,
    )
    db_session.add(mug)
    db_session.commit()
    variant = ProductVariant(
        tenant_id=tenant.id,
        product_id=mug.id,
        sku="MUG-BLUE",
        name="Blue",
        is_active=True,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


def receive_stock(tenant_id, location_id, item_ref, quantity):
    return stock_service.record_movement(
        tenant_id=tenant_id,
        location_id=location_id,
        item_ref=item_ref,
        movement_type="PURCHASE",
        quantity=quantity,
        reason="Opening stock",
    )


@pytest.fixture(scope='function')
def stocked_product(product, location):
    """Product with 10 units at the main location."""
    receive_stock(product.tenant_id, location.id, ProductRef(product.id), 10)
    return product


@pytest.fixture(scope='function')
def stocked_variant(variant, location):
    """Variant with 5 units at the main location."""
    receive_stock(variant.tenant_id, location.id, VariantRef(variant.product_id, variant.id), 5)
    return variant


# =============================================================================
# CUSTOMERS, TREASURY, REGISTERS
# =============================================================================

@pytest.fixture(scope='function')
def customer(db_session, tenant):
    customer = Customer(tenant_id=tenant.id, name="Jane Buyer", email="jane@example.test", is_active=True)
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def cash_account(tenant):
    return cash_account_service.create_account(tenant_id=tenant.id, name="Cash", account_type="CASH")


@pytest.fixture(scope='function')
def bank_account(tenant):
    """BANK account receiving DEBIT_CARD and CREDIT_CARD proceeds."""
    account = cash_account_service.create_account(tenant_id=tenant.id, name="Bank", account_type="BANK")
    for method in ("DEBIT_CARD", "CREDIT_CARD"):
        cash_account_service.set_payment_method_account(
            tenant_id=tenant.id,
            payment_method=method,
            cash_account_id=account.id,
        )
    return account


@pytest.fixture(scope='function')
def open_session(tenant, user, location, cash_account):
    """Session with a 100.00 float drawn from the CASH account (left at 0.00)."""
    cash_account_service.record_manual_movement(
        tenant_id=tenant.id,
        account_id=cash_account.id,
        movement_type="RECEIVED",
        amount="100.00",
        concept="Change fund",
    )
    return register_service.open_session(tenant_id=tenant.id, user=user, opening_balance=Decimal("100.00"))


# =============================================================================
# HELPERS
# =============================================================================

@pytest.fixture(scope='function')
def context(tenant, user):
    return SaleContext(tenant_id=tenant.id, operator_id=user.id, location_id=user.location_id)


def cart_item(product_id, quantity=1, unit_price="100.00", tax_rate="21", discount=None, variant_id=None):
    item_ref = VariantRef(product_id, variant_id) if variant_id else ProductRef(product_id)
    return CartItem(
        item_ref=item_ref,
        quantity=quantity,
        unit_price=Decimal(unit_price),
        tax_rate=Decimal(tax_rate),
        discount=discount,
    )


def cash_sale(product_id, quantity=2, unit_price="100.00", cart_percent=None):
    """Single-line sale paid in full by the legacy CASH method."""
    return SaleRequest(
        items=[cart_item(product_id, quantity=quantity, unit_price=unit_price)],
        legacy_payment_method="CASH",
        cart_discount=PercentageDiscount(Decimal(cart_percent)) if cart_percent else None,
    )


def tender(method, amount, reference=None):
    return PaymentEntry(method=method, amount=Decimal(amount), reference=reference)


def context_headers(user) -> dict:
    """Request context headers for a user."""
    return {'X-Tenant-ID': str(user.tenant_id), 'X-User-ID': str(user.id)}
