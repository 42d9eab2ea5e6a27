# Overview: Tenant-scoped product and variant lookups used when pricing and moving stock.

from __future__ import annotations

from ..errors import ProductNotFound, VariantNotFound
from ..extensions import db
from ..models import Product, ProductVariant
from .sale_schemas import ItemRef, VariantRef


def get_active_product(tenant_id: int, product_id: int) -> Product:
    """Inactive and cross-tenant products are reported as not found."""
    product = db.session.query(Product).filter_by(
        id=product_id,
        tenant_id=tenant_id,
        is_active=True,
    ).first()
    if product is None:
        raise ProductNotFound(product_id)
    return product


def get_active_variant(tenant_id: int, product_id: int, variant_id: int) -> ProductVariant:
    variant = db.session.query(ProductVariant).filter_by(
        id=variant_id,
        product_id=product_id,
        tenant_id=tenant_id,
        is_active=True,
    ).first()
    if variant is None:
        raise VariantNotFound(variant_id)
    return variant


def resolve_item(tenant_id: int, item_ref: ItemRef) -> tuple[Product, ProductVariant | None]:
    product = get_active_product(tenant_id, item_ref.product_id)
    if isinstance(item_ref, VariantRef):
        return product, get_active_variant(tenant_id, item_ref.product_id, item_ref.variant_id)
    return product, None


def item_label(product: Product, variant: ProductVariant | None = None) -> str:
    if variant is None:
        return product.name
    return f"{product.name} ({variant.name})"


def cost_snapshot(product: Product, variant: ProductVariant | None = None):
    """Cost to freeze on the sale line; variants without their own cost use the product's."""
    if variant is None:
        return product.cost_price
    return variant.effective_cost_price()
