"""
Order summary calculations: per-product and per-variant groupings and the
monetary total.

Pure functions. Items may be OrderItem instances, LineCandidate objects or
plain mappings from an unsaved form; anything exposing product_id,
depot_variant_id, agency_id, depot_id and quantity works.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

from .gateway import ProductInfo, VariantInfo


@dataclass
class ProductSummary:
    name: str
    total_quantity: int = 0
    unit: str = ''


@dataclass
class VariantSummary:
    name: str
    quantity: int = 0
    agency_ids: set = field(default_factory=set)
    depot_ids: set = field(default_factory=set)


def _field(item, name):
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _as_int(value) -> Optional[int]:
    if value is None or value == '' or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _counted(items):
    """Yield (product_id, quantity, item) for items with a product and positive quantity."""
    for item in items:
        product_id = _as_int(_field(item, 'product_id'))
        quantity = _as_int(_field(item, 'quantity'))
        if product_id is None or quantity is None or quantity <= 0:
            continue
        yield product_id, quantity, item


def group_by_product(items: Iterable, products: Mapping[int, ProductInfo]) -> Dict[int, ProductSummary]:
    """Sum ordered quantity per product. Items whose product is unknown are skipped."""
    summary: Dict[int, ProductSummary] = {}
    for product_id, quantity, _ in _counted(items):
        product = products.get(product_id)
        if product is None:
            continue
        if product_id not in summary:
            summary[product_id] = ProductSummary(name=product.name, unit=product.unit)
        summary[product_id].total_quantity += quantity
    return summary


def group_by_variant(
    items: Iterable,
    variants: Optional[Mapping[int, VariantInfo]] = None,
) -> Dict[int, Dict[int, VariantSummary]]:
    """
    Nested grouping product -> depot variant, with the distinct agencies and
    depots each variant touches. Items without a variant are skipped.
    """
    variants = variants or {}
    summary: Dict[int, Dict[int, VariantSummary]] = {}
    for product_id, quantity, item in _counted(items):
        variant_id = _as_int(_field(item, 'depot_variant_id'))
        if variant_id is None:
            continue
        by_variant = summary.setdefault(product_id, {})
        if variant_id not in by_variant:
            info = variants.get(variant_id)
            by_variant[variant_id] = VariantSummary(
                name=info.name if info else str(variant_id)
            )
        entry = by_variant[variant_id]
        entry.quantity += quantity

        agency_id = _as_int(_field(item, 'agency_id'))
        if agency_id is not None:
            entry.agency_ids.add(agency_id)
        depot_id = _as_int(_field(item, 'depot_id'))
        if depot_id is not None:
            entry.depot_ids.add(depot_id)
    return summary


def compute_total(items: Iterable, price_list: Mapping[int, Decimal]) -> Decimal:
    """Sum of unit price times quantity. Products without a price contribute zero."""
    total = Decimal('0.00')
    for product_id, quantity, _ in _counted(items):
        price = price_list.get(product_id)
        if price is None:
            continue
        total += Decimal(price) * quantity
    return total


def price_list_from(products: Mapping[int, ProductInfo]) -> Dict[int, Decimal]:
    return {product_id: info.price for product_id, info in products.items()}


def build_order_summary(items, gateway) -> Dict:
    """
    Display-ready summary: per-product totals, per-variant breakdown and the
    order total, using current reference data from ``gateway``.
    """
    items = list(items)
    products = gateway.get_products()
    variants = gateway.get_variants()
    agencies = gateway.get_agencies()
    depots = gateway.get_depots()

    def names(ids, lookup):
        return sorted(lookup[i].name if i in lookup else str(i) for i in ids)

    by_product = group_by_product(items, products)
    by_variant = group_by_variant(items, variants)
    return {
        'products': [
            {
                'product_id': product_id,
                'name': entry.name,
                'unit': entry.unit,
                'total_quantity': entry.total_quantity,
                'variants': [
                    {
                        'depot_variant_id': variant_id,
                        'name': variant.name,
                        'quantity': variant.quantity,
                        'agencies': names(variant.agency_ids, agencies),
                        'depots': names(variant.depot_ids, depots),
                    }
                    for variant_id, variant in sorted(by_variant.get(product_id, {}).items())
                ],
            }
            for product_id, entry in sorted(by_product.items())
        ],
        'total_amount': str(compute_total(items, price_list_from(products))),
    }


def depot_variant_totals(items, gateway) -> list:
    """
    Quantity per (depot, depot variant) across ``items``, ordered by depot
    name, product name and variant name. ``effective_price`` is the product's
    current unit price, or None when the product is no longer listed.
    """
    items = list(items)
    products = gateway.get_products()
    variants = gateway.get_variants()
    depots = gateway.get_depots()

    totals: Dict[tuple, int] = {}
    for product_id, quantity, item in _counted(items):
        depot_id = _as_int(_field(item, 'depot_id'))
        variant_id = _as_int(_field(item, 'depot_variant_id'))
        if depot_id is None or variant_id is None:
            continue
        key = (depot_id, variant_id, product_id)
        totals[key] = totals.get(key, 0) + quantity

    rows = []
    for (depot_id, variant_id, product_id), quantity in totals.items():
        depot = depots.get(depot_id)
        variant = variants.get(variant_id)
        product = products.get(product_id)
        rows.append({
            'depot_id': depot_id,
            'depot_name': depot.name if depot else str(depot_id),
            'depot_variant_id': variant_id,
            'variant_name': variant.name if variant else str(variant_id),
            'product_name': product.name if product else str(product_id),
            'effective_price': str(product.price) if product else None,
            'total_quantity': quantity,
        })
    rows.sort(key=lambda row: (row['depot_name'], row['product_name'], row['variant_name']))
    return rows
