"""
Order Service Layer - validation and persistence of vendor orders.

Create flow:
1. Validate the draft (collecting every error, nothing touches the database)
2. Resolve vendor and line references; reject unknown or inactive ids
3. Check each depot variant belongs to the line's depot and product
4. Create the order PENDING with all tracking fields unset
5. Assign the PO number, compute the total, queue the vendor notification

Orders are editable only while PENDING. Every operation takes an explicit
ActingUser; nothing here reads request or session state.
"""
import logging
from datetime import date
from typing import Dict, List, Optional

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from catalog.models import Vendor, Depot, Product, DepotProductVariant, Agency
from core.context import ActingUser
from .exceptions import (
    ActionNotPermittedError,
    InvalidTransitionError,
    OrderNotFoundError,
    OrderValidationError,
    ReferenceNotFoundError,
)
from .models import VendorOrder, OrderItem
from .summary import compute_total

logger = logging.getLogger(__name__)

ITEM_REFERENCE_FIELDS = (
    ('product_id', 'Product'),
    ('depot_variant_id', 'Depot variant'),
    ('agency_id', 'Agency'),
    ('depot_id', 'Depot'),
)


def is_whole_number(value, minimum: int = 0) -> bool:
    """True for an int (not a bool) of at least ``minimum``; strings never count."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= minimum


def _positive_int(value) -> Optional[int]:
    """Return ``value`` as an int if it is a positive integer, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 1 else None
    if isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
        return number if number >= 1 else None
    return None


def _as_date(value) -> Optional[date]:
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value)
        except ValueError:
            return None
    return None


def validate_order_draft(data: Dict) -> Dict:
    """
    Validate an order draft and return it with identifiers coerced to ints.

    Raises:
        OrderValidationError: with every problem found, in field order
    """
    errors: List[str] = []

    vendor_id = _positive_int(data.get('vendor_id'))
    if vendor_id is None:
        errors.append("Farmer is required")

    order_date = _as_date(data.get('order_date'))
    delivery_date = _as_date(data.get('delivery_date'))
    if order_date is None:
        errors.append("Order date is required")
    if delivery_date is None:
        errors.append("Delivery date is required")
    if order_date and delivery_date and delivery_date < order_date:
        errors.append("Delivery date cannot be before order date")

    raw_items = data.get('items') or []
    if not raw_items:
        errors.append("At least one product item is required")

    items = []
    for idx, raw in enumerate(raw_items):
        item = {}
        for field_name, label in ITEM_REFERENCE_FIELDS:
            value = _positive_int(raw.get(field_name))
            if value is None:
                errors.append(f"Item {idx}: {label} is required")
            item[field_name] = value

        quantity = raw.get('quantity')
        if not is_whole_number(quantity, minimum=1):
            errors.append(f"Item {idx}: quantity must be at least 1")
        item['quantity'] = quantity
        items.append(item)

    if errors:
        raise OrderValidationError(errors)

    return {
        'vendor_id': vendor_id,
        'contact_person_name': (data.get('contact_person_name') or '').strip(),
        'order_date': order_date,
        'delivery_date': delivery_date,
        'notes': data.get('notes') or '',
        'items': items,
    }


def _load_active(model, ids, label) -> Dict:
    found = {obj.pk: obj for obj in model.objects.filter(pk__in=ids, is_active=True)}
    missing = set(ids) - set(found)
    if missing:
        raise ReferenceNotFoundError(label, missing)
    return found


def _resolve_vendor(vendor_id: int) -> Vendor:
    try:
        return Vendor.objects.get(pk=vendor_id, is_active=True)
    except Vendor.DoesNotExist:
        raise ReferenceNotFoundError('Vendor', {vendor_id})


def _build_items(order: VendorOrder, items: List[Dict]) -> List[OrderItem]:
    """
    Resolve line references and construct unsaved OrderItems.

    Raises ReferenceNotFoundError for unknown ids and OrderValidationError
    when a variant does not belong to the line's depot and product.
    """
    products = _load_active(Product, {i['product_id'] for i in items}, 'Product')
    depots = _load_active(Depot, {i['depot_id'] for i in items}, 'Depot')
    agencies = _load_active(Agency, {i['agency_id'] for i in items}, 'Agency')
    variants = _load_active(
        DepotProductVariant, {i['depot_variant_id'] for i in items}, 'Depot variant'
    )

    errors = []
    order_items = []
    for idx, item in enumerate(items):
        variant = variants[item['depot_variant_id']]
        if variant.depot_id != item['depot_id']:
            errors.append(f"Item {idx}: depot variant {variant.pk} is not offered by depot {item['depot_id']}")
        if variant.product_id != item['product_id']:
            errors.append(f"Item {idx}: depot variant {variant.pk} is not a variant of product {item['product_id']}")
        order_items.append(OrderItem(
            order=order,
            product=products[item['product_id']],
            depot=depots[item['depot_id']],
            depot_variant=variant,
            agency=agencies[item['agency_id']],
            quantity=item['quantity'],
        ))
    if errors:
        raise OrderValidationError(errors)
    return order_items


def _order_total(order_items: List[OrderItem]):
    price_list = {item.product_id: item.product.price for item in order_items}
    return compute_total(order_items, price_list)


def generate_po_number(order: VendorOrder) -> str:
    """PO number: PO-{YYYYMM}-{order id, zero padded}."""
    created = timezone.localdate(order.created_at) if order.created_at else timezone.localdate()
    return f"PO-{created:%Y%m}-{order.pk:05d}"


def _queue_vendor_notification(order_id: int) -> None:
    try:
        from .tasks import notify_vendor_of_order
        notify_vendor_of_order.delay(order_id)
        logger.info(f"Queued vendor notification for order #{order_id}")
    except Exception as e:
        # The order is committed; a failed enqueue must not undo it.
        logger.error(f"Failed to queue vendor notification for order #{order_id}: {e}")


def create_order(data: Dict, actor: ActingUser) -> VendorOrder:
    """
    Validate and persist a new vendor order in PENDING status.

    Args:
        data: draft with vendor_id, contact_person_name, order_date,
              delivery_date, notes and items (product_id, depot_id,
              depot_variant_id, agency_id, quantity)
        actor: the user placing the order

    Returns:
        The created VendorOrder with its PO number assigned

    Raises:
        ActionNotPermittedError: actor is not an administrator
        OrderValidationError: draft is structurally invalid
        ReferenceNotFoundError: vendor or line reference does not resolve
    """
    if not actor.is_admin:
        raise ActionNotPermittedError("Only administrators can create vendor orders")

    cleaned = validate_order_draft(data)
    vendor = _resolve_vendor(cleaned['vendor_id'])
    contact = cleaned['contact_person_name'] or vendor.contact_person_name
    if not contact:
        raise OrderValidationError("Contact person name is required")

    with transaction.atomic():
        order = VendorOrder.objects.create(
            vendor=vendor,
            contact_person_name=contact,
            order_date=cleaned['order_date'],
            delivery_date=cleaned['delivery_date'],
            notes=cleaned['notes'],
            status=VendorOrder.Status.PENDING,
            created_by_id=actor.user_id,
        )
        order_items = _build_items(order, cleaned['items'])
        OrderItem.objects.bulk_create(order_items)

        order.po_number = generate_po_number(order)
        order.total_amount = _order_total(order_items)
        order.save(update_fields=['po_number', 'total_amount', 'updated_at'])

        transaction.on_commit(lambda: _queue_vendor_notification(order.pk))

    logger.info(
        f"Order {order.po_number} created by {actor} for vendor {vendor.name}: "
        f"{len(order_items)} items, total {order.total_amount}"
    )
    return order


def lock_order(order_id: int) -> VendorOrder:
    """Fetch an order with a row lock. Must be called inside transaction.atomic()."""
    try:
        return VendorOrder.objects.select_for_update().get(pk=order_id)
    except VendorOrder.DoesNotExist:
        raise OrderNotFoundError(order_id)


def update_order(order_id: int, data: Dict, actor: ActingUser) -> VendorOrder:
    """
    Replace the header and line items of a PENDING order.

    The PO number is kept; any po_number in ``data`` is ignored.

    Raises:
        InvalidTransitionError: order has left PENDING
    """
    if not actor.is_admin:
        raise ActionNotPermittedError("Only administrators can edit vendor orders")

    cleaned = validate_order_draft(data)

    with transaction.atomic():
        order = lock_order(order_id)
        if not order.is_pending:
            raise InvalidTransitionError(order_id, order.status, 'edit')

        vendor = _resolve_vendor(cleaned['vendor_id'])
        contact = cleaned['contact_person_name'] or vendor.contact_person_name
        if not contact:
            raise OrderValidationError("Contact person name is required")

        order.vendor = vendor
        order.contact_person_name = contact
        order.order_date = cleaned['order_date']
        order.delivery_date = cleaned['delivery_date']
        order.notes = cleaned['notes']

        order_items = _build_items(order, cleaned['items'])
        order.items.all().delete()
        OrderItem.objects.bulk_create(order_items)

        order.total_amount = _order_total(order_items)
        order.save()

    logger.info(f"Order {order.po_number} updated by {actor}: {len(order_items)} items")
    return order


def delete_order(order_id: int, actor: ActingUser) -> None:
    """Administrative removal of a PENDING order."""
    if not actor.is_admin:
        raise ActionNotPermittedError("Only administrators can delete vendor orders")

    with transaction.atomic():
        order = lock_order(order_id)
        if not order.is_pending:
            raise InvalidTransitionError(order_id, order.status, 'delete')
        po_number = order.po_number
        order.delete()

    logger.warning(f"Order {po_number} deleted by {actor}")


def orders_visible_to(actor: ActingUser):
    """
    Orders the actor may see.

    Admins see everything, vendors their own orders, agencies the
    non-PENDING orders that contain at least one of their lines.
    """
    queryset = VendorOrder.objects.select_related('vendor')
    if actor.is_admin:
        return queryset
    if actor.vendor_id is not None:
        return queryset.filter(vendor_id=actor.vendor_id)
    if actor.agency_id is not None:
        return queryset.filter(
            items__agency_id=actor.agency_id
        ).exclude(status=VendorOrder.Status.PENDING).distinct()
    return queryset.none()


def get_order(order_id: int, actor: Optional[ActingUser] = None) -> VendorOrder:
    """
    Fetch an order with its items and references prefetched.

    Orders the actor cannot see are reported as not found.
    """
    queryset = orders_visible_to(actor or ActingUser.system()).prefetch_related(
        'items__product', 'items__depot', 'items__depot_variant', 'items__agency'
    )
    try:
        return queryset.get(pk=order_id)
    except VendorOrder.DoesNotExist:
        raise OrderNotFoundError(order_id)


def quantity_totals(items) -> Dict[str, int]:
    """Ordered, delivered, received and wastage sums over an OrderItem queryset."""
    totals = items.aggregate(
        ordered_quantity=Sum('quantity'),
        delivered_quantity=Sum('delivered_quantity'),
        received_quantity=Sum('received_quantity'),
        farmer_wastage=Sum('farmer_wastage'),
        farmer_not_received=Sum('farmer_not_received'),
        agency_wastage=Sum('agency_wastage'),
        agency_not_received=Sum('agency_not_received'),
    )
    return {key: value or 0 for key, value in totals.items()}
