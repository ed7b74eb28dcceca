"""
Wastage Registration - losses recorded at the farmer and agency checkpoints.

Levels:
    farmer: after delivery; wastage + not_received <= delivered_quantity
    agency: after receipt;  wastage + not_received <= received_quantity

A registration either stores every submitted value or nothing. Values
overwrite what was registered before; they never accumulate. An agency may
only register agency wastage on its own lines.
"""
import logging
from typing import Dict, List

from django.db import transaction

from core.context import ActingUser
from .exceptions import (
    ActionNotPermittedError,
    InvalidTransitionError,
    OrderValidationError,
    WastageConstraintViolation,
)
from .models import VendorOrder, OrderItem
from .lifecycle import check_agency_lines
from .services import is_whole_number, lock_order

logger = logging.getLogger(__name__)

FARMER = 'farmer'
AGENCY = 'agency'

LEVELS = {
    FARMER: {
        'fields': ('farmer_wastage', 'farmer_not_received'),
        'basis': 'delivered_quantity',
        'statuses': (VendorOrder.Status.DELIVERED, VendorOrder.Status.RECEIVED),
    },
    AGENCY: {
        'fields': ('agency_wastage', 'agency_not_received'),
        'basis': 'received_quantity',
        'statuses': (VendorOrder.Status.RECEIVED,),
    },
}


def _non_negative(value, label: str, errors: List[str]) -> int:
    if value is None or value == '':
        return 0
    if not is_whole_number(value, minimum=0):
        errors.append(f"{label} must be a non-negative integer")
        return 0
    return value


def parse_wastage_entries(level: str, payload: Dict, items_by_id: Dict[int, OrderItem]) -> Dict[int, tuple]:
    """
    Normalize a wastage payload to {order_item_id: (wastage, not_received)}.

    Accepts a per-item list under ``items`` or, for single-item orders, the
    order-level fields (e.g. ``farmer_wastage``/``farmer_not_received``).
    Blank values count as zero.
    """
    wastage_field, not_received_field = LEVELS[level]['fields']
    errors: List[str] = []
    entries: Dict[int, tuple] = {}

    if payload.get('items') is not None:
        for idx, entry in enumerate(payload['items']):
            item_id = entry.get('order_item_id')
            if isinstance(item_id, bool) or not isinstance(item_id, int):
                errors.append(f"Entry {idx}: order_item_id is required")
                continue
            if item_id not in items_by_id:
                errors.append(f"Entry {idx}: item {item_id} does not belong to this order")
                continue
            if item_id in entries:
                errors.append(f"Entry {idx}: item {item_id} listed more than once")
                continue
            wastage = _non_negative(entry.get('wastage'), f"Entry {idx}: wastage", errors)
            not_received = _non_negative(entry.get('not_received'), f"Entry {idx}: not received", errors)
            entries[item_id] = (wastage, not_received)
        if not payload['items']:
            errors.append("At least one item is required")
    else:
        if len(items_by_id) != 1:
            errors.append(
                "Order-level wastage is only accepted for single-item orders; "
                "register per item instead"
            )
        else:
            wastage = _non_negative(payload.get(wastage_field), wastage_field.replace('_', ' '), errors)
            not_received = _non_negative(
                payload.get(not_received_field), not_received_field.replace('_', ' '), errors
            )
            (item_id,) = items_by_id
            entries[item_id] = (wastage, not_received)

    if errors:
        raise OrderValidationError(errors)
    return entries


def register_wastage(order_id: int, level: str, payload: Dict, actor: ActingUser) -> VendorOrder:
    """
    Register wastage at ``level`` ('farmer' or 'agency') for an order.

    Raises:
        OrderValidationError: unknown level, malformed or negative input
        InvalidTransitionError: checkpoint not reached yet
        ActionNotPermittedError: actor is not the vendor/agency for the order
        WastageConstraintViolation: any item's total exceeds its basis quantity
    """
    if level not in LEVELS:
        raise OrderValidationError(f"Unknown wastage level {level!r}; expected 'farmer' or 'agency'")
    config = LEVELS[level]
    wastage_field, not_received_field = config['fields']
    basis_field = config['basis']

    with transaction.atomic():
        order = lock_order(order_id)
        if order.status not in config['statuses']:
            raise InvalidTransitionError(order_id, order.status, f"register {level} wastage for")

        items_by_id = {item.pk: item for item in OrderItem.objects.filter(order=order)}
        if level == FARMER:
            allowed = actor.can_act_for_vendor(order.vendor_id)
        else:
            allowed = actor.can_act_for_agencies(order.agency_ids)
        if not allowed:
            raise ActionNotPermittedError(
                f"{actor} may not register {level} wastage for order {order.po_number}"
            )

        entries = parse_wastage_entries(level, payload, items_by_id)
        if level == AGENCY:
            check_agency_lines(order, actor, items_by_id, entries, f"register {level} wastage for")

        violations = []
        missing_basis = []
        for item_id, (wastage, not_received) in entries.items():
            basis = getattr(items_by_id[item_id], basis_field)
            if basis is None:
                missing_basis.append(item_id)
                continue
            if wastage + not_received > basis:
                violations.append({
                    'order_item_id': item_id,
                    'wastage': wastage,
                    'not_received': not_received,
                    'total': wastage + not_received,
                    'limit': basis,
                })
        if missing_basis:
            raise OrderValidationError(
                f"No {basis_field.replace('_', ' ')} recorded for items {sorted(missing_basis)}"
            )
        if violations:
            logger.warning(
                f"Order {order.po_number}: {level} wastage rejected for {actor}: {violations}"
            )
            raise WastageConstraintViolation(level, violations)

        updated = []
        for item_id, (wastage, not_received) in entries.items():
            item = items_by_id[item_id]
            setattr(item, wastage_field, wastage)
            setattr(item, not_received_field, not_received)
            updated.append(item)
        OrderItem.objects.bulk_update(updated, [wastage_field, not_received_field])
        order.save(update_fields=['updated_at'])

    logger.info(
        f"Order {order.po_number}: {level} wastage registered by {actor} for {len(updated)} items"
    )
    return order


def register_farmer_wastage(order_id: int, payload: Dict, actor: ActingUser) -> VendorOrder:
    return register_wastage(order_id, FARMER, payload, actor)


def register_agency_wastage(order_id: int, payload: Dict, actor: ActingUser) -> VendorOrder:
    return register_wastage(order_id, AGENCY, payload, actor)
