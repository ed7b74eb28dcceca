"""
Order Lifecycle - delivery and receipt recording.

Transitions:
    record_delivery:              PENDING   -> DELIVERED
    record_delivery(amend=True):  DELIVERED -> DELIVERED
    record_receipt:               DELIVERED -> RECEIVED
    record_receipt(amend=True):   RECEIVED  -> RECEIVED

Each call locks the order row and applies all item updates in one
transaction. Quantities above the previous stage are accepted and reported
as QuantityWarning; amends that would undercut already registered wastage
are rejected. An agency may only name its own lines in a receipt; lines of
other agencies that it leaves out keep their previous value or default.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from django.db import transaction

from core.context import AGENCY, ActingUser
from .exceptions import (
    ActionNotPermittedError,
    InvalidTransitionError,
    OrderValidationError,
    QuantityWarning,
    WastageConstraintViolation,
)
from .models import VendorOrder, OrderItem
from .services import is_whole_number, lock_order

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    order: VendorOrder
    warnings: List[QuantityWarning] = field(default_factory=list)


def _parse_quantities(order_id: int, entries: Iterable[Dict], field_name: str,
                      items_by_id: Dict[int, OrderItem]) -> Dict[int, int]:
    """
    Map order_item_id -> quantity from a transition payload.

    Every quantity must be a non-negative integer and every id must belong
    to the order; all problems are reported together.
    """
    errors = []
    quantities: Dict[int, int] = {}
    for idx, entry in enumerate(entries or []):
        item_id = entry.get('order_item_id')
        value = entry.get(field_name)
        if isinstance(item_id, bool) or not isinstance(item_id, int):
            errors.append(f"Entry {idx}: order_item_id is required")
            continue
        if item_id not in items_by_id:
            errors.append(f"Entry {idx}: item {item_id} does not belong to order {order_id}")
            continue
        if not is_whole_number(value, minimum=0):
            errors.append(f"Entry {idx}: {field_name.replace('_', ' ')} must be a non-negative integer")
            continue
        if item_id in quantities:
            errors.append(f"Entry {idx}: item {item_id} listed more than once")
            continue
        quantities[item_id] = value
    if errors:
        raise OrderValidationError(errors)
    return quantities


def _check_actor(order: VendorOrder, actor: ActingUser, stage: str) -> None:
    if stage == 'delivery':
        allowed = actor.can_act_for_vendor(order.vendor_id)
    else:
        allowed = actor.can_act_for_agencies(order.agency_ids)
    if not allowed:
        raise ActionNotPermittedError(
            f"{actor} may not record {stage} for order {order.po_number}"
        )


def check_agency_lines(order: VendorOrder, actor: ActingUser, items_by_id: Dict[int, OrderItem],
                       item_ids: Iterable[int], action: str) -> None:
    """
    An agency may only write the lines assigned to it. Lines of other
    agencies must not be named in its submission.
    """
    if actor.role != AGENCY:
        return
    foreign = sorted(
        item_id for item_id in item_ids
        if items_by_id[item_id].agency_id != actor.agency_id
    )
    if foreign:
        raise ActionNotPermittedError(
            f"{actor} may not {action} items {foreign} of order {order.po_number}; "
            f"they are assigned to another agency"
        )


def _load_items(order: VendorOrder) -> Dict[int, OrderItem]:
    return {
        item.pk: item
        for item in OrderItem.objects.select_related('product').filter(order=order)
    }


def record_delivery(order_id: int, items: Iterable[Dict], actor: ActingUser,
                    amend: bool = False) -> TransitionResult:
    """
    Record vendor delivery quantities and move the order to DELIVERED.

    Args:
        order_id: order to update
        items: [{'order_item_id': int, 'delivered_quantity': int}, ...]
        actor: acting user (admin or the order's vendor)
        amend: correct an existing delivery instead of recording the first one

    Items not listed keep their previous delivered quantity, or default to
    the ordered quantity if none was recorded.

    Raises:
        InvalidTransitionError: not PENDING (or not DELIVERED when amending)
        OrderValidationError: unknown item or negative quantity
        WastageConstraintViolation: amend below registered farmer wastage
    """
    action = 'amend delivery of' if amend else 'record delivery for'

    with transaction.atomic():
        order = lock_order(order_id)
        if not (order.is_delivered if amend else order.is_pending):
            raise InvalidTransitionError(order_id, order.status, action)

        items_by_id = _load_items(order)
        _check_actor(order, actor, 'delivery')
        explicit = _parse_quantities(order_id, items, 'delivered_quantity', items_by_id)

        warnings = []
        violations = []
        for item_id, item in items_by_id.items():
            if item_id in explicit:
                delivered = explicit[item_id]
            elif item.delivered_quantity is not None:
                delivered = item.delivered_quantity
            else:
                delivered = item.quantity

            if delivered > item.quantity:
                warnings.append(QuantityWarning(
                    order_item_id=item_id,
                    field='delivered_quantity',
                    value=delivered,
                    limit=item.quantity,
                    basis='ordered_quantity',
                    product_name=item.product.name,
                ))
            if item.farmer_loss > delivered:
                violations.append({
                    'order_item_id': item_id,
                    'wastage': item.farmer_wastage or 0,
                    'not_received': item.farmer_not_received or 0,
                    'total': item.farmer_loss,
                    'limit': delivered,
                })
            item.delivered_quantity = delivered

        if violations:
            logger.warning(f"Order {order.po_number}: delivery amend rejected, {violations}")
            raise WastageConstraintViolation('farmer', violations)

        OrderItem.objects.bulk_update(list(items_by_id.values()), ['delivered_quantity'])
        order.status = VendorOrder.Status.DELIVERED
        order.save(update_fields=['status', 'updated_at'])

    for warning in warnings:
        logger.warning(f"Order {order.po_number}: {warning.message}")
    logger.info(
        f"Order {order.po_number}: delivery {'amended' if amend else 'recorded'} by {actor} "
        f"for {len(explicit)} of {len(items_by_id)} items"
    )
    return TransitionResult(order=order, warnings=warnings)


def record_receipt(order_id: int, items: Iterable[Dict], actor: ActingUser,
                   amend: bool = False) -> TransitionResult:
    """
    Record agency receipt quantities and move the order to RECEIVED.

    Args:
        order_id: order to update
        items: [{'order_item_id': int, 'received_quantity': int}, ...]
        actor: acting user (admin or an agency with a line on the order)
        amend: correct an existing receipt instead of recording the first one

    Items not listed keep their previous received quantity, else default to
    the delivered quantity, else the ordered quantity.

    Raises:
        InvalidTransitionError: not DELIVERED (or not RECEIVED when amending)
        OrderValidationError: unknown item or negative quantity
        WastageConstraintViolation: amend below registered agency wastage
    """
    action = 'amend receipt of' if amend else 'record receipt for'

    with transaction.atomic():
        order = lock_order(order_id)
        if not (order.is_received if amend else order.is_delivered):
            raise InvalidTransitionError(order_id, order.status, action)

        items_by_id = _load_items(order)
        _check_actor(order, actor, 'receipt')
        explicit = _parse_quantities(order_id, items, 'received_quantity', items_by_id)
        check_agency_lines(order, actor, items_by_id, explicit, action)

        warnings = []
        violations = []
        for item_id, item in items_by_id.items():
            if item_id in explicit:
                received = explicit[item_id]
            elif item.received_quantity is not None:
                received = item.received_quantity
            elif item.delivered_quantity is not None:
                received = item.delivered_quantity
            else:
                received = item.quantity

            if item.delivered_quantity is not None:
                limit, basis = item.delivered_quantity, 'delivered_quantity'
            else:
                limit, basis = item.quantity, 'ordered_quantity'
            if received > limit:
                warnings.append(QuantityWarning(
                    order_item_id=item_id,
                    field='received_quantity',
                    value=received,
                    limit=limit,
                    basis=basis,
                    product_name=item.product.name,
                ))
            if item.agency_loss > received:
                violations.append({
                    'order_item_id': item_id,
                    'wastage': item.agency_wastage or 0,
                    'not_received': item.agency_not_received or 0,
                    'total': item.agency_loss,
                    'limit': received,
                })
            item.received_quantity = received

        if violations:
            logger.warning(f"Order {order.po_number}: receipt amend rejected, {violations}")
            raise WastageConstraintViolation('agency', violations)

        OrderItem.objects.bulk_update(list(items_by_id.values()), ['received_quantity'])
        order.status = VendorOrder.Status.RECEIVED
        order.save(update_fields=['status', 'updated_at'])

    for warning in warnings:
        logger.warning(f"Order {order.po_number}: {warning.message}")
    logger.info(
        f"Order {order.po_number}: receipt {'amended' if amend else 'recorded'} by {actor} "
        f"for {len(explicit)} of {len(items_by_id)} items"
    )
    return TransitionResult(order=order, warnings=warnings)


def transition_warnings_payload(result: TransitionResult) -> List[Dict]:
    return [warning.as_dict() for warning in result.warnings]
