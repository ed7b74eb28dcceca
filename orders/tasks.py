"""
Celery tasks for vendor order processing.

Tasks:
    - notify_vendor_of_order: Async purchase order notification after creation
    - prepare_demand_draft: Scheduled preview of upcoming demand
    - generate_daily_fulfillment_report: Stage totals for yesterday's deliveries
"""
import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.db.models import Count, Q
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def notify_vendor_of_order(self, order_id: int):
    """
    Send the purchase order to the vendor after creation.

    Orders that have already moved past PENDING are skipped.

    Args:
        order_id: ID of the created order

    Returns:
        Dict with notification details
    """
    from orders.models import VendorOrder

    try:
        order = VendorOrder.objects.select_related('vendor').prefetch_related(
            'items__product', 'items__depot_variant', 'items__depot'
        ).get(id=order_id)
    except VendorOrder.DoesNotExist:
        logger.error(f"Order #{order_id} not found for vendor notification")
        return {'status': 'error', 'message': f'Order {order_id} not found'}

    if not order.is_pending:
        logger.warning(
            f"Order {order.po_number} is {order.status}, skipping vendor notification"
        )
        return {'status': 'skipped', 'message': f'Order {order_id} is not pending'}

    items_summary = [
        f"  - {item.quantity}x {item.product.name} ({item.depot_variant.name}) to {item.depot.name}"
        for item in order.items.all()
    ]

    notification = f"""
    ===============================================
    PURCHASE ORDER - {order.po_number}
    ===============================================
    Farmer: {order.vendor.name}
    Contact: {order.contact_person_name}
    Order date: {order.order_date}
    Delivery date: {order.delivery_date}
    Total: {order.total_amount}

    Items:
{chr(10).join(items_summary)}
    ===============================================
    """

    logger.info(notification)

    return {
        'status': 'success',
        'order_id': order.id,
        'po_number': order.po_number,
        'message': f'Vendor notified for order {order.po_number}'
    }


@shared_task
def prepare_demand_draft(days_ahead: int = None):
    """
    Build the demand draft for an upcoming delivery date and log it so
    administrators can place vendor orders ahead of time.

    Scheduled daily via Celery Beat.
    """
    from core.context import ActingUser
    from orders.aggregation import build_draft_order

    if days_ahead is None:
        days_ahead = settings.DEMAND_DRAFT_LEAD_DAYS
    delivery_date = timezone.localdate() + timedelta(days=days_ahead)

    draft = build_draft_order(delivery_date, actor=ActingUser.system())
    logger.info(f"[CELERY] {draft.message()}")
    if draft.unassigned_count:
        logger.warning(
            f"[CELERY] {draft.unassigned_count} draft lines for {delivery_date} have no agency"
        )

    return {
        'delivery_date': delivery_date.isoformat(),
        'items': len(draft.items),
        'total_quantity': draft.total_quantity,
        'total_depots': draft.depot_count,
        'unassigned_items': draft.unassigned_count,
    }


@shared_task
def generate_daily_fulfillment_report():
    """
    Report order counts and stage quantities for yesterday's delivery date.

    Can be scheduled via Celery Beat for daily execution.
    """
    from orders.models import VendorOrder, OrderItem
    from orders.services import quantity_totals

    yesterday = timezone.localdate() - timedelta(days=1)
    orders = VendorOrder.objects.filter(delivery_date=yesterday)

    stats = orders.aggregate(
        total_orders=Count('id'),
        pending_orders=Count('id', filter=Q(status=VendorOrder.Status.PENDING)),
        delivered_orders=Count('id', filter=Q(status=VendorOrder.Status.DELIVERED)),
        received_orders=Count('id', filter=Q(status=VendorOrder.Status.RECEIVED)),
    )
    stats.update(quantity_totals(OrderItem.objects.filter(order__delivery_date=yesterday)))

    report = f"""
    ===============================================
    DAILY FULFILLMENT REPORT - {yesterday}
    ===============================================
    Orders: {stats['total_orders']} (pending {stats['pending_orders']}, delivered {stats['delivered_orders']}, received {stats['received_orders']})
    Ordered: {stats['ordered_quantity']}
    Delivered: {stats['delivered_quantity']}
    Received: {stats['received_quantity']}
    Farmer wastage / not received: {stats['farmer_wastage']} / {stats['farmer_not_received']}
    Agency wastage / not received: {stats['agency_wastage']} / {stats['agency_not_received']}
    ===============================================
    """

    logger.info(report)

    if stats['pending_orders']:
        logger.warning(f"{stats['pending_orders']} orders for {yesterday} still have no delivery recorded")

    return stats
