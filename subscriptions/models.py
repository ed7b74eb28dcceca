"""
Subscription Models - member delivery schedule feeding vendor order demand.

One DeliveryScheduleEntry exists per member, per product variant, per
delivery day. The demand aggregation engine reads these to build the
purchase order draft for a date.
"""
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from catalog.models import Depot, Product, DepotProductVariant, Agency


class DeliveryScheduleEntry(models.Model):
    """
    A member's scheduled delivery of one depot variant on one date.

    ``agency`` is optional: subscriptions that have not yet been assigned a
    delivery partner carry no agency attribution.
    """
    member = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='delivery_schedule',
        help_text="Subscribing member"
    )
    delivery_date = models.DateField(
        db_index=True,
        help_text="Date the delivery is scheduled for"
    )
    depot = models.ForeignKey(
        Depot,
        on_delete=models.PROTECT,
        related_name='schedule_entries'
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='schedule_entries'
    )
    depot_variant = models.ForeignKey(
        DepotProductVariant,
        on_delete=models.PROTECT,
        related_name='schedule_entries'
    )
    agency = models.ForeignKey(
        Agency,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='schedule_entries',
        help_text="Delivery partner assigned to this member, if known"
    )
    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Units scheduled for delivery"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="False when skipped or the subscription is paused"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Delivery Schedule Entry'
        verbose_name_plural = 'Delivery Schedule Entries'
        ordering = ['delivery_date', 'depot', 'product']
        indexes = [
            models.Index(fields=['delivery_date', 'is_active'], name='schedule_date_active_idx'),
        ]

    def __str__(self):
        return f"{self.delivery_date} {self.member} {self.quantity}x {self.depot_variant_id}"
