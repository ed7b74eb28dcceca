"""
Order Models - Vendor purchase orders and their line items.

Order Status Flow:
    PENDING -> DELIVERED (vendor delivery recorded)
    DELIVERED -> RECEIVED (agency receipt recorded)

Status never moves backward. Wastage fields on line items are recorded per
checkpoint (farmer level after delivery, agency level after receipt).
"""
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal

from catalog.models import Vendor, Depot, Product, DepotProductVariant, Agency


class VendorOrder(models.Model):
    """
    Purchase order placed with a vendor/farmer for one delivery date.

    Status:
        - PENDING: Order placed, header and items editable
        - DELIVERED: Vendor delivery recorded per item
        - RECEIVED: Agency receipt recorded per item
    """

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        DELIVERED = 'DELIVERED', 'Delivered'
        RECEIVED = 'RECEIVED', 'Received'

    # Display-only annotation; never stored in ``status``.
    PARTIALLY_RECEIVED = 'PARTIALLY_RECEIVED'

    po_number = models.CharField(
        max_length=32,
        unique=True,
        null=True,
        blank=True,
        editable=False,
        help_text="System-assigned purchase order number"
    )
    vendor = models.ForeignKey(
        Vendor,
        on_delete=models.PROTECT,
        related_name='orders',
        help_text="Vendor/farmer the order is placed with"
    )
    contact_person_name = models.CharField(
        max_length=200,
        help_text="Contact person at the vendor (defaults from vendor)"
    )
    order_date = models.DateField(db_index=True)
    delivery_date = models.DateField(db_index=True)
    notes = models.TextField(blank=True, default='')
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
        help_text="Current fulfillment stage"
    )
    total_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Sum of unit price times ordered quantity"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='vendor_orders_created'
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Vendor Order'
        verbose_name_plural = 'Vendor Orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['vendor', 'status'], name='order_vendor_status_idx'),
            models.Index(fields=['status', 'delivery_date'], name='order_status_delivery_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(delivery_date__gte=models.F('order_date')),
                name='vendor_order_delivery_after_order_date'
            )
        ]

    def __str__(self):
        return f"{self.po_number or f'Order #{self.pk}'} - {self.vendor.name} ({self.status})"

    @property
    def is_pending(self) -> bool:
        return self.status == self.Status.PENDING

    @property
    def is_delivered(self) -> bool:
        return self.status == self.Status.DELIVERED

    @property
    def is_received(self) -> bool:
        return self.status == self.Status.RECEIVED

    @property
    def item_count(self) -> int:
        return len(self.items.all())

    @property
    def display_status(self) -> str:
        """RECEIVED orders with any short-received item display as PARTIALLY_RECEIVED."""
        if self.status != self.Status.RECEIVED:
            return self.status
        for item in self.items.all():
            if item.is_short_received:
                return self.PARTIALLY_RECEIVED
        return self.status

    @property
    def agency_ids(self) -> set:
        return {item.agency_id for item in self.items.all()}


class OrderItem(models.Model):
    """
    One line of a vendor order: a depot variant delivered via one agency.

    ``quantity`` is the ordered quantity. The remaining quantity fields are
    unset until their stage is recorded.
    """
    order = models.ForeignKey(
        VendorOrder,
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Parent order"
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='order_items'
    )
    depot = models.ForeignKey(
        Depot,
        on_delete=models.PROTECT,
        related_name='order_items'
    )
    depot_variant = models.ForeignKey(
        DepotProductVariant,
        on_delete=models.PROTECT,
        related_name='order_items'
    )
    agency = models.ForeignKey(
        Agency,
        on_delete=models.PROTECT,
        related_name='order_items',
        help_text="Agency responsible for last-mile delivery"
    )
    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Quantity ordered"
    )
    delivered_quantity = models.PositiveIntegerField(null=True, blank=True)
    received_quantity = models.PositiveIntegerField(null=True, blank=True)
    farmer_wastage = models.PositiveIntegerField(null=True, blank=True)
    farmer_not_received = models.PositiveIntegerField(null=True, blank=True)
    agency_wastage = models.PositiveIntegerField(null=True, blank=True)
    agency_not_received = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Order Item'
        verbose_name_plural = 'Order Items'
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity}x {self.product.name} ({self.depot_variant.name}) via {self.agency.name}"

    @property
    def farmer_loss(self) -> int:
        return (self.farmer_wastage or 0) + (self.farmer_not_received or 0)

    @property
    def agency_loss(self) -> int:
        return (self.agency_wastage or 0) + (self.agency_not_received or 0)

    @property
    def is_short_received(self) -> bool:
        if self.received_quantity is None or self.delivered_quantity is None:
            return False
        return self.received_quantity < self.delivered_quantity
