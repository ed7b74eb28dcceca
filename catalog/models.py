"""
Catalog Models - Reference data consumed by the order fulfillment pipeline.

Models:
    - Vendor: Farmer/supplier that purchase orders are placed with
    - Depot: Regional fulfillment/storage location
    - Product: Item supplied by vendors and subscribed to by members
    - DepotProductVariant: A product as offered from one depot (unique per depot/product/name)
    - Agency: Last-mile delivery partner
"""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class Vendor(models.Model):
    """
    Farmer or supplier that vendor orders are placed against.
    """
    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Farmer/vendor display name"
    )
    contact_person_name = models.CharField(
        max_length=200,
        blank=True,
        default='',
        help_text="Default contact person copied onto new orders"
    )
    mobile = models.CharField(max_length=20, blank=True, default='')
    email = models.EmailField(blank=True, default='')
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='vendor_profile',
        help_text="Login account for the vendor, if any"
    )
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Vendor'
        verbose_name_plural = 'Vendors'
        ordering = ['name']

    def __str__(self):
        return self.name


class Depot(models.Model):
    """
    Regional fulfillment location. Products are stocked per depot via variants.
    """
    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Depot name"
    )
    address = models.CharField(
        max_length=300,
        blank=True,
        default='',
        help_text="Depot address"
    )
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Depot'
        verbose_name_plural = 'Depots'
        ordering = ['name']

    def __str__(self):
        return self.name


class Product(models.Model):
    """
    Product entity. ``price`` is the purchase price used for order totals.
    """
    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Product name for display and search"
    )
    unit = models.CharField(
        max_length=50,
        blank=True,
        default='',
        help_text="Unit of measure, e.g. litre or kg"
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Unit purchase price"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether product can be ordered"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['name']
        indexes = [
            models.Index(fields=['name', 'is_active'], name='product_name_active_idx'),
        ]

    def __str__(self):
        return self.name


class DepotProductVariant(models.Model):
    """
    A product as offered from a specific depot.

    Packaging and unit may differ from depot to depot, so each variant
    belongs to exactly one depot and one product.
    """
    depot = models.ForeignKey(
        Depot,
        on_delete=models.CASCADE,
        related_name='variants',
        help_text="Depot offering this variant"
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name='depot_variants',
        help_text="Underlying product"
    )
    name = models.CharField(
        max_length=200,
        help_text="Variant label, e.g. '500 ml pouch'"
    )
    unit = models.CharField(max_length=50, blank=True, default='')
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Depot Product Variant'
        verbose_name_plural = 'Depot Product Variants'
        ordering = ['depot', 'product', 'name']
        constraints = [
            models.UniqueConstraint(
                fields=['depot', 'product', 'name'],
                name='unique_depot_product_variant'
            )
        ]
        indexes = [
            models.Index(fields=['depot', 'is_active'], name='variant_depot_active_idx'),
        ]

    def __str__(self):
        return f"{self.product.name} - {self.name} @ {self.depot.name}"


class Agency(models.Model):
    """
    Last-mile delivery partner responsible for a subset of order lines.
    """
    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Agency name"
    )
    contact_name = models.CharField(max_length=200, blank=True, default='')
    mobile = models.CharField(max_length=20, blank=True, default='')
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='agency_profile',
        help_text="Login account for the agency, if any"
    )
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Agency'
        verbose_name_plural = 'Agencies'
        ordering = ['name']

    def __str__(self):
        return self.name
