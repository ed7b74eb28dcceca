from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="VendorOrder",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("po_number", models.CharField(blank=True, editable=False, help_text="System-assigned purchase order number", max_length=32, null=True, unique=True)),
                ("contact_person_name", models.CharField(help_text="Contact person at the vendor (defaults from vendor)", max_length=200)),
                ("order_date", models.DateField(db_index=True)),
                ("delivery_date", models.DateField(db_index=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("DELIVERED", "Delivered"), ("RECEIVED", "Received")], db_index=True, default="PENDING", help_text="Current fulfillment stage", max_length=20)),
                ("total_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Sum of unit price times ordered quantity", max_digits=12)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="vendor_orders_created", to=settings.AUTH_USER_MODEL)),
                ("vendor", models.ForeignKey(help_text="Vendor/farmer the order is placed with", on_delete=django.db.models.deletion.PROTECT, related_name="orders", to="catalog.vendor")),
            ],
            options={
                "verbose_name": "Vendor Order",
                "verbose_name_plural": "Vendor Orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["vendor", "status"], name="order_vendor_status_idx"),
                    models.Index(fields=["status", "delivery_date"], name="order_status_delivery_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("delivery_date__gte", models.F("order_date"))), name="vendor_order_delivery_after_order_date"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity", models.PositiveIntegerField(help_text="Quantity ordered", validators=[django.core.validators.MinValueValidator(1)])),
                ("delivered_quantity", models.PositiveIntegerField(blank=True, null=True)),
                ("received_quantity", models.PositiveIntegerField(blank=True, null=True)),
                ("farmer_wastage", models.PositiveIntegerField(blank=True, null=True)),
                ("farmer_not_received", models.PositiveIntegerField(blank=True, null=True)),
                ("agency_wastage", models.PositiveIntegerField(blank=True, null=True)),
                ("agency_not_received", models.PositiveIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("agency", models.ForeignKey(help_text="Agency responsible for last-mile delivery", on_delete=django.db.models.deletion.PROTECT, related_name="order_items", to="catalog.agency")),
                ("depot", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="order_items", to="catalog.depot")),
                ("depot_variant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="order_items", to="catalog.depotproductvariant")),
                ("order", models.ForeignKey(help_text="Parent order", on_delete=django.db.models.deletion.CASCADE, related_name="items", to="orders.vendororder")),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="order_items", to="catalog.product")),
            ],
            options={"verbose_name": "Order Item", "verbose_name_plural": "Order Items", "ordering": ["id"]},
        ),
    ]
