from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Agency",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(db_index=True, help_text="Agency name", max_length=200)),
                ("contact_name", models.CharField(blank=True, default="", max_length=200)),
                ("mobile", models.CharField(blank=True, default="", max_length=20)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user", models.OneToOneField(blank=True, help_text="Login account for the agency, if any", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="agency_profile", to=settings.AUTH_USER_MODEL)),
            ],
            options={"verbose_name": "Agency", "verbose_name_plural": "Agencies", "ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Depot",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(db_index=True, help_text="Depot name", max_length=200)),
                ("address", models.CharField(blank=True, default="", help_text="Depot address", max_length=300)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"verbose_name": "Depot", "verbose_name_plural": "Depots", "ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(db_index=True, help_text="Product name for display and search", max_length=200)),
                ("unit", models.CharField(blank=True, default="", help_text="Unit of measure, e.g. litre or kg", max_length=50)),
                ("price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Unit purchase price", max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal("0.00"))])),
                ("is_active", models.BooleanField(db_index=True, default=True, help_text="Whether product can be ordered")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Product",
                "verbose_name_plural": "Products",
                "ordering": ["name"],
                "indexes": [models.Index(fields=["name", "is_active"], name="product_name_active_idx")],
            },
        ),
        migrations.CreateModel(
            name="Vendor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(db_index=True, help_text="Farmer/vendor display name", max_length=200)),
                ("contact_person_name", models.CharField(blank=True, default="", help_text="Default contact person copied onto new orders", max_length=200)),
                ("mobile", models.CharField(blank=True, default="", max_length=20)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user", models.OneToOneField(blank=True, help_text="Login account for the vendor, if any", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="vendor_profile", to=settings.AUTH_USER_MODEL)),
            ],
            options={"verbose_name": "Vendor", "verbose_name_plural": "Vendors", "ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="DepotProductVariant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(help_text="Variant label, e.g. '500 ml pouch'", max_length=200)),
                ("unit", models.CharField(blank=True, default="", max_length=50)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("depot", models.ForeignKey(help_text="Depot offering this variant", on_delete=django.db.models.deletion.CASCADE, related_name="variants", to="catalog.depot")),
                ("product", models.ForeignKey(help_text="Underlying product", on_delete=django.db.models.deletion.CASCADE, related_name="depot_variants", to="catalog.product")),
            ],
            options={
                "verbose_name": "Depot Product Variant",
                "verbose_name_plural": "Depot Product Variants",
                "ordering": ["depot", "product", "name"],
                "indexes": [models.Index(fields=["depot", "is_active"], name="variant_depot_active_idx")],
                "constraints": [models.UniqueConstraint(fields=("depot", "product", "name"), name="unique_depot_product_variant")],
            },
        ),
    ]
