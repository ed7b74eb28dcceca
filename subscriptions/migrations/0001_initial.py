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
            name="DeliveryScheduleEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("delivery_date", models.DateField(db_index=True, help_text="Date the delivery is scheduled for")),
                ("quantity", models.PositiveIntegerField(help_text="Units scheduled for delivery", validators=[django.core.validators.MinValueValidator(1)])),
                ("is_active", models.BooleanField(db_index=True, default=True, help_text="False when skipped or the subscription is paused")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("agency", models.ForeignKey(blank=True, help_text="Delivery partner assigned to this member, if known", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="schedule_entries", to="catalog.agency")),
                ("depot", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="schedule_entries", to="catalog.depot")),
                ("depot_variant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="schedule_entries", to="catalog.depotproductvariant")),
                ("member", models.ForeignKey(help_text="Subscribing member", on_delete=django.db.models.deletion.CASCADE, related_name="delivery_schedule", to=settings.AUTH_USER_MODEL)),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="schedule_entries", to="catalog.product")),
            ],
            options={
                "verbose_name": "Delivery Schedule Entry",
                "verbose_name_plural": "Delivery Schedule Entries",
                "ordering": ["delivery_date", "depot", "product"],
                "indexes": [models.Index(fields=["delivery_date", "is_active"], name="schedule_date_active_idx")],
            },
        ),
    ]
