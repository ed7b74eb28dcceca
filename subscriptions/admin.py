"""
Django Admin configuration for the member delivery schedule.
"""
from django.contrib import admin
from .models import DeliveryScheduleEntry


@admin.register(DeliveryScheduleEntry)
class DeliveryScheduleEntryAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'delivery_date', 'member', 'depot', 'product',
        'depot_variant', 'agency', 'quantity', 'is_active'
    ]
    list_filter = ['delivery_date', 'depot', 'agency', 'is_active']
    search_fields = ['member__username', 'product__name']
    ordering = ['-delivery_date']
    raw_id_fields = ['member', 'depot', 'product', 'depot_variant', 'agency']
