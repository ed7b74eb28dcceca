"""
Django Admin configuration for vendor order models.
"""
from django.contrib import admin
from .models import VendorOrder, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = [
        'product', 'depot', 'depot_variant', 'agency', 'quantity',
        'delivered_quantity', 'received_quantity',
        'farmer_wastage', 'farmer_not_received',
        'agency_wastage', 'agency_not_received',
    ]
    readonly_fields = fields
    can_delete = False


@admin.register(VendorOrder)
class VendorOrderAdmin(admin.ModelAdmin):
    list_display = [
        'po_number', 'vendor', 'order_date', 'delivery_date',
        'status', 'total_amount', 'item_count', 'created_at'
    ]
    list_filter = ['status', 'delivery_date', 'vendor']
    search_fields = ['po_number', 'vendor__name', 'contact_person_name']
    ordering = ['-created_at']
    readonly_fields = ['po_number', 'status', 'total_amount', 'created_by', 'created_at', 'updated_at']
    inlines = [OrderItemInline]

    def item_count(self, obj):
        return obj.items.count()
    item_count.short_description = 'Items'


@admin.register(OrderItem)
class OrderItemAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'order', 'product', 'depot_variant', 'agency',
        'quantity', 'delivered_quantity', 'received_quantity'
    ]
    list_filter = ['order__status', 'depot', 'agency']
    search_fields = ['product__name', 'order__po_number']
    ordering = ['-order__created_at', 'id']
    raw_id_fields = ['order', 'product', 'depot', 'depot_variant', 'agency']
