"""
Django Admin configuration for catalog models.
"""
from django.contrib import admin
from .models import Vendor, Depot, Product, DepotProductVariant, Agency


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'contact_person_name', 'mobile', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'contact_person_name', 'mobile']
    ordering = ['name']
    raw_id_fields = ['user']


@admin.register(Depot)
class DepotAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'address', 'is_active', 'variant_count']
    list_filter = ['is_active']
    search_fields = ['name', 'address']
    ordering = ['name']

    def variant_count(self, obj):
        return obj.variants.count()
    variant_count.short_description = 'Variants'


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'unit', 'price', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name']
    ordering = ['name']


@admin.register(DepotProductVariant)
class DepotProductVariantAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'product', 'depot', 'unit', 'is_active']
    list_filter = ['depot', 'is_active']
    search_fields = ['name', 'product__name', 'depot__name']
    ordering = ['depot', 'product', 'name']
    raw_id_fields = ['depot', 'product']


@admin.register(Agency)
class AgencyAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'contact_name', 'mobile', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name', 'contact_name']
    ordering = ['name']
    raw_id_fields = ['user']
