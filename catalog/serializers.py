"""
Serializers for catalog models.
All catalog endpoints are read-only lookups for order forms.
"""
from rest_framework import serializers
from .models import Vendor, Depot, Product, DepotProductVariant, Agency


class VendorSerializer(serializers.ModelSerializer):
    """Serializer for Vendor lookups, including the default contact person."""
    class Meta:
        model = Vendor
        fields = ['id', 'name', 'contact_person_name', 'mobile', 'email', 'is_active']


class VendorMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested vendor representation."""
    class Meta:
        model = Vendor
        fields = ['id', 'name']


class DepotSerializer(serializers.ModelSerializer):
    class Meta:
        model = Depot
        fields = ['id', 'name', 'address', 'is_active']


class DepotMinimalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Depot
        fields = ['id', 'name']


class ProductSerializer(serializers.ModelSerializer):
    """Serializer for Product with purchase price."""
    class Meta:
        model = Product
        fields = ['id', 'name', 'unit', 'price', 'is_active']


class ProductMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested product representation."""
    class Meta:
        model = Product
        fields = ['id', 'name', 'unit']


class DepotProductVariantSerializer(serializers.ModelSerializer):
    """
    Variant lookup with flattened depot and product names.
    Uses select_related('depot', 'product') in view.
    """
    depot_name = serializers.CharField(source='depot.name', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = DepotProductVariant
        fields = [
            'id', 'name', 'unit', 'depot_id', 'depot_name',
            'product_id', 'product_name', 'is_active'
        ]


class DepotVariantMinimalSerializer(serializers.ModelSerializer):
    class Meta:
        model = DepotProductVariant
        fields = ['id', 'name', 'unit']


class AgencySerializer(serializers.ModelSerializer):
    class Meta:
        model = Agency
        fields = ['id', 'name', 'contact_name', 'mobile', 'is_active']


class AgencyMinimalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Agency
        fields = ['id', 'name']
