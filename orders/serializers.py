"""
Serializers for vendor order models and transition payloads.

Input serializers only check shape and types; business rules live in the
service layer so they apply to every caller.
"""
from rest_framework import serializers

from catalog.serializers import (
    AgencyMinimalSerializer,
    DepotMinimalSerializer,
    DepotVariantMinimalSerializer,
    ProductMinimalSerializer,
    VendorMinimalSerializer,
)
from .models import VendorOrder, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for OrderItem with nested references and every tracked quantity."""
    product = ProductMinimalSerializer(read_only=True)
    depot = DepotMinimalSerializer(read_only=True)
    depot_variant = DepotVariantMinimalSerializer(read_only=True)
    agency = AgencyMinimalSerializer(read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            'id', 'product', 'depot', 'depot_variant', 'agency',
            'quantity', 'delivered_quantity', 'received_quantity',
            'farmer_wastage', 'farmer_not_received',
            'agency_wastage', 'agency_not_received',
        ]


class OrderItemInputSerializer(serializers.Serializer):
    """One line of an order create/update request."""
    product_id = serializers.IntegerField(min_value=1)
    depot_id = serializers.IntegerField(min_value=1)
    depot_variant_id = serializers.IntegerField(min_value=1)
    agency_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class OrderInputSerializer(serializers.Serializer):
    """
    Serializer for creating or replacing an order.

    Request format:
    {
        "vendor_id": 1,
        "contact_person_name": "Ramesh",
        "order_date": "2024-01-09",
        "delivery_date": "2024-01-10",
        "notes": "",
        "items": [
            {"product_id": 1, "depot_id": 2, "depot_variant_id": 5,
             "agency_id": 3, "quantity": 12}
        ]
    }
    """
    vendor_id = serializers.IntegerField(min_value=1)
    contact_person_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    order_date = serializers.DateField()
    delivery_date = serializers.DateField()
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    items = OrderItemInputSerializer(many=True, allow_empty=False)

    def validate(self, attrs):
        if attrs['delivery_date'] < attrs['order_date']:
            raise serializers.ValidationError(
                {'delivery_date': "Delivery date cannot be before order date"}
            )
        return attrs


class OrderSerializer(serializers.ModelSerializer):
    """
    Order detail with nested items.
    Uses prefetch_related for item references.
    """
    vendor = VendorMinimalSerializer(read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    item_count = serializers.IntegerField(read_only=True)
    display_status = serializers.CharField(read_only=True)

    class Meta:
        model = VendorOrder
        fields = [
            'id', 'po_number', 'vendor', 'contact_person_name',
            'order_date', 'delivery_date', 'notes',
            'status', 'display_status', 'total_amount',
            'items', 'item_count', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """
    Optimized serializer for listing orders.
    Uses select_related for vendor and prefetched items.
    """
    vendor_name = serializers.CharField(source='vendor.name', read_only=True)
    item_count = serializers.SerializerMethodField()
    total_quantity = serializers.SerializerMethodField()
    agencies = serializers.SerializerMethodField()
    depots = serializers.SerializerMethodField()

    class Meta:
        model = VendorOrder
        fields = [
            'id', 'po_number', 'vendor_name', 'order_date', 'delivery_date',
            'status', 'total_amount', 'item_count', 'total_quantity',
            'agencies', 'depots', 'created_at'
        ]

    def get_item_count(self, obj):
        return len(obj.items.all())

    def get_total_quantity(self, obj):
        return sum(item.quantity for item in obj.items.all())

    def get_agencies(self, obj):
        return sorted({item.agency.name for item in obj.items.all()})

    def get_depots(self, obj):
        return sorted({item.depot.name for item in obj.items.all()})


class DeliveryEntrySerializer(serializers.Serializer):
    order_item_id = serializers.IntegerField(min_value=1)
    delivered_quantity = serializers.IntegerField(min_value=0)


class RecordDeliverySerializer(serializers.Serializer):
    items = DeliveryEntrySerializer(many=True, required=False, default=list)


class ReceiptEntrySerializer(serializers.Serializer):
    order_item_id = serializers.IntegerField(min_value=1)
    received_quantity = serializers.IntegerField(min_value=0)


class RecordReceiptSerializer(serializers.Serializer):
    items = ReceiptEntrySerializer(many=True, required=False, default=list)


class WastageEntrySerializer(serializers.Serializer):
    order_item_id = serializers.IntegerField(min_value=1)
    wastage = serializers.IntegerField(min_value=0, required=False, default=0)
    not_received = serializers.IntegerField(min_value=0, required=False, default=0)


class RegisterWastageSerializer(serializers.Serializer):
    """
    Wastage registration for one level.

    Either a per-item ``items`` list, or (single-item orders) the order-level
    fields for the chosen level, e.g. farmer_wastage/farmer_not_received.
    """
    level = serializers.ChoiceField(choices=['farmer', 'agency'])
    items = WastageEntrySerializer(many=True, required=False)
    farmer_wastage = serializers.IntegerField(min_value=0, required=False)
    farmer_not_received = serializers.IntegerField(min_value=0, required=False)
    agency_wastage = serializers.IntegerField(min_value=0, required=False)
    agency_not_received = serializers.IntegerField(min_value=0, required=False)


class SummaryItemSerializer(serializers.Serializer):
    """Loose line shape for summarizing unsaved drafts; blanks are allowed."""
    product_id = serializers.IntegerField(required=False, allow_null=True)
    depot_id = serializers.IntegerField(required=False, allow_null=True)
    depot_variant_id = serializers.IntegerField(required=False, allow_null=True)
    agency_id = serializers.IntegerField(required=False, allow_null=True)
    quantity = serializers.IntegerField(required=False, allow_null=True)


class OrderSummaryRequestSerializer(serializers.Serializer):
    items = SummaryItemSerializer(many=True)


class DraftQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
