"""
Catalog API Views - read-only reference lookups.

Implements:
- GET /vendors/ - Active vendors with default contact person
- GET /products/ - Active products with purchase prices
- GET /depots/ - Active depots
- GET /depot-variants/ - Active depot variants, optionally filtered by depot/product
- GET /agencies/ - Active agencies
"""
from rest_framework import generics

from .models import Vendor, Depot, Product, DepotProductVariant, Agency
from .serializers import (
    VendorSerializer,
    DepotSerializer,
    ProductSerializer,
    DepotProductVariantSerializer,
    AgencySerializer,
)


class VendorListView(generics.ListAPIView):
    """GET: List active vendors."""
    queryset = Vendor.objects.filter(is_active=True)
    serializer_class = VendorSerializer
    pagination_class = None


class DepotListView(generics.ListAPIView):
    """GET: List active depots."""
    queryset = Depot.objects.filter(is_active=True)
    serializer_class = DepotSerializer
    pagination_class = None


class ProductListView(generics.ListAPIView):
    """
    GET: List active products.

    Query Parameters:
        - q: Case-insensitive name filter
    """
    serializer_class = ProductSerializer
    pagination_class = None

    def get_queryset(self):
        queryset = Product.objects.filter(is_active=True)
        keyword = self.request.query_params.get('q', '').strip()
        if keyword:
            queryset = queryset.filter(name__icontains=keyword)
        return queryset.order_by('name')


class DepotVariantListView(generics.ListAPIView):
    """
    GET: List active depot variants.

    Query Parameters:
        - depot_id: Filter by depot
        - product_id: Filter by product

    Uses select_related to eliminate N+1 queries.
    """
    serializer_class = DepotProductVariantSerializer
    pagination_class = None

    def get_queryset(self):
        queryset = DepotProductVariant.objects.select_related(
            'depot', 'product'
        ).filter(is_active=True)

        depot_id = self.request.query_params.get('depot_id')
        if depot_id:
            queryset = queryset.filter(depot_id=depot_id)

        product_id = self.request.query_params.get('product_id')
        if product_id:
            queryset = queryset.filter(product_id=product_id)

        return queryset.order_by('depot__name', 'product__name', 'name')


class AgencyListView(generics.ListAPIView):
    """GET: List active agencies."""
    queryset = Agency.objects.filter(is_active=True)
    serializer_class = AgencySerializer
    pagination_class = None
