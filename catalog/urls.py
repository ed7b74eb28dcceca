"""
URL routing for catalog lookup endpoints.
"""
from django.urls import path
from . import views

app_name = 'catalog'

urlpatterns = [
    path('vendors/', views.VendorListView.as_view(), name='vendor-list'),
    path('depots/', views.DepotListView.as_view(), name='depot-list'),
    path('products/', views.ProductListView.as_view(), name='product-list'),
    path('depot-variants/', views.DepotVariantListView.as_view(), name='depot-variant-list'),
    path('agencies/', views.AgencyListView.as_view(), name='agency-list'),
]
