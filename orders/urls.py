"""
URL routing for vendor order API endpoints.
"""
from django.urls import path
from . import views

app_name = 'orders'

urlpatterns = [
    path('vendor-orders/', views.OrderListCreateView.as_view(), name='order-list'),
    path('vendor-orders/draft/', views.OrderDraftView.as_view(), name='order-draft'),
    path('vendor-orders/details/', views.DepotOrderDetailsView.as_view(), name='order-details'),
    path('vendor-orders/summary/', views.OrderSummaryView.as_view(), name='order-summary'),
    path('vendor-orders/stats/', views.OrderStatsView.as_view(), name='order-stats'),
    path('vendor-orders/<int:pk>/', views.OrderDetailView.as_view(), name='order-detail'),
    path('vendor-orders/<int:pk>/record-delivery/', views.RecordDeliveryView.as_view(), name='order-record-delivery'),
    path('vendor-orders/<int:pk>/amend-delivery/', views.AmendDeliveryView.as_view(), name='order-amend-delivery'),
    path('vendor-orders/<int:pk>/record-receipt/', views.RecordReceiptView.as_view(), name='order-record-receipt'),
    path('vendor-orders/<int:pk>/amend-receipt/', views.AmendReceiptView.as_view(), name='order-amend-receipt'),
    path('vendor-orders/<int:pk>/register-wastage/', views.RegisterWastageView.as_view(), name='order-register-wastage'),
]
