"""
Vendor Order API Views.

Implements:
- GET  /vendor-orders/ - List orders visible to the caller
- POST /vendor-orders/ - Create order (PENDING)
- GET  /vendor-orders/draft/?date= - Draft order lines from member schedules
- GET  /vendor-orders/details/?date= - Quantities per depot and variant for a delivery date
- POST /vendor-orders/summary/ - Product/variant summary and total for unsaved lines
- GET  /vendor-orders/stats/ - Counts and quantity totals per stage
- GET/PUT/DELETE /vendor-orders/{id}/ - Detail, edit and delete while PENDING
- PUT  /vendor-orders/{id}/record-delivery/ (and amend-delivery/)
- PUT  /vendor-orders/{id}/record-receipt/ (and amend-receipt/)
- PATCH /vendor-orders/{id}/register-wastage/
"""
import logging

from django.core.exceptions import PermissionDenied
from django.db.models import Count, Q
from django.http import Http404
from rest_framework import generics, status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import APIView

from core.context import ActingUser
from core.rate_limiting import RateLimitMixin, rate_limit
from .aggregation import build_draft_order
from .exceptions import (
    ActionNotPermittedError,
    InvalidTransitionError,
    NotFoundError,
    OrderValidationError,
    ScheduleUnavailableError,
    WastageConstraintViolation,
)
from .gateway import default_gateway
from .lifecycle import record_delivery, record_receipt, transition_warnings_payload
from .models import VendorOrder, OrderItem
from .serializers import (
    DraftQuerySerializer,
    OrderInputSerializer,
    OrderListSerializer,
    OrderSerializer,
    OrderSummaryRequestSerializer,
    RecordDeliverySerializer,
    RecordReceiptSerializer,
    RegisterWastageSerializer,
)
from .services import (
    create_order,
    delete_order,
    get_order,
    orders_visible_to,
    quantity_totals,
    update_order,
)
from .summary import build_order_summary, depot_variant_totals
from .wastage import register_wastage

logger = logging.getLogger(__name__)


class DomainErrorMixin:
    """Translate service-layer exceptions into HTTP responses."""

    def handle_exception(self, exc):
        if isinstance(exc, OrderValidationError):
            logger.info(f"Order validation failed: {exc}")
            return Response(
                {'error': 'Validation Error', 'detail': exc.errors},
                status=status.HTTP_400_BAD_REQUEST
            )
        if isinstance(exc, WastageConstraintViolation):
            return Response(
                {
                    'error': 'Wastage Constraint Violation',
                    'level': exc.level,
                    'detail': str(exc),
                    'violations': exc.violations,
                },
                status=status.HTTP_422_UNPROCESSABLE_ENTITY
            )
        if isinstance(exc, NotFoundError):
            return Response(
                {'error': 'Not Found', 'detail': str(exc)},
                status=status.HTTP_404_NOT_FOUND
            )
        if isinstance(exc, InvalidTransitionError):
            return Response(
                {'error': 'Invalid Transition', 'detail': str(exc), 'status': exc.current_status},
                status=status.HTTP_409_CONFLICT
            )
        if isinstance(exc, ActionNotPermittedError):
            return Response(
                {'error': 'Forbidden', 'detail': str(exc)},
                status=status.HTTP_403_FORBIDDEN
            )
        if isinstance(exc, ScheduleUnavailableError):
            logger.error(f"Backing data unavailable: {exc}")
            return Response(
                {'error': 'Service Unavailable', 'detail': str(exc)},
                status=status.HTTP_503_SERVICE_UNAVAILABLE
            )
        if not isinstance(exc, (APIException, Http404, PermissionDenied)):
            logger.exception(f"Unexpected error in {self.__class__.__name__}: {exc}")
            return Response(
                {'error': 'Server Error', 'detail': 'An unexpected error occurred'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        return super().handle_exception(exc)

    def get_actor(self) -> ActingUser:
        return ActingUser.from_user(self.request.user)

    def order_payload(self, order_id, **extra):
        order = get_order(order_id, self.get_actor())
        data = OrderSerializer(order).data
        data.update(extra)
        return data


class OrderListCreateView(DomainErrorMixin, generics.ListCreateAPIView):
    """
    GET: List orders visible to the caller
    POST: Create a new vendor order

    Query Parameters (GET):
        - status: PENDING, DELIVERED or RECEIVED
        - vendor_id: Filter by vendor
        - delivery_date: Filter by delivery date (YYYY-MM-DD)
        - search: PO number or vendor name
    """

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return OrderInputSerializer
        return OrderListSerializer

    def get_queryset(self):
        queryset = orders_visible_to(self.get_actor()).prefetch_related(
            'items__agency', 'items__depot'
        )

        status_filter = self.request.query_params.get('status', '').upper()
        if status_filter in VendorOrder.Status.values:
            queryset = queryset.filter(status=status_filter)

        vendor_id = self.request.query_params.get('vendor_id')
        if vendor_id:
            queryset = queryset.filter(vendor_id=vendor_id)

        delivery_date = self.request.query_params.get('delivery_date')
        if delivery_date:
            queryset = queryset.filter(delivery_date=delivery_date)

        search = self.request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(po_number__icontains=search) | Q(vendor__name__icontains=search)
            )

        return queryset.order_by('-created_at')

    def create(self, request, *args, **kwargs):
        serializer = OrderInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = create_order(serializer.validated_data, self.get_actor())
        return Response(self.order_payload(order.pk), status=status.HTTP_201_CREATED)


class OrderDetailView(DomainErrorMixin, APIView):
    """
    GET: Order with items and product/variant summary
    PUT: Replace header and items (PENDING only)
    DELETE: Remove the order (PENDING only, administrators)
    """

    def get(self, request, pk):
        order = get_order(pk, self.get_actor())
        data = OrderSerializer(order).data
        data['summary'] = build_order_summary(order.items.all(), default_gateway())
        return Response(data)

    def put(self, request, pk):
        serializer = OrderInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = update_order(pk, serializer.validated_data, self.get_actor())
        return Response(self.order_payload(order.pk))

    def delete(self, request, pk):
        delete_order(pk, self.get_actor())
        return Response(status=status.HTTP_204_NO_CONTENT)


class OrderDraftView(DomainErrorMixin, APIView):
    """
    GET: Build order lines for a delivery date from member schedules.

    Query Parameters:
        - date: Delivery date (YYYY-MM-DD), required

    An empty ``items`` list means nothing is scheduled for the date.
    """

    @rate_limit(max_requests=30, window_seconds=60)
    def get(self, request):
        query = DraftQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        draft = build_draft_order(query.validated_data['date'], actor=self.get_actor())
        return Response({
            'delivery_date': draft.delivery_date,
            'order_date': draft.order_date,
            'items': [item.as_dict() for item in draft.items],
            'summary': {
                'total_quantity': draft.total_quantity,
                'total_depots': draft.depot_count,
                'unassigned_items': draft.unassigned_count,
            },
            'message': draft.message(),
        })


class DepotOrderDetailsView(DomainErrorMixin, APIView):
    """
    GET: Ordered quantity per depot and depot variant across the caller's
    orders for one delivery date.

    Query Parameters:
        - date: Delivery date (YYYY-MM-DD), required
    """

    def get(self, request):
        query = DraftQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        delivery_date = query.validated_data['date']
        orders = orders_visible_to(self.get_actor()).filter(delivery_date=delivery_date)
        items = OrderItem.objects.filter(order__in=orders.values('id'))
        return Response({
            'delivery_date': delivery_date,
            'details': depot_variant_totals(items, default_gateway()),
        })


class OrderSummaryView(DomainErrorMixin, APIView):
    """
    POST: Summarize unsaved order lines by product and variant with the total.
    Lines with missing product or non-positive quantity are ignored.
    """

    def post(self, request):
        serializer = OrderSummaryRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(
            build_order_summary(serializer.validated_data['items'], default_gateway())
        )


class RecordDeliveryView(DomainErrorMixin, RateLimitMixin, APIView):
    """
    PUT: Record delivered quantities (PENDING -> DELIVERED).

    Request Body:
    {"items": [{"order_item_id": 7, "delivered_quantity": 10}]}

    Response includes ``warnings`` for quantities above what was ordered.
    """
    amend = False
    rate_limit_max_requests = 30

    def put(self, request, pk):
        serializer = RecordDeliverySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = record_delivery(
            pk, serializer.validated_data['items'], self.get_actor(), amend=self.amend
        )
        return Response(self.order_payload(
            result.order.pk, warnings=transition_warnings_payload(result)
        ))


class AmendDeliveryView(RecordDeliveryView):
    """PUT: Correct delivered quantities of a DELIVERED order."""
    amend = True


class RecordReceiptView(DomainErrorMixin, RateLimitMixin, APIView):
    """
    PUT: Record received quantities (DELIVERED -> RECEIVED).

    Request Body:
    {"items": [{"order_item_id": 7, "received_quantity": 9}]}

    Omitted items default to their delivered quantity.
    """
    amend = False
    rate_limit_max_requests = 30

    def put(self, request, pk):
        serializer = RecordReceiptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = record_receipt(
            pk, serializer.validated_data['items'], self.get_actor(), amend=self.amend
        )
        return Response(self.order_payload(
            result.order.pk, warnings=transition_warnings_payload(result)
        ))


class AmendReceiptView(RecordReceiptView):
    """PUT: Correct received quantities of a RECEIVED order."""
    amend = True


class RegisterWastageView(DomainErrorMixin, RateLimitMixin, APIView):
    """
    PATCH: Register farmer- or agency-level wastage.

    Request Body:
    {"level": "farmer", "items": [{"order_item_id": 7, "wastage": 1, "not_received": 2}]}
    or, for single-item orders:
    {"level": "agency", "agency_wastage": 2, "agency_not_received": 3}
    """
    rate_limit_max_requests = 30

    def patch(self, request, pk):
        serializer = RegisterWastageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        payload = dict(serializer.validated_data)
        level = payload.pop('level')
        order = register_wastage(pk, level, payload, self.get_actor())
        return Response(self.order_payload(order.pk))


class OrderStatsView(DomainErrorMixin, APIView):
    """
    GET: Order counts per status and quantity totals per stage.

    Query Parameters:
        - vendor_id: Filter by vendor (optional)
        - delivery_date: Filter by delivery date (optional)
    """

    def get(self, request):
        orders = orders_visible_to(self.get_actor())

        vendor_id = request.query_params.get('vendor_id')
        if vendor_id:
            orders = orders.filter(vendor_id=vendor_id)
        delivery_date = request.query_params.get('delivery_date')
        if delivery_date:
            orders = orders.filter(delivery_date=delivery_date)

        stats = orders.aggregate(
            total_orders=Count('id', distinct=True),
            pending_orders=Count('id', filter=Q(status=VendorOrder.Status.PENDING), distinct=True),
            delivered_orders=Count('id', filter=Q(status=VendorOrder.Status.DELIVERED), distinct=True),
            received_orders=Count('id', filter=Q(status=VendorOrder.Status.RECEIVED), distinct=True),
        )
        stats.update(quantity_totals(OrderItem.objects.filter(order__in=orders.values('id'))))
        return Response(stats)
