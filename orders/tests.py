"""
Tests for vendor order fulfillment.

Test Cases:
1. Draft aggregation from member schedules (exact and even-split attribution)
2. Order validation and creation (PENDING, PO number, total)
3. Delivery and receipt transitions with defaults, warnings and amends
4. Wastage registration at farmer and agency level (all-or-nothing)
5. Product/variant summaries and totals
6. API status codes and per-role visibility
7. Celery tasks
8. Concurrent delivery recording
"""
import threading
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import Mock, patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError, connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from catalog.models import Vendor, Depot, Product, DepotProductVariant, Agency
from core.context import ActingUser, AGENCY, VENDOR
from subscriptions.models import DeliveryScheduleEntry
from orders.aggregation import (
    aggregate_schedule,
    attribute_group,
    build_draft_order,
    split_evenly,
)
from orders.exceptions import (
    ActionNotPermittedError,
    InvalidTransitionError,
    OrderValidationError,
    ReferenceNotFoundError,
    ScheduleUnavailableError,
    WastageConstraintViolation,
)
from orders.gateway import (
    ReferenceDataGateway,
    ScheduleEntry,
    schedule_entry_from_mapping,
)
from orders.lifecycle import record_delivery, record_receipt
from orders.models import VendorOrder, OrderItem
from orders.services import create_order, update_order, delete_order, validate_order_draft
from orders.summary import (
    build_order_summary,
    compute_total,
    depot_variant_totals,
    group_by_product,
    group_by_variant,
)
from orders.tasks import (
    generate_daily_fulfillment_report,
    notify_vendor_of_order,
    prepare_demand_draft,
)
from orders.wastage import register_agency_wastage, register_farmer_wastage, register_wastage

User = get_user_model()
ADMIN = ActingUser.system()


class FulfillmentFixtureMixin:
    """Reference data shared by the order test cases."""

    def setUp(self):
        self.vendor = Vendor.objects.create(
            name='Shinde Dairy Farm',
            contact_person_name='Sunil Shinde'
        )
        self.other_vendor = Vendor.objects.create(name='Green Meadows')

        self.depot = Depot.objects.create(name='Kothrud Depot')
        self.depot2 = Depot.objects.create(name='Baner Depot')

        self.milk = Product.objects.create(name='Cow Milk', unit='litre', price=Decimal('56.00'))
        self.curd = Product.objects.create(name='Curd', unit='kg', price=Decimal('90.00'))

        self.milk_pouch = DepotProductVariant.objects.create(
            depot=self.depot, product=self.milk, name='500 ml pouch', unit='litre'
        )
        self.curd_pack = DepotProductVariant.objects.create(
            depot=self.depot, product=self.curd, name='500 g pack', unit='kg'
        )
        self.milk_bottle = DepotProductVariant.objects.create(
            depot=self.depot2, product=self.milk, name='1 litre bottle', unit='litre'
        )

        self.agency_a = Agency.objects.create(name='Swift Doorstep')
        self.agency_b = Agency.objects.create(name='Morning Fresh Delivery')

    def line(self, variant, agency, quantity):
        return {
            'product_id': variant.product_id,
            'depot_id': variant.depot_id,
            'depot_variant_id': variant.id,
            'agency_id': agency.id,
            'quantity': quantity,
        }

    def order_data(self, items, **overrides):
        data = {
            'vendor_id': self.vendor.id,
            'contact_person_name': '',
            'order_date': date(2024, 1, 9),
            'delivery_date': date(2024, 1, 10),
            'notes': '',
            'items': items,
        }
        data.update(overrides)
        return data

    def place_order(self, *items, vendor=None):
        data = self.order_data(list(items))
        if vendor is not None:
            data['vendor_id'] = vendor.id
        return create_order(data, ADMIN)

    def schedule(self, member, variant, quantity, agency=None, when=date(2024, 1, 10)):
        return DeliveryScheduleEntry.objects.create(
            member=member,
            delivery_date=when,
            depot=variant.depot,
            product=variant.product,
            depot_variant=variant,
            agency=agency,
            quantity=quantity,
        )


class SplitEvenlyTestCase(TestCase):
    """Test cases for the even-split fallback."""

    def test_remainder_goes_to_first_agencies(self):
        """
        Test: 7 units over two agencies split 4/3.
        """
        self.assertEqual(split_evenly(7, [1, 2]), [(1, 4), (2, 3)])

    def test_total_is_conserved(self):
        for total in range(0, 20):
            for count in range(1, 6):
                shares = split_evenly(total, list(range(1, count + 1)))
                self.assertEqual(sum(share for _, share in shares), total)

    def test_zero_shares_omitted(self):
        self.assertEqual(split_evenly(2, [1, 2, 3]), [(1, 1), (2, 1)])

    def test_no_agencies(self):
        self.assertEqual(split_evenly(5, []), [])


class AggregationTestCase(FulfillmentFixtureMixin, TestCase):
    """Test cases for building a draft order from member schedules."""

    def setUp(self):
        super().setUp()
        self.m1 = User.objects.create_user(username='member1')
        self.m2 = User.objects.create_user(username='member2')
        self.m3 = User.objects.create_user(username='member3')

    def test_entries_for_same_agency_are_summed(self):
        """
        Test: Two members on the same variant and agency produce one line.

        Given: M1 wants 2 and M2 wants 3 of the milk pouch via agency A
        When: Building the draft for the delivery date
        Then: One candidate with quantity 5
        """
        self.schedule(self.m1, self.milk_pouch, 2, self.agency_a)
        self.schedule(self.m2, self.milk_pouch, 3, self.agency_a)

        draft = build_draft_order(date(2024, 1, 10), actor=ADMIN)

        self.assertEqual(len(draft.items), 1)
        line = draft.items[0]
        self.assertEqual(line.depot_id, self.depot.id)
        self.assertEqual(line.product_id, self.milk.id)
        self.assertEqual(line.depot_variant_id, self.milk_pouch.id)
        self.assertEqual(line.agency_id, self.agency_a.id)
        self.assertEqual(line.quantity, 5)

    def test_unattributed_quantity_split_across_agencies(self):
        """
        Test: Unattributed quantity is split evenly, total preserved.

        Given: 1 unit via A, 1 unit via B and 5 units with no agency
        When: Aggregating the group
        Then: A gets 1 + 3, B gets 1 + 2, total 7
        """
        self.schedule(self.m1, self.milk_pouch, 1, self.agency_a)
        self.schedule(self.m2, self.milk_pouch, 1, self.agency_b)
        self.schedule(self.m3, self.milk_pouch, 5)

        draft = build_draft_order(date(2024, 1, 10), actor=ADMIN)

        by_agency = {line.agency_id: line.quantity for line in draft.items}
        first, second = sorted([self.agency_a.id, self.agency_b.id])
        self.assertEqual(by_agency, {first: 4, second: 3})
        self.assertEqual(draft.total_quantity, 7)

    def test_exact_attribution_is_used_when_available(self):
        """
        Test: Entries that carry an agency are never redistributed.
        """
        self.schedule(self.m1, self.milk_pouch, 6, self.agency_a)
        self.schedule(self.m2, self.milk_pouch, 1, self.agency_b)

        draft = build_draft_order(date(2024, 1, 10), actor=ADMIN)

        by_agency = {line.agency_id: line.quantity for line in draft.items}
        self.assertEqual(by_agency, {self.agency_a.id: 6, self.agency_b.id: 1})

    def test_single_agency_takes_unattributed_quantity(self):
        self.schedule(self.m1, self.curd_pack, 2, self.agency_b)
        self.schedule(self.m2, self.curd_pack, 3)

        draft = build_draft_order(date(2024, 1, 10), actor=ADMIN)

        self.assertEqual(len(draft.items), 1)
        self.assertEqual(draft.items[0].agency_id, self.agency_b.id)
        self.assertEqual(draft.items[0].quantity, 5)

    def test_no_agency_leaves_line_unassigned(self):
        """
        Test: A group with no agency information yields one unassigned line.
        """
        self.schedule(self.m1, self.milk_bottle, 4)

        draft = build_draft_order(date(2024, 1, 10), actor=ADMIN)

        self.assertEqual(len(draft.items), 1)
        self.assertIsNone(draft.items[0].agency_id)
        self.assertEqual(draft.unassigned_count, 1)

    def test_groups_by_depot_and_variant(self):
        self.schedule(self.m1, self.milk_pouch, 2, self.agency_a)
        self.schedule(self.m1, self.curd_pack, 1, self.agency_a)
        self.schedule(self.m2, self.milk_bottle, 3, self.agency_a)

        draft = build_draft_order(date(2024, 1, 10), actor=ADMIN)

        self.assertEqual(len(draft.items), 3)
        self.assertEqual(draft.total_quantity, 6)
        self.assertEqual(draft.depot_count, 2)
        self.assertEqual(
            draft.message(),
            "3 order items prefilled for 10/01/2024. Total quantity: 6 units across 2 depots."
        )

    def test_inactive_entries_and_other_dates_ignored(self):
        entry = self.schedule(self.m1, self.milk_pouch, 2, self.agency_a)
        entry.is_active = False
        entry.save()
        self.schedule(self.m2, self.milk_pouch, 3, self.agency_a, when=date(2024, 1, 11))

        draft = build_draft_order(date(2024, 1, 10), actor=ADMIN)

        self.assertTrue(draft.is_empty)
        self.assertEqual(draft.message(), "No scheduled order items found for 10/01/2024.")

    def test_order_date_never_after_delivery_date(self):
        past = timezone.localdate() - timedelta(days=3)
        draft = build_draft_order(past, actor=ADMIN)
        self.assertEqual(draft.order_date, past)

        future = timezone.localdate() + timedelta(days=3)
        draft = build_draft_order(future, actor=ADMIN)
        self.assertEqual(draft.order_date, timezone.localdate())

    def test_incomplete_entries_skipped(self):
        entries = [
            ScheduleEntry(1, self.depot.id, self.milk.id, self.milk_pouch.id, None, 3),
            ScheduleEntry(2, None, self.milk.id, self.milk_pouch.id, None, 4),
            ScheduleEntry(3, self.depot.id, self.milk.id, self.milk_pouch.id, None, 0),
        ]
        candidates = aggregate_schedule(entries)
        self.assertEqual(len(candidates), 1)
        self.assertEqual(candidates[0].quantity, 3)

    def test_attribute_group_conserves_quantity(self):
        entries = [
            ScheduleEntry(1, 1, 1, 1, 10, 2),
            ScheduleEntry(2, 1, 1, 1, 11, 1),
            ScheduleEntry(3, 1, 1, 1, 12, 1),
            ScheduleEntry(4, 1, 1, 1, None, 5),
        ]
        result = attribute_group(entries)
        self.assertEqual(sum(result.values()), 9)
        self.assertEqual(result, {10: 4, 11: 3, 12: 2})

    def test_gateway_failure_propagates(self):
        """
        Test: A failing schedule read yields no draft at all.
        """
        gateway = Mock()
        gateway.get_scheduled_deliveries.side_effect = ScheduleUnavailableError('down')

        with self.assertRaises(ScheduleUnavailableError):
            build_draft_order(date(2024, 1, 10), gateway=gateway, actor=ADMIN)

    def test_database_error_becomes_schedule_unavailable(self):
        with patch.object(DeliveryScheduleEntry.objects, 'filter', side_effect=DatabaseError('down')):
            with self.assertRaises(ScheduleUnavailableError):
                ReferenceDataGateway().get_scheduled_deliveries(date(2024, 1, 10))

    def test_only_admins_draft(self):
        vendor_actor = ActingUser(user_id=5, role=VENDOR, vendor_id=self.vendor.id)
        with self.assertRaises(ActionNotPermittedError):
            build_draft_order(date(2024, 1, 10), actor=vendor_actor)


class GatewayTestCase(TestCase):
    """Test cases for collaborator payload normalization."""

    def test_schedule_entry_from_camel_case(self):
        entry = schedule_entry_from_mapping({
            'memberId': '7', 'depotId': 1, 'productId': 2,
            'depotVariantId': 3, 'agencyId': None, 'quantity': '4',
        })
        self.assertEqual(entry, ScheduleEntry(7, 1, 2, 3, None, 4))


class OrderCreationTestCase(FulfillmentFixtureMixin, TestCase):
    """Test cases for order validation and creation."""

    def test_validation_collects_every_error(self):
        """
        Test: An empty draft reports each missing field.
        """
        with self.assertRaises(OrderValidationError) as context:
            validate_order_draft({})

        errors = context.exception.errors
        self.assertIn("Farmer is required", errors)
        self.assertIn("Order date is required", errors)
        self.assertIn("Delivery date is required", errors)
        self.assertIn("At least one product item is required", errors)

    def test_validation_item_errors(self):
        data = self.order_data([
            {'product_id': self.milk.id, 'depot_id': self.depot.id,
             'depot_variant_id': self.milk_pouch.id, 'agency_id': None, 'quantity': 0}
        ])
        with self.assertRaises(OrderValidationError) as context:
            validate_order_draft(data)

        self.assertEqual(
            context.exception.errors,
            ["Item 0: Agency is required", "Item 0: quantity must be at least 1"]
        )

    def test_delivery_before_order_date(self):
        data = self.order_data(
            [self.line(self.milk_pouch, self.agency_a, 1)],
            order_date=date(2024, 1, 10),
            delivery_date=date(2024, 1, 9),
        )
        with self.assertRaises(OrderValidationError) as context:
            create_order(data, ADMIN)
        self.assertIn("Delivery date cannot be before order date", context.exception.errors)
        self.assertFalse(VendorOrder.objects.exists())

    def test_order_created_pending(self):
        """
        Test: A valid draft creates a PENDING order with untouched tracking fields.

        Given: Two lines (10 milk at 56.00, 3 curd at 90.00)
        When: Creating the order
        Then: Status PENDING, PO number assigned, total 830.00
        """
        order = self.place_order(
            self.line(self.milk_pouch, self.agency_a, 10),
            self.line(self.curd_pack, self.agency_b, 3),
        )

        self.assertEqual(order.status, VendorOrder.Status.PENDING)
        self.assertEqual(order.total_amount, Decimal('830.00'))
        self.assertTrue(order.po_number.startswith('PO-'))
        self.assertTrue(order.po_number.endswith(f'{order.pk:05d}'))
        self.assertEqual(order.contact_person_name, 'Sunil Shinde')
        self.assertEqual(order.items.count(), 2)
        for item in order.items.all():
            self.assertIsNone(item.delivered_quantity)
            self.assertIsNone(item.received_quantity)
            self.assertIsNone(item.farmer_wastage)
            self.assertIsNone(item.agency_not_received)

    def test_contact_required_when_vendor_has_none(self):
        data = self.order_data([self.line(self.milk_pouch, self.agency_a, 1)])
        data['vendor_id'] = self.other_vendor.id

        with self.assertRaises(OrderValidationError) as context:
            create_order(data, ADMIN)
        self.assertIn("Contact person name is required", context.exception.errors)

    def test_variant_must_belong_to_depot(self):
        """
        Test: A variant from another depot is rejected and nothing is saved.
        """
        line = self.line(self.milk_bottle, self.agency_a, 2)
        line['depot_id'] = self.depot.id

        with self.assertRaises(OrderValidationError):
            create_order(self.order_data([line]), ADMIN)
        self.assertFalse(VendorOrder.objects.exists())

    def test_unknown_reference(self):
        line = self.line(self.milk_pouch, self.agency_a, 2)
        line['agency_id'] = 99999

        with self.assertRaises(ReferenceNotFoundError) as context:
            create_order(self.order_data([line]), ADMIN)
        self.assertEqual(context.exception.missing_ids, [99999])

    def test_inactive_vendor_rejected(self):
        self.vendor.is_active = False
        self.vendor.save()

        with self.assertRaises(ReferenceNotFoundError):
            self.place_order(self.line(self.milk_pouch, self.agency_a, 1))

    def test_only_admins_create(self):
        actor = ActingUser(user_id=5, role=VENDOR, vendor_id=self.vendor.id)
        with self.assertRaises(ActionNotPermittedError):
            create_order(self.order_data([self.line(self.milk_pouch, self.agency_a, 1)]), actor)

    def test_vendor_notification_queued_on_commit(self):
        with patch.object(notify_vendor_of_order, 'delay') as delay:
            with self.captureOnCommitCallbacks(execute=True):
                order = self.place_order(self.line(self.milk_pouch, self.agency_a, 1))

        delay.assert_called_once_with(order.pk)

    def test_update_replaces_items_while_pending(self):
        order = self.place_order(self.line(self.milk_pouch, self.agency_a, 10))
        po_number = order.po_number

        updated = update_order(
            order.pk,
            self.order_data([self.line(self.curd_pack, self.agency_b, 2)], notes='Revised'),
            ADMIN
        )

        self.assertEqual(updated.po_number, po_number)
        self.assertEqual(updated.notes, 'Revised')
        self.assertEqual(updated.total_amount, Decimal('180.00'))
        self.assertEqual(list(updated.items.values_list('product_id', flat=True)), [self.curd.id])

    def test_update_rejected_after_delivery(self):
        order = self.place_order(self.line(self.milk_pouch, self.agency_a, 10))
        record_delivery(order.pk, [], ADMIN)

        with self.assertRaises(InvalidTransitionError):
            update_order(order.pk, self.order_data([self.line(self.curd_pack, self.agency_b, 2)]), ADMIN)

        with self.assertRaises(InvalidTransitionError):
            delete_order(order.pk, ADMIN)

    def test_delete_pending_order(self):
        order = self.place_order(self.line(self.milk_pouch, self.agency_a, 10))
        delete_order(order.pk, ADMIN)
        self.assertFalse(VendorOrder.objects.filter(pk=order.pk).exists())
        self.assertFalse(OrderItem.objects.exists())


class OrderLifecycleTestCase(FulfillmentFixtureMixin, TestCase):
    """Test cases for delivery and receipt transitions."""

    def setUp(self):
        super().setUp()
        self.order = self.place_order(
            self.line(self.milk_pouch, self.agency_a, 10),
            self.line(self.curd_pack, self.agency_b, 4),
        )
        self.milk_item, self.curd_item = self.order.items.order_by('id')

    def test_delivery_defaults_to_ordered_quantity(self):
        """
        Test: Omitted items default their delivered quantity to the ordered quantity.
        """
        result = record_delivery(
            self.order.pk,
            [{'order_item_id': self.milk_item.id, 'delivered_quantity': 8}],
            ADMIN
        )

        self.assertEqual(result.order.status, VendorOrder.Status.DELIVERED)
        self.assertEqual(result.warnings, [])
        self.milk_item.refresh_from_db()
        self.curd_item.refresh_from_db()
        self.assertEqual(self.milk_item.delivered_quantity, 8)
        self.assertEqual(self.curd_item.delivered_quantity, 4)

    def test_over_delivery_warns_but_succeeds(self):
        result = record_delivery(
            self.order.pk,
            [{'order_item_id': self.milk_item.id, 'delivered_quantity': 12}],
            ADMIN
        )

        self.assertEqual(len(result.warnings), 1)
        warning = result.warnings[0]
        self.assertEqual(warning.order_item_id, self.milk_item.id)
        self.assertEqual(warning.value, 12)
        self.assertEqual(warning.limit, 10)
        self.assertIn('Cow Milk', warning.message)
        self.milk_item.refresh_from_db()
        self.assertEqual(self.milk_item.delivered_quantity, 12)

    def test_negative_quantity_rejected(self):
        with self.assertRaises(OrderValidationError):
            record_delivery(
                self.order.pk,
                [{'order_item_id': self.milk_item.id, 'delivered_quantity': -1}],
                ADMIN
            )
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, VendorOrder.Status.PENDING)

    def test_numeric_string_quantity_rejected(self):
        with self.assertRaises(OrderValidationError):
            record_delivery(
                self.order.pk,
                [{'order_item_id': self.milk_item.id, 'delivered_quantity': '8'}],
                ADMIN
            )
        with self.assertRaises(OrderValidationError):
            validate_order_draft(self.order_data([self.line(self.milk_pouch, self.agency_a, '3')]))

    def test_foreign_item_rejected(self):
        other = self.place_order(self.line(self.milk_pouch, self.agency_a, 1))
        foreign_item = other.items.get()

        with self.assertRaises(OrderValidationError):
            record_delivery(
                self.order.pk,
                [{'order_item_id': foreign_item.id, 'delivered_quantity': 1}],
                ADMIN
            )

    def test_receipt_requires_delivery(self):
        """
        Test: Receipt cannot be recorded on a PENDING order.
        """
        with self.assertRaises(InvalidTransitionError):
            record_receipt(self.order.pk, [], ADMIN)

    def test_second_delivery_rejected_without_amend(self):
        record_delivery(self.order.pk, [], ADMIN)

        with self.assertRaises(InvalidTransitionError):
            record_delivery(
                self.order.pk,
                [{'order_item_id': self.milk_item.id, 'delivered_quantity': 3}],
                ADMIN
            )
        self.milk_item.refresh_from_db()
        self.assertEqual(self.milk_item.delivered_quantity, 10)

    def test_amend_delivery_keeps_other_items(self):
        record_delivery(
            self.order.pk,
            [{'order_item_id': self.curd_item.id, 'delivered_quantity': 3}],
            ADMIN
        )
        record_delivery(
            self.order.pk,
            [{'order_item_id': self.milk_item.id, 'delivered_quantity': 9}],
            ADMIN,
            amend=True
        )

        self.milk_item.refresh_from_db()
        self.curd_item.refresh_from_db()
        self.assertEqual(self.milk_item.delivered_quantity, 9)
        self.assertEqual(self.curd_item.delivered_quantity, 3)

    def test_amend_requires_delivered(self):
        with self.assertRaises(InvalidTransitionError):
            record_delivery(self.order.pk, [], ADMIN, amend=True)

    def test_amend_below_registered_wastage_rejected(self):
        record_delivery(self.order.pk, [], ADMIN)
        register_farmer_wastage(
            self.order.pk,
            {'items': [{'order_item_id': self.milk_item.id, 'wastage': 4, 'not_received': 2}]},
            ADMIN
        )

        with self.assertRaises(WastageConstraintViolation) as context:
            record_delivery(
                self.order.pk,
                [{'order_item_id': self.milk_item.id, 'delivered_quantity': 5}],
                ADMIN,
                amend=True
            )

        self.assertEqual(context.exception.level, 'farmer')
        self.milk_item.refresh_from_db()
        self.assertEqual(self.milk_item.delivered_quantity, 10)

    def test_receipt_defaults_to_delivered(self):
        record_delivery(
            self.order.pk,
            [{'order_item_id': self.milk_item.id, 'delivered_quantity': 7}],
            ADMIN
        )
        result = record_receipt(self.order.pk, [], ADMIN)

        self.assertEqual(result.order.status, VendorOrder.Status.RECEIVED)
        self.milk_item.refresh_from_db()
        self.curd_item.refresh_from_db()
        self.assertEqual(self.milk_item.received_quantity, 7)
        self.assertEqual(self.curd_item.received_quantity, 4)

    def test_over_receipt_warns_against_delivered(self):
        record_delivery(
            self.order.pk,
            [{'order_item_id': self.milk_item.id, 'delivered_quantity': 7}],
            ADMIN
        )
        result = record_receipt(
            self.order.pk,
            [{'order_item_id': self.milk_item.id, 'received_quantity': 8}],
            ADMIN
        )

        self.assertEqual(len(result.warnings), 1)
        self.assertEqual(result.warnings[0].basis, 'delivered_quantity')
        self.assertEqual(result.warnings[0].limit, 7)

    def test_short_receipt_displays_partially_received(self):
        record_delivery(self.order.pk, [], ADMIN)
        record_receipt(
            self.order.pk,
            [{'order_item_id': self.milk_item.id, 'received_quantity': 9}],
            ADMIN
        )

        order = VendorOrder.objects.get(pk=self.order.pk)
        self.assertEqual(order.status, VendorOrder.Status.RECEIVED)
        self.assertEqual(order.display_status, VendorOrder.PARTIALLY_RECEIVED)

    def test_second_receipt_rejected_without_amend(self):
        record_delivery(self.order.pk, [], ADMIN)
        record_receipt(self.order.pk, [], ADMIN)

        with self.assertRaises(InvalidTransitionError):
            record_receipt(self.order.pk, [], ADMIN)

        result = record_receipt(
            self.order.pk,
            [{'order_item_id': self.curd_item.id, 'received_quantity': 2}],
            ADMIN,
            amend=True
        )
        self.assertEqual(result.order.status, VendorOrder.Status.RECEIVED)
        self.curd_item.refresh_from_db()
        self.assertEqual(self.curd_item.received_quantity, 2)

    def test_vendor_may_only_deliver_own_orders(self):
        own = ActingUser(user_id=5, role=VENDOR, vendor_id=self.vendor.id)
        other = ActingUser(user_id=6, role=VENDOR, vendor_id=self.other_vendor.id)

        with self.assertRaises(ActionNotPermittedError):
            record_delivery(self.order.pk, [], other)

        result = record_delivery(self.order.pk, [], own)
        self.assertEqual(result.order.status, VendorOrder.Status.DELIVERED)

    def test_agency_on_order_may_record_receipt(self):
        record_delivery(self.order.pk, [], ADMIN)
        stranger = Agency.objects.create(name='City Milk Runs')

        with self.assertRaises(ActionNotPermittedError):
            record_receipt(self.order.pk, [], ActingUser(7, AGENCY, agency_id=stranger.id))

        result = record_receipt(self.order.pk, [], ActingUser(8, AGENCY, agency_id=self.agency_b.id))
        self.assertEqual(result.order.status, VendorOrder.Status.RECEIVED)

    def test_agency_may_only_receive_own_lines(self):
        """
        Test: An agency cannot write the received quantity of another agency's line.

        Given: Milk line for agency A (10), curd line for agency B (4), delivered as ordered
        When: Agency A names the curd line, then only its own milk line
        Then: First call is refused and changes nothing; second succeeds and
              the curd line takes its delivered quantity
        """
        record_delivery(self.order.pk, [], ADMIN)
        agency_a = ActingUser(7, AGENCY, agency_id=self.agency_a.id)

        with self.assertRaises(ActionNotPermittedError):
            record_receipt(self.order.pk, [
                {'order_item_id': self.milk_item.id, 'received_quantity': 10},
                {'order_item_id': self.curd_item.id, 'received_quantity': 1},
            ], agency_a)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, VendorOrder.Status.DELIVERED)
        self.curd_item.refresh_from_db()
        self.assertIsNone(self.curd_item.received_quantity)

        record_receipt(
            self.order.pk,
            [{'order_item_id': self.milk_item.id, 'received_quantity': 9}],
            agency_a
        )
        self.milk_item.refresh_from_db()
        self.curd_item.refresh_from_db()
        self.assertEqual(self.milk_item.received_quantity, 9)
        self.assertEqual(self.curd_item.received_quantity, 4)

    def test_agency_amend_leaves_other_lines_unchanged(self):
        record_delivery(self.order.pk, [], ADMIN)
        record_receipt(
            self.order.pk,
            [{'order_item_id': self.curd_item.id, 'received_quantity': 3}],
            ADMIN
        )
        agency_a = ActingUser(7, AGENCY, agency_id=self.agency_a.id)

        with self.assertRaises(ActionNotPermittedError):
            record_receipt(
                self.order.pk,
                [{'order_item_id': self.curd_item.id, 'received_quantity': 1}],
                agency_a,
                amend=True
            )

        record_receipt(
            self.order.pk,
            [{'order_item_id': self.milk_item.id, 'received_quantity': 8}],
            agency_a,
            amend=True
        )
        self.curd_item.refresh_from_db()
        self.assertEqual(self.curd_item.received_quantity, 3)


class WastageTestCase(FulfillmentFixtureMixin, TestCase):
    """Test cases for farmer and agency wastage registration."""

    def setUp(self):
        super().setUp()
        self.order = self.place_order(self.line(self.milk_pouch, self.agency_a, 10))
        self.item = self.order.items.get()

    def test_agency_wastage_within_received(self):
        """
        Test: Agency wastage is stored when within the received quantity, and
        an over-limit registration leaves the stored values untouched.

        Given: 10 ordered, delivered 10, receipt defaults to 10
        When: Registering 2 + 3, then 6 + 5
        Then: First succeeds; second is rejected and 2/3 remain
        """
        record_delivery(
            self.order.pk,
            [{'order_item_id': self.item.id, 'delivered_quantity': 10}],
            ADMIN
        )
        record_receipt(self.order.pk, [], ADMIN)
        self.item.refresh_from_db()
        self.assertEqual(self.item.received_quantity, 10)

        register_agency_wastage(
            self.order.pk, {'agency_wastage': 2, 'agency_not_received': 3}, ADMIN
        )
        self.item.refresh_from_db()
        self.assertEqual((self.item.agency_wastage, self.item.agency_not_received), (2, 3))

        with self.assertRaises(WastageConstraintViolation) as context:
            register_agency_wastage(
                self.order.pk, {'agency_wastage': 6, 'agency_not_received': 5}, ADMIN
            )

        violation = context.exception.violations[0]
        self.assertEqual(violation['total'], 11)
        self.assertEqual(violation['limit'], 10)
        self.item.refresh_from_db()
        self.assertEqual((self.item.agency_wastage, self.item.agency_not_received), (2, 3))

    def test_registration_overwrites(self):
        record_delivery(self.order.pk, [], ADMIN)
        register_farmer_wastage(self.order.pk, {'farmer_wastage': 3}, ADMIN)
        register_farmer_wastage(self.order.pk, {'farmer_wastage': 1, 'farmer_not_received': 1}, ADMIN)

        self.item.refresh_from_db()
        self.assertEqual(self.item.farmer_wastage, 1)
        self.assertEqual(self.item.farmer_not_received, 1)

    def test_blank_values_count_as_zero(self):
        record_delivery(self.order.pk, [], ADMIN)
        register_farmer_wastage(self.order.pk, {'farmer_wastage': '', 'farmer_not_received': 4}, ADMIN)

        self.item.refresh_from_db()
        self.assertEqual(self.item.farmer_wastage, 0)
        self.assertEqual(self.item.farmer_not_received, 4)

    def test_numeric_strings_rejected(self):
        record_delivery(self.order.pk, [], ADMIN)
        with self.assertRaises(OrderValidationError):
            register_farmer_wastage(self.order.pk, {'farmer_wastage': '4'}, ADMIN)

        self.item.refresh_from_db()
        self.assertIsNone(self.item.farmer_wastage)

    def test_negative_values_rejected(self):
        record_delivery(self.order.pk, [], ADMIN)
        with self.assertRaises(OrderValidationError):
            register_farmer_wastage(self.order.pk, {'farmer_wastage': -1}, ADMIN)

    def test_farmer_wastage_requires_delivery(self):
        with self.assertRaises(InvalidTransitionError):
            register_farmer_wastage(self.order.pk, {'farmer_wastage': 1}, ADMIN)

    def test_agency_wastage_requires_receipt(self):
        record_delivery(self.order.pk, [], ADMIN)
        with self.assertRaises(InvalidTransitionError):
            register_agency_wastage(self.order.pk, {'agency_wastage': 1}, ADMIN)

    def test_farmer_wastage_allowed_after_receipt(self):
        record_delivery(self.order.pk, [], ADMIN)
        record_receipt(self.order.pk, [], ADMIN)
        register_farmer_wastage(self.order.pk, {'farmer_wastage': 2}, ADMIN)

        self.item.refresh_from_db()
        self.assertEqual(self.item.farmer_wastage, 2)

    def test_unknown_level(self):
        with self.assertRaises(OrderValidationError):
            register_wastage(self.order.pk, 'depot', {}, ADMIN)

    def test_multi_item_order_requires_item_list(self):
        """
        Test: Order-level shorthand is refused for orders with several items,
        and a per-item list is all-or-nothing.
        """
        order = self.place_order(
            self.line(self.milk_pouch, self.agency_a, 5),
            self.line(self.curd_pack, self.agency_a, 2),
        )
        milk_item, curd_item = order.items.order_by('id')
        record_delivery(order.pk, [], ADMIN)

        with self.assertRaises(OrderValidationError):
            register_farmer_wastage(order.pk, {'farmer_wastage': 1}, ADMIN)

        with self.assertRaises(WastageConstraintViolation):
            register_farmer_wastage(order.pk, {'items': [
                {'order_item_id': milk_item.id, 'wastage': 1, 'not_received': 1},
                {'order_item_id': curd_item.id, 'wastage': 2, 'not_received': 1},
            ]}, ADMIN)

        milk_item.refresh_from_db()
        self.assertIsNone(milk_item.farmer_wastage)

    def test_vendor_registers_own_farmer_wastage(self):
        record_delivery(self.order.pk, [], ADMIN)
        other = ActingUser(user_id=6, role=VENDOR, vendor_id=self.other_vendor.id)

        with self.assertRaises(ActionNotPermittedError):
            register_farmer_wastage(self.order.pk, {'farmer_wastage': 1}, other)

    def test_agency_registers_wastage_on_own_lines_only(self):
        """
        Test: Agency wastage naming another agency's line is refused as a whole.

        Given: Milk line for agency A (10), curd line for agency B (8), received in full
        When: Agency A registers wastage on the curd line, then on its milk line
        Then: First is refused and nothing is stored; second is stored
        """
        order = self.place_order(
            self.line(self.milk_pouch, self.agency_a, 10),
            self.line(self.curd_pack, self.agency_b, 8),
        )
        milk_item, curd_item = order.items.order_by('id')
        record_delivery(order.pk, [], ADMIN)
        record_receipt(order.pk, [], ADMIN)
        agency_a = ActingUser(7, AGENCY, agency_id=self.agency_a.id)

        with self.assertRaises(ActionNotPermittedError):
            register_agency_wastage(order.pk, {'items': [
                {'order_item_id': milk_item.id, 'wastage': 1, 'not_received': 0},
                {'order_item_id': curd_item.id, 'wastage': 1, 'not_received': 0},
            ]}, agency_a)

        milk_item.refresh_from_db()
        curd_item.refresh_from_db()
        self.assertIsNone(milk_item.agency_wastage)
        self.assertIsNone(curd_item.agency_wastage)

        register_agency_wastage(order.pk, {'items': [
            {'order_item_id': milk_item.id, 'wastage': 1, 'not_received': 2},
        ]}, agency_a)
        milk_item.refresh_from_db()
        self.assertEqual((milk_item.agency_wastage, milk_item.agency_not_received), (1, 2))


class OrderSummaryTestCase(FulfillmentFixtureMixin, TestCase):
    """Test cases for product/variant summaries and totals."""

    def test_compute_total_skips_unknown_products(self):
        items = [
            {'product_id': 1, 'quantity': 2},
            {'product_id': 2, 'quantity': 3},
            {'product_id': 99, 'quantity': 5},
        ]
        total = compute_total(items, {1: Decimal('56.00'), 2: Decimal('90.00')})
        self.assertEqual(total, Decimal('382.00'))

    def test_incomplete_lines_are_ignored(self):
        items = [
            {'product_id': None, 'quantity': 2},
            {'product_id': 1, 'quantity': ''},
            {'product_id': 1, 'quantity': 0},
        ]
        self.assertEqual(compute_total(items, {1: Decimal('10.00')}), Decimal('0.00'))

    def test_group_by_product_and_variant(self):
        gateway = ReferenceDataGateway()
        items = [
            self.line(self.milk_pouch, self.agency_a, 3),
            self.line(self.milk_pouch, self.agency_b, 2),
            self.line(self.milk_bottle, self.agency_a, 1),
            self.line(self.curd_pack, self.agency_a, 4),
        ]

        by_product = group_by_product(items, gateway.get_products())
        self.assertEqual(by_product[self.milk.id].total_quantity, 6)
        self.assertEqual(by_product[self.curd.id].total_quantity, 4)

        by_variant = group_by_variant(items, gateway.get_variants())
        pouch = by_variant[self.milk.id][self.milk_pouch.id]
        self.assertEqual(pouch.quantity, 5)
        self.assertEqual(pouch.agency_ids, {self.agency_a.id, self.agency_b.id})
        self.assertEqual(pouch.depot_ids, {self.depot.id})

    def test_build_order_summary(self):
        items = [
            self.line(self.milk_pouch, self.agency_a, 10),
            self.line(self.curd_pack, self.agency_b, 3),
        ]
        summary = build_order_summary(items, ReferenceDataGateway())

        self.assertEqual(summary['total_amount'], '830.00')
        names = [product['name'] for product in summary['products']]
        self.assertEqual(sorted(names), ['Cow Milk', 'Curd'])
        milk = next(p for p in summary['products'] if p['name'] == 'Cow Milk')
        self.assertEqual(milk['variants'][0]['agencies'], ['Swift Doorstep'])
        self.assertEqual(milk['variants'][0]['depots'], ['Kothrud Depot'])

    def test_depot_variant_totals(self):
        """
        Test: Quantities are summed per depot and variant across agencies.

        Given: Pouch lines of 10 and 5, one bottle line of 3, one curd line of 2
        When: Building depot details
        Then: Three rows ordered by depot, product and variant name
        """
        items = [
            self.line(self.milk_pouch, self.agency_a, 10),
            self.line(self.milk_pouch, self.agency_b, 5),
            self.line(self.milk_bottle, self.agency_a, 3),
            self.line(self.curd_pack, self.agency_a, 2),
            {'product_id': self.milk.id, 'depot_id': None, 'quantity': 4},
        ]

        rows = depot_variant_totals(items, ReferenceDataGateway())

        self.assertEqual(
            [(row['depot_name'], row['variant_name'], row['total_quantity']) for row in rows],
            [
                ('Baner Depot', '1 litre bottle', 3),
                ('Kothrud Depot', '500 ml pouch', 15),
                ('Kothrud Depot', '500 g pack', 2),
            ]
        )
        self.assertEqual(rows[1]['product_name'], 'Cow Milk')
        self.assertEqual(rows[1]['effective_price'], '56.00')
        self.assertEqual(rows[2]['depot_variant_id'], self.curd_pack.id)


@override_settings(RATE_LIMIT_ENABLED=False)
class OrderAPITestCase(FulfillmentFixtureMixin, TestCase):
    """Test cases for the vendor order endpoints."""

    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.admin = User.objects.create_user(username='admin', password='x', is_staff=True)
        self.vendor_user = User.objects.create_user(username='farmer', password='x')
        self.vendor.user = self.vendor_user
        self.vendor.save()
        self.agency_user = User.objects.create_user(username='agency', password='x')
        self.agency_a.user = self.agency_user
        self.agency_a.save()
        self.member = User.objects.create_user(username='member', password='x')

    def as_user(self, user):
        self.client.force_authenticate(user=user)

    def test_requires_authentication(self):
        response = self.client.get(reverse('orders:order-list'))
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_create_order(self):
        self.as_user(self.admin)
        payload = {
            'vendor_id': self.vendor.id,
            'order_date': '2024-01-09',
            'delivery_date': '2024-01-10',
            'items': [self.line(self.milk_pouch, self.agency_a, 10)],
        }

        response = self.client.post(reverse('orders:order-list'), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'PENDING')
        self.assertEqual(response.data['total_amount'], '560.00')
        self.assertEqual(response.data['contact_person_name'], 'Sunil Shinde')
        self.assertEqual(len(response.data['items']), 1)

    def test_create_order_validation(self):
        self.as_user(self.admin)
        payload = {
            'vendor_id': self.vendor.id,
            'order_date': '2024-01-10',
            'delivery_date': '2024-01-09',
            'items': [self.line(self.milk_pouch, self.agency_a, 10)],
        }

        response = self.client.post(reverse('orders:order-list'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_order_variant_mismatch(self):
        self.as_user(self.admin)
        line = self.line(self.milk_bottle, self.agency_a, 1)
        line['depot_id'] = self.depot.id
        payload = {
            'vendor_id': self.vendor.id,
            'order_date': '2024-01-09',
            'delivery_date': '2024-01-10',
            'items': [line],
        }

        response = self.client.post(reverse('orders:order-list'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Validation Error')

    def test_create_order_unknown_vendor(self):
        self.as_user(self.admin)
        payload = {
            'vendor_id': 99999,
            'order_date': '2024-01-09',
            'delivery_date': '2024-01-10',
            'items': [self.line(self.milk_pouch, self.agency_a, 1)],
        }

        response = self.client.post(reverse('orders:order-list'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_vendor_cannot_create(self):
        self.as_user(self.vendor_user)
        payload = {
            'vendor_id': self.vendor.id,
            'order_date': '2024-01-09',
            'delivery_date': '2024-01-10',
            'items': [self.line(self.milk_pouch, self.agency_a, 1)],
        }

        response = self.client.post(reverse('orders:order-list'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_draft_endpoint(self):
        member = User.objects.create_user(username='m1')
        self.schedule(member, self.milk_pouch, 2, self.agency_a)
        self.schedule(member, self.curd_pack, 1)
        self.as_user(self.admin)

        response = self.client.get(reverse('orders:order-draft'), {'date': '2024-01-10'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 2)
        self.assertEqual(response.data['summary']['total_quantity'], 3)
        self.assertEqual(response.data['summary']['unassigned_items'], 1)

    def test_draft_requires_date(self):
        self.as_user(self.admin)
        response = self.client.get(reverse('orders:order-draft'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_draft_schedule_unavailable(self):
        self.as_user(self.admin)
        with patch('orders.aggregation.default_gateway') as gateway:
            gateway.return_value.get_scheduled_deliveries.side_effect = ScheduleUnavailableError('down')
            response = self.client.get(reverse('orders:order-draft'), {'date': '2024-01-10'})

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    def test_summary_endpoint(self):
        self.as_user(self.admin)
        payload = {'items': [
            self.line(self.milk_pouch, self.agency_a, 2),
            {'product_id': None, 'quantity': None},
        ]}

        response = self.client.post(reverse('orders:order-summary'), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_amount'], '112.00')

    def test_order_detail_and_not_found(self):
        order = self.place_order(self.line(self.milk_pouch, self.agency_a, 10))
        self.as_user(self.admin)

        response = self.client.get(reverse('orders:order-detail', args=[order.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['total_amount'], '560.00')

        response = self.client.get(reverse('orders:order-detail', args=[99999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_full_lifecycle_over_http(self):
        order = self.place_order(self.line(self.milk_pouch, self.agency_a, 10))
        item = order.items.get()

        self.as_user(self.vendor_user)
        response = self.client.put(
            reverse('orders:order-record-delivery', args=[order.pk]),
            {'items': [{'order_item_id': item.id, 'delivered_quantity': 11}]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'DELIVERED')
        self.assertEqual(len(response.data['warnings']), 1)

        response = self.client.put(
            reverse('orders:order-record-delivery', args=[order.pk]), {}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        self.as_user(self.agency_user)
        response = self.client.put(
            reverse('orders:order-record-receipt', args=[order.pk]), {}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['received_quantity'], 11)

        response = self.client.patch(
            reverse('orders:order-register-wastage', args=[order.pk]),
            {'level': 'agency', 'agency_wastage': 6, 'agency_not_received': 6},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['level'], 'agency')

        response = self.client.patch(
            reverse('orders:order-register-wastage', args=[order.pk]),
            {'level': 'agency', 'items': [{'order_item_id': item.id, 'wastage': 1}]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['agency_wastage'], 1)
        self.assertEqual(response.data['items'][0]['agency_not_received'], 0)

    def test_receipt_on_pending_conflicts(self):
        order = self.place_order(self.line(self.milk_pouch, self.agency_a, 10))
        self.as_user(self.admin)

        response = self.client.put(
            reverse('orders:order-record-receipt', args=[order.pk]), {}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_amend_delivery_endpoint(self):
        order = self.place_order(self.line(self.milk_pouch, self.agency_a, 10))
        item = order.items.get()
        record_delivery(order.pk, [], ADMIN)
        self.as_user(self.admin)

        response = self.client.put(
            reverse('orders:order-amend-delivery', args=[order.pk]),
            {'items': [{'order_item_id': item.id, 'delivered_quantity': 9}]},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'][0]['delivered_quantity'], 9)

    def test_list_scoped_by_role(self):
        """
        Test: Vendors see their own orders; agencies see non-pending orders
        that carry one of their lines; members see nothing.
        """
        delivered_a = self.place_order(self.line(self.milk_pouch, self.agency_a, 1))
        record_delivery(delivered_a.pk, [], ADMIN)
        delivered_b = self.place_order(self.line(self.milk_pouch, self.agency_b, 1))
        record_delivery(delivered_b.pk, [], ADMIN)
        self.place_order(self.line(self.milk_pouch, self.agency_a, 1))
        contact_order = self.order_data([self.line(self.curd_pack, self.agency_a, 1)])
        contact_order.update(vendor_id=self.other_vendor.id, contact_person_name='Anita Patil')
        create_order(contact_order, ADMIN)

        self.as_user(self.admin)
        response = self.client.get(reverse('orders:order-list'))
        self.assertEqual(response.data['count'], 4)

        self.as_user(self.vendor_user)
        response = self.client.get(reverse('orders:order-list'))
        self.assertEqual(response.data['count'], 3)

        self.as_user(self.agency_user)
        response = self.client.get(reverse('orders:order-list'))
        self.assertEqual(
            [row['id'] for row in response.data['results']], [delivered_a.pk]
        )

        self.as_user(self.member)
        response = self.client.get(reverse('orders:order-list'))
        self.assertEqual(response.data['count'], 0)

        response = self.client.get(reverse('orders:order-detail', args=[delivered_a.pk]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_filters(self):
        first = self.place_order(self.line(self.milk_pouch, self.agency_a, 1))
        record_delivery(first.pk, [], ADMIN)
        self.place_order(self.line(self.milk_pouch, self.agency_a, 1))
        self.as_user(self.admin)

        response = self.client.get(reverse('orders:order-list'), {'status': 'delivered'})
        self.assertEqual([row['id'] for row in response.data['results']], [first.pk])

        response = self.client.get(reverse('orders:order-list'), {'search': first.po_number})
        self.assertEqual(response.data['count'], 1)

    def test_stats(self):
        order = self.place_order(self.line(self.milk_pouch, self.agency_a, 10))
        record_delivery(
            order.pk, [{'order_item_id': order.items.get().id, 'delivered_quantity': 8}], ADMIN
        )
        self.place_order(self.line(self.curd_pack, self.agency_a, 2))
        self.as_user(self.admin)

        response = self.client.get(reverse('orders:order-stats'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_orders'], 2)
        self.assertEqual(response.data['pending_orders'], 1)
        self.assertEqual(response.data['delivered_orders'], 1)
        self.assertEqual(response.data['ordered_quantity'], 12)
        self.assertEqual(response.data['delivered_quantity'], 8)
        self.assertEqual(response.data['received_quantity'], 0)

    def test_depot_details_endpoint(self):
        self.place_order(self.line(self.milk_pouch, self.agency_a, 10))
        create_order(self.order_data(
            [self.line(self.milk_pouch, self.agency_b, 4), self.line(self.curd_pack, self.agency_a, 2)],
            vendor_id=self.other_vendor.id,
            contact_person_name='Anita Patil',
        ), ADMIN)
        self.as_user(self.admin)

        response = self.client.get(reverse('orders:order-details'), {'date': '2024-01-10'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = response.data['details']
        self.assertEqual([row['total_quantity'] for row in rows], [14, 2])
        self.assertEqual(rows[0]['depot_name'], 'Kothrud Depot')

        self.as_user(self.vendor_user)
        response = self.client.get(reverse('orders:order-details'), {'date': '2024-01-10'})
        self.assertEqual([row['total_quantity'] for row in response.data['details']], [10])

        response = self.client.get(reverse('orders:order-details'), {'date': '2024-01-11'})
        self.assertEqual(response.data['details'], [])

    def test_depot_details_requires_date(self):
        self.as_user(self.admin)
        response = self.client.get(reverse('orders:order-details'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_endpoint(self):
        order = self.place_order(self.line(self.milk_pouch, self.agency_a, 10))

        self.as_user(self.vendor_user)
        response = self.client.delete(reverse('orders:order-detail', args=[order.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.as_user(self.admin)
        response = self.client.delete(reverse('orders:order-detail', args=[order.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class OrderTaskTestCase(FulfillmentFixtureMixin, TestCase):
    """Test cases for Celery tasks, executed synchronously."""

    def test_notify_vendor_of_order(self):
        order = self.place_order(self.line(self.milk_pouch, self.agency_a, 10))

        result = notify_vendor_of_order(order.pk)

        self.assertEqual(result['status'], 'success')
        self.assertEqual(result['po_number'], order.po_number)

    def test_notify_skips_non_pending_and_missing(self):
        order = self.place_order(self.line(self.milk_pouch, self.agency_a, 10))
        record_delivery(order.pk, [], ADMIN)

        self.assertEqual(notify_vendor_of_order(order.pk)['status'], 'skipped')
        self.assertEqual(notify_vendor_of_order(99999)['status'], 'error')

    def test_prepare_demand_draft(self):
        member = User.objects.create_user(username='m1')
        tomorrow = timezone.localdate() + timedelta(days=1)
        self.schedule(member, self.milk_pouch, 2, self.agency_a, when=tomorrow)
        self.schedule(member, self.milk_bottle, 3, when=tomorrow)

        result = prepare_demand_draft(days_ahead=1)

        self.assertEqual(result['delivery_date'], tomorrow.isoformat())
        self.assertEqual(result['items'], 2)
        self.assertEqual(result['total_quantity'], 5)
        self.assertEqual(result['total_depots'], 2)
        self.assertEqual(result['unassigned_items'], 1)

    def test_daily_fulfillment_report(self):
        yesterday = timezone.localdate() - timedelta(days=1)
        data = self.order_data(
            [self.line(self.milk_pouch, self.agency_a, 10)],
            order_date=yesterday - timedelta(days=1),
            delivery_date=yesterday,
        )
        order = create_order(data, ADMIN)
        record_delivery(order.pk, [], ADMIN)
        record_receipt(
            order.pk, [{'order_item_id': order.items.get().id, 'received_quantity': 9}], ADMIN
        )

        stats = generate_daily_fulfillment_report()

        self.assertEqual(stats['total_orders'], 1)
        self.assertEqual(stats['received_orders'], 1)
        self.assertEqual(stats['ordered_quantity'], 10)
        self.assertEqual(stats['delivered_quantity'], 10)
        self.assertEqual(stats['received_quantity'], 9)


class ConcurrentDeliveryTestCase(TransactionTestCase):
    """
    Concurrent delivery recording against one order.
    Uses TransactionTestCase so each thread commits on its own connection.
    """

    def setUp(self):
        vendor = Vendor.objects.create(name='Shinde Dairy Farm', contact_person_name='Sunil')
        depot = Depot.objects.create(name='Kothrud Depot')
        milk = Product.objects.create(name='Cow Milk', unit='litre', price=Decimal('56.00'))
        variant = DepotProductVariant.objects.create(depot=depot, product=milk, name='500 ml pouch')
        agency = Agency.objects.create(name='Swift Doorstep')
        self.order = VendorOrder.objects.create(
            vendor=vendor,
            contact_person_name='Sunil',
            order_date=date(2024, 1, 9),
            delivery_date=date(2024, 1, 10),
        )
        self.item = OrderItem.objects.create(
            order=self.order, product=milk, depot=depot,
            depot_variant=variant, agency=agency, quantity=10
        )

    def test_only_one_delivery_is_recorded(self):
        """
        Test: Two simultaneous deliveries never both apply.

        Given: A PENDING order with 10 ordered
        When: Two threads record delivery of 7 and 9 at the same time
        Then: At most one succeeds and the stored quantity is the winner's
        """
        results = {}

        def deliver(quantity):
            try:
                record_delivery(
                    self.order.pk,
                    [{'order_item_id': self.item.id, 'delivered_quantity': quantity}],
                    ADMIN
                )
                results[quantity] = 'ok'
            except InvalidTransitionError:
                results[quantity] = 'conflict'
            except DatabaseError:
                results[quantity] = 'locked'
            finally:
                connection.close()

        threads = [threading.Thread(target=deliver, args=(quantity,)) for quantity in (7, 9)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        winners = [quantity for quantity, outcome in results.items() if outcome == 'ok']
        self.assertEqual(len(results), 2)
        self.assertLessEqual(len(winners), 1)

        self.order.refresh_from_db()
        self.item.refresh_from_db()
        if winners:
            self.assertEqual(self.order.status, VendorOrder.Status.DELIVERED)
            self.assertEqual(self.item.delivered_quantity, winners[0])
        else:
            self.assertEqual(self.order.status, VendorOrder.Status.PENDING)
            self.assertIsNone(self.item.delivered_quantity)
