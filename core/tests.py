"""
Tests for acting-user resolution and Redis rate limiting.
"""
from datetime import date
from unittest.mock import patch

import redis
from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from catalog.models import Vendor, Agency
from core.context import ActingUser, ADMIN, AGENCY, MEMBER, SYSTEM, VENDOR
from orders.models import VendorOrder

User = get_user_model()


class ActingUserTestCase(TestCase):
    """Test cases for role resolution from Django users."""

    def test_staff_is_admin(self):
        user = User.objects.create_user(username='staff', is_staff=True)
        actor = ActingUser.from_user(user)
        self.assertEqual(actor.role, ADMIN)
        self.assertTrue(actor.is_admin)

    def test_vendor_and_agency_profiles(self):
        vendor_user = User.objects.create_user(username='farmer')
        vendor = Vendor.objects.create(name='Green Meadows', user=vendor_user)
        agency_user = User.objects.create_user(username='rider')
        agency = Agency.objects.create(name='Gokul Riders', user=agency_user)

        vendor_actor = ActingUser.from_user(User.objects.get(pk=vendor_user.pk))
        self.assertEqual(vendor_actor.role, VENDOR)
        self.assertEqual(vendor_actor.vendor_id, vendor.pk)
        self.assertTrue(vendor_actor.can_act_for_vendor(vendor.pk))
        self.assertFalse(vendor_actor.can_act_for_agencies([agency.pk]))

        agency_actor = ActingUser.from_user(User.objects.get(pk=agency_user.pk))
        self.assertEqual(agency_actor.role, AGENCY)
        self.assertTrue(agency_actor.can_act_for_agencies([agency.pk, 999]))
        self.assertFalse(agency_actor.can_act_for_vendor(vendor.pk))

    def test_plain_user_is_member(self):
        user = User.objects.create_user(username='member')
        actor = ActingUser.from_user(user)
        self.assertEqual(actor.role, MEMBER)
        self.assertFalse(actor.is_admin)
        self.assertEqual(str(actor), f'member:{user.pk}')

    def test_system_actor(self):
        actor = ActingUser.system()
        self.assertEqual(actor.role, SYSTEM)
        self.assertTrue(actor.is_admin)
        self.assertEqual(str(actor), 'system')


@override_settings(RATE_LIMIT_ENABLED=True)
class RateLimitTestCase(TestCase):
    """Test cases for the fixed-window limiter with a mocked Redis client."""

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(username='admin', is_staff=True)
        self.client.force_authenticate(user=self.user)
        vendor = Vendor.objects.create(name='Shinde Dairy Farm', contact_person_name='Sunil')
        self.order = VendorOrder.objects.create(
            vendor=vendor,
            contact_person_name='Sunil',
            order_date=date(2024, 1, 9),
            delivery_date=date(2024, 1, 10),
        )

    @patch('core.rate_limiting.redis_client')
    def test_headers_added_within_limit(self, client):
        client.incr.return_value = 1
        client.ttl.return_value = 60

        response = self.client.put(
            reverse('orders:order-record-delivery', args=[self.order.pk]), {}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['X-RateLimit-Limit'], '30')
        self.assertEqual(response['X-RateLimit-Remaining'], '29')
        client.expire.assert_called_once_with(
            f'rate_limit:RecordDeliveryView:user:{self.user.pk}', 60
        )

    @patch('core.rate_limiting.redis_client')
    def test_exceeded_limit_returns_429(self, client):
        client.incr.return_value = 31
        client.ttl.return_value = 42

        response = self.client.put(
            reverse('orders:order-record-delivery', args=[self.order.pk]), {}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response['Retry-After'], '42')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, VendorOrder.Status.PENDING)

    @patch('core.rate_limiting.redis_client')
    def test_decorated_view_limited(self, client):
        client.incr.return_value = 31
        client.ttl.return_value = 10

        response = self.client.get(reverse('orders:order-draft'), {'date': '2024-01-10'})

        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response.data['retry_after'], 10)

    @patch('core.rate_limiting.redis_client')
    def test_fails_open_on_redis_error(self, client):
        client.incr.side_effect = redis.ConnectionError('gone')

        response = self.client.get(reverse('orders:order-draft'), {'date': '2024-01-10'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    @override_settings(RATE_LIMIT_ENABLED=False)
    @patch('core.rate_limiting.redis_client')
    def test_disabled_by_setting(self, client):
        response = self.client.get(reverse('orders:order-draft'), {'date': '2024-01-10'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        client.incr.assert_not_called()
