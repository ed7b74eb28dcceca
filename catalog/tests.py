"""
Tests for catalog lookup endpoints and the seed command.
"""
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from catalog.models import Vendor, Depot, Product, DepotProductVariant, Agency
from subscriptions.models import DeliveryScheduleEntry

User = get_user_model()


class CatalogLookupTestCase(TestCase):
    """Test cases for read-only reference lookups."""

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(
            user=User.objects.create_user(username='admin', is_staff=True)
        )
        self.depot = Depot.objects.create(name='Kothrud Depot')
        self.depot2 = Depot.objects.create(name='Baner Depot')
        self.milk = Product.objects.create(name='Cow Milk', unit='litre', price=Decimal('56.00'))
        self.ghee = Product.objects.create(name='Ghee', unit='kg', price=Decimal('640.00'))
        Product.objects.create(name='Discontinued Milk', is_active=False)
        self.pouch = DepotProductVariant.objects.create(
            depot=self.depot, product=self.milk, name='500 ml pouch'
        )
        DepotProductVariant.objects.create(depot=self.depot2, product=self.milk, name='1 litre bottle')
        DepotProductVariant.objects.create(depot=self.depot, product=self.ghee, name='1 kg pack')

    def test_vendor_list_includes_contact(self):
        Vendor.objects.create(name='Shinde Dairy Farm', contact_person_name='Sunil Shinde')
        Vendor.objects.create(name='Closed Farm', is_active=False)

        response = self.client.get(reverse('catalog:vendor-list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['contact_person_name'], 'Sunil Shinde')

    def test_product_list_excludes_inactive(self):
        response = self.client.get(reverse('catalog:product-list'))

        names = [row['name'] for row in response.data]
        self.assertEqual(names, ['Cow Milk', 'Ghee'])
        self.assertEqual(response.data[0]['price'], '56.00')

    def test_product_search(self):
        response = self.client.get(reverse('catalog:product-list'), {'q': 'ghe'})
        self.assertEqual([row['name'] for row in response.data], ['Ghee'])

    def test_variant_filters(self):
        response = self.client.get(
            reverse('catalog:depot-variant-list'),
            {'depot_id': self.depot.id, 'product_id': self.milk.id}
        )

        self.assertEqual(len(response.data), 1)
        row = response.data[0]
        self.assertEqual(row['id'], self.pouch.id)
        self.assertEqual(row['depot_name'], 'Kothrud Depot')
        self.assertEqual(row['product_name'], 'Cow Milk')

    def test_depot_and_agency_lists(self):
        Agency.objects.create(name='Swift Doorstep')

        response = self.client.get(reverse('catalog:depot-list'))
        self.assertEqual([row['name'] for row in response.data], ['Baner Depot', 'Kothrud Depot'])

        response = self.client.get(reverse('catalog:agency-list'))
        self.assertEqual([row['name'] for row in response.data], ['Swift Doorstep'])


class SeedDataCommandTestCase(TestCase):
    """Test cases for the seed_data management command."""

    def test_seed_creates_reference_data_and_schedule(self):
        call_command('seed_data', members=5, days=2, stdout=StringIO())

        self.assertEqual(Vendor.objects.count(), 3)
        self.assertEqual(Depot.objects.count(), 3)
        self.assertEqual(Agency.objects.count(), 4)
        self.assertTrue(DepotProductVariant.objects.exists())
        self.assertEqual(
            DeliveryScheduleEntry.objects.values('member').distinct().count(), 5
        )

    def test_seed_is_repeatable_with_clear(self):
        call_command('seed_data', members=2, days=1, stdout=StringIO())
        call_command('seed_data', '--clear', members=2, days=1, stdout=StringIO())

        self.assertEqual(Vendor.objects.count(), 3)
        self.assertEqual(Product.objects.count(), 6)
