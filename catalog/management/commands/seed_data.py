"""
Management command to seed the database with sample reference data and a
member delivery schedule.

Generates:
- Vendors (farmers) with contact persons
- Depots with per-depot product variants
- Agencies
- Members with delivery schedule entries for the coming days

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
    python manage.py seed_data --members 200 --days 3
"""
import random
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from catalog.models import Vendor, Depot, Product, DepotProductVariant, Agency
from subscriptions.models import DeliveryScheduleEntry

PRODUCTS = [
    ('Cow Milk', 'litre', Decimal('56.00')),
    ('Buffalo Milk', 'litre', Decimal('72.00')),
    ('Curd', 'kg', Decimal('90.00')),
    ('Paneer', 'kg', Decimal('380.00')),
    ('Ghee', 'kg', Decimal('640.00')),
    ('Butter', 'kg', Decimal('520.00')),
]

VARIANTS = {
    'litre': ['500 ml pouch', '1 litre bottle'],
    'kg': ['200 g pack', '500 g pack', '1 kg pack'],
}

FARMERS = [
    ('Shinde Dairy Farm', 'Sunil Shinde'),
    ('Green Meadows', 'Anita Patil'),
    ('Krishna Gau Shala', 'Mahesh Kulkarni'),
]

DEPOTS = [
    ('Kothrud Depot', 'Kothrud, Pune'),
    ('Baner Depot', 'Baner Road, Pune'),
    ('Hadapsar Depot', 'Magarpatta, Pune'),
]

AGENCIES = ['Swift Doorstep', 'Morning Fresh Delivery', 'Gokul Riders', 'City Milk Runs']


class Command(BaseCommand):
    help = 'Seed the database with sample vendors, depots, products, agencies and schedules'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )
        parser.add_argument(
            '--members',
            type=int,
            default=100,
            help='Number of subscribing members to create (default: 100)',
        )
        parser.add_argument(
            '--days',
            type=int,
            default=2,
            help='Number of upcoming delivery days to schedule (default: 2)',
        )
        parser.add_argument(
            '--unassigned',
            type=float,
            default=0.1,
            help='Share of schedule entries without an agency (default: 0.1)',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            self._create_vendors()
            depots = self._create_depots()
            products = self._create_products()
            variants = self._create_variants(depots, products)
            agencies = self._create_agencies()
            members = self._create_members(options['members'])
            self._create_schedule(
                members, variants, agencies, options['days'], options['unassigned']
            )

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))

    def _clear_data(self):
        """Clear all existing data."""
        from orders.models import OrderItem, VendorOrder

        OrderItem.objects.all().delete()
        VendorOrder.objects.all().delete()
        DeliveryScheduleEntry.objects.all().delete()
        DepotProductVariant.objects.all().delete()
        Product.objects.all().delete()
        Depot.objects.all().delete()
        Agency.objects.all().delete()
        Vendor.objects.all().delete()

        self.stdout.write(self.style.WARNING('All existing data cleared.'))

    def _create_vendors(self):
        vendors = []
        for name, contact in FARMERS:
            vendor, created = Vendor.objects.get_or_create(
                name=name, defaults={'contact_person_name': contact}
            )
            vendors.append(vendor)
            if created:
                self.stdout.write(f'  Created vendor: {name}')
        self.stdout.write(self.style.SUCCESS(f'Created {len(vendors)} vendors'))
        return vendors

    def _create_depots(self):
        depots = [
            Depot.objects.get_or_create(name=name, defaults={'address': address})[0]
            for name, address in DEPOTS
        ]
        self.stdout.write(self.style.SUCCESS(f'Created {len(depots)} depots'))
        return depots

    def _create_products(self):
        products = [
            Product.objects.get_or_create(name=name, defaults={'unit': unit, 'price': price})[0]
            for name, unit, price in PRODUCTS
        ]
        self.stdout.write(self.style.SUCCESS(f'Created {len(products)} products'))
        return products

    def _create_variants(self, depots, products):
        """Each depot carries a random subset of the pack sizes for each product."""
        variants = []
        for depot in depots:
            for product in products:
                sizes = VARIANTS[product.unit]
                for size in random.sample(sizes, k=random.randint(1, len(sizes))):
                    variant, _ = DepotProductVariant.objects.get_or_create(
                        depot=depot, product=product, name=size,
                        defaults={'unit': product.unit}
                    )
                    variants.append(variant)
        self.stdout.write(self.style.SUCCESS(f'Created {len(variants)} depot variants'))
        return variants

    def _create_agencies(self):
        agencies = [Agency.objects.get_or_create(name=name)[0] for name in AGENCIES]
        self.stdout.write(self.style.SUCCESS(f'Created {len(agencies)} agencies'))
        return agencies

    def _create_members(self, count):
        User = get_user_model()
        members = []
        for i in range(count):
            member, _ = User.objects.get_or_create(username=f'member{i + 1:04d}')
            members.append(member)
        self.stdout.write(self.style.SUCCESS(f'Created {len(members)} members'))
        return members

    def _create_schedule(self, members, variants, agencies, days, unassigned_share):
        """Give each member one or two subscriptions delivered on each upcoming day."""
        today = timezone.localdate()
        entries = []
        for member in members:
            subscriptions = random.sample(variants, k=min(len(variants), random.randint(1, 2)))
            agency = random.choice(agencies)
            for variant in subscriptions:
                quantity = random.randint(1, 3)
                for offset in range(1, days + 1):
                    entries.append(DeliveryScheduleEntry(
                        member=member,
                        delivery_date=today + timedelta(days=offset),
                        depot=variant.depot,
                        product=variant.product,
                        depot_variant=variant,
                        agency=None if random.random() < unassigned_share else agency,
                        quantity=quantity,
                    ))

        DeliveryScheduleEntry.objects.bulk_create(entries)
        self.stdout.write(self.style.SUCCESS(f'Created {len(entries)} schedule entries'))
