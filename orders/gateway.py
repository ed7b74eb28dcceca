"""
Reference Data Gateway - the single read boundary for collaborator data.

Everything the fulfillment pipeline reads about schedules, products,
variants, depots and agencies comes through ReferenceDataGateway as
frozen dataclasses. Database failures surface as ScheduleUnavailableError;
a partially read result is never returned.
"""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from django.db import DatabaseError

from catalog.models import Depot, Product, DepotProductVariant, Agency
from subscriptions.models import DeliveryScheduleEntry
from .exceptions import ScheduleUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleEntry:
    member_id: int
    depot_id: Optional[int]
    product_id: Optional[int]
    depot_variant_id: Optional[int]
    agency_id: Optional[int]
    quantity: int


@dataclass(frozen=True)
class ProductInfo:
    id: int
    name: str
    unit: str
    price: Decimal


@dataclass(frozen=True)
class VariantInfo:
    id: int
    name: str
    depot_id: int
    product_id: int
    unit: str = ''


@dataclass(frozen=True)
class NamedRef:
    id: int
    name: str


def _as_int(value) -> Optional[int]:
    if value is None or value == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def schedule_entry_from_mapping(row: Dict) -> ScheduleEntry:
    """Build a ScheduleEntry from a loosely typed mapping (camelCase or snake_case keys)."""
    def pick(*keys):
        for key in keys:
            if key in row:
                return row[key]
        return None

    return ScheduleEntry(
        member_id=_as_int(pick('member_id', 'memberId')),
        depot_id=_as_int(pick('depot_id', 'depotId')),
        product_id=_as_int(pick('product_id', 'productId')),
        depot_variant_id=_as_int(pick('depot_variant_id', 'depotVariantId')),
        agency_id=_as_int(pick('agency_id', 'agencyId')),
        quantity=_as_int(pick('quantity')) or 0,
    )


class ReferenceDataGateway:
    """
    ORM-backed gateway. Each method reads one collection and returns typed
    values keyed or ordered deterministically.
    """

    def get_scheduled_deliveries(self, delivery_date: date) -> List[ScheduleEntry]:
        try:
            rows = list(
                DeliveryScheduleEntry.objects.filter(
                    delivery_date=delivery_date,
                    is_active=True,
                ).values(
                    'member_id', 'depot_id', 'product_id',
                    'depot_variant_id', 'agency_id', 'quantity'
                ).order_by('id')
            )
        except DatabaseError as e:
            logger.error(f"Failed to read delivery schedule for {delivery_date}: {e}")
            raise ScheduleUnavailableError(
                f"Delivery schedule for {delivery_date} is unavailable"
            ) from e

        logger.debug(f"Read {len(rows)} schedule entries for {delivery_date}")
        return [schedule_entry_from_mapping(row) for row in rows]

    def get_products(self) -> Dict[int, ProductInfo]:
        rows = self._read(
            'products',
            Product.objects.filter(is_active=True).values('id', 'name', 'unit', 'price')
        )
        return {
            row['id']: ProductInfo(row['id'], row['name'], row['unit'], row['price'])
            for row in rows
        }

    def get_variants(self, depot_id: Optional[int] = None) -> Dict[int, VariantInfo]:
        queryset = DepotProductVariant.objects.filter(is_active=True)
        if depot_id is not None:
            queryset = queryset.filter(depot_id=depot_id)
        rows = self._read(
            'depot variants',
            queryset.values('id', 'name', 'depot_id', 'product_id', 'unit')
        )
        return {
            row['id']: VariantInfo(
                row['id'], row['name'], row['depot_id'], row['product_id'], row['unit']
            )
            for row in rows
        }

    def get_depots(self) -> Dict[int, NamedRef]:
        return self._named('depots', Depot)

    def get_agencies(self) -> Dict[int, NamedRef]:
        return self._named('agencies', Agency)

    def _named(self, label, model) -> Dict[int, NamedRef]:
        rows = self._read(label, model.objects.filter(is_active=True).values('id', 'name'))
        return {row['id']: NamedRef(row['id'], row['name']) for row in rows}

    def _read(self, label, queryset) -> List[Dict]:
        try:
            return list(queryset)
        except DatabaseError as e:
            logger.error(f"Failed to read {label}: {e}")
            raise ScheduleUnavailableError(f"Reference data ({label}) is unavailable") from e


def default_gateway() -> ReferenceDataGateway:
    return ReferenceDataGateway()
