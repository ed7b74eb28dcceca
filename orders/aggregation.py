"""
Demand Aggregation Engine - builds a vendor order draft from member schedules.

For a delivery date:
1. Read all active schedule entries (one per member per variant)
2. Group by (depot, product, depot variant)
3. Attribute quantity to agencies: exact per-agency sums where entries carry
   an agency, even split of unattributed quantity across the group's agencies
4. Discard candidates with missing identifiers or non-positive quantity

The sum of candidate quantities always equals the sum of the input entries
that carried complete identifiers.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from django.utils import timezone

from core.context import ActingUser
from .exceptions import ActionNotPermittedError
from .gateway import ReferenceDataGateway, ScheduleEntry, default_gateway

logger = logging.getLogger(__name__)

GroupKey = Tuple[int, int, int]


@dataclass(frozen=True)
class LineCandidate:
    """A proposed order line. ``agency_id`` is None when the user must pick one."""
    depot_id: int
    product_id: int
    depot_variant_id: int
    agency_id: Optional[int]
    quantity: int

    def as_dict(self) -> Dict:
        return {
            'depot_id': self.depot_id,
            'product_id': self.product_id,
            'depot_variant_id': self.depot_variant_id,
            'agency_id': self.agency_id,
            'quantity': self.quantity,
        }


@dataclass
class DraftOrder:
    delivery_date: date
    order_date: date
    items: List[LineCandidate] = field(default_factory=list)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def depot_count(self) -> int:
        return len({item.depot_id for item in self.items})

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def unassigned_count(self) -> int:
        return sum(1 for item in self.items if item.agency_id is None)

    def message(self) -> str:
        when = self.delivery_date.strftime('%d/%m/%Y')
        if self.is_empty:
            return f"No scheduled order items found for {when}."
        return (
            f"{len(self.items)} order items prefilled for {when}. "
            f"Total quantity: {self.total_quantity} units across {self.depot_count} depots."
        )


def split_evenly(total: int, agency_ids: Sequence[int]) -> List[Tuple[int, int]]:
    """
    Split ``total`` across agencies as evenly as possible.

    Each share is the ceiling or floor of total / n; the first total % n
    agencies (in the order given) receive the ceiling, so shares always sum
    to ``total``. Agencies with a zero share are omitted.
    """
    if not agency_ids:
        return []
    base, remainder = divmod(total, len(agency_ids))
    shares = []
    for index, agency_id in enumerate(agency_ids):
        share = base + (1 if index < remainder else 0)
        if share > 0:
            shares.append((agency_id, share))
    return shares


def _is_complete(entry: ScheduleEntry) -> bool:
    return (
        entry.depot_id is not None
        and entry.product_id is not None
        and entry.depot_variant_id is not None
        and isinstance(entry.quantity, int)
        and entry.quantity > 0
    )


def attribute_group(entries: Iterable[ScheduleEntry]) -> Dict[Optional[int], int]:
    """
    Resolve one (depot, product, variant) group to quantities per agency.

    Entries carrying an agency are summed exactly. Unattributed quantity goes
    to the only agency when there is one, is split evenly when there are
    several, and stays under ``None`` when no entry carries an agency.
    """
    per_agency: Dict[int, int] = defaultdict(int)
    unattributed = 0
    for entry in entries:
        if entry.agency_id is None:
            unattributed += entry.quantity
        else:
            per_agency[entry.agency_id] += entry.quantity

    result: Dict[Optional[int], int] = dict(per_agency)
    if unattributed:
        agency_ids = sorted(per_agency)
        if not agency_ids:
            result[None] = unattributed
        elif len(agency_ids) == 1:
            result[agency_ids[0]] += unattributed
        else:
            for agency_id, share in split_evenly(unattributed, agency_ids):
                result[agency_id] += share
    return result


def aggregate_schedule(entries: Iterable[ScheduleEntry]) -> List[LineCandidate]:
    """Group schedule entries into order line candidates, ordered by depot, product, variant, agency."""
    groups: Dict[GroupKey, List[ScheduleEntry]] = defaultdict(list)
    skipped = 0
    for entry in entries:
        if not _is_complete(entry):
            skipped += 1
            continue
        groups[(entry.depot_id, entry.product_id, entry.depot_variant_id)].append(entry)

    if skipped:
        logger.warning(f"Skipped {skipped} schedule entries with missing identifiers or quantity")

    candidates = []
    for (depot_id, product_id, variant_id), group in sorted(groups.items()):
        per_agency = attribute_group(group)
        for agency_id in sorted(per_agency, key=lambda a: (a is None, a or 0)):
            quantity = per_agency[agency_id]
            if quantity <= 0:
                continue
            candidates.append(LineCandidate(
                depot_id=depot_id,
                product_id=product_id,
                depot_variant_id=variant_id,
                agency_id=agency_id,
                quantity=quantity,
            ))
        if len(per_agency) > 1:
            logger.debug(
                f"Depot {depot_id} variant {variant_id}: split across agencies {per_agency}"
            )
    return candidates


def build_draft_order(
    delivery_date: date,
    gateway: Optional[ReferenceDataGateway] = None,
    actor: Optional[ActingUser] = None,
) -> DraftOrder:
    """
    Build a draft vendor order for ``delivery_date`` from member schedules.

    An empty schedule yields an empty draft, not an error. Gateway failures
    propagate as ScheduleUnavailableError so no partial draft is returned.
    """
    actor = actor or ActingUser.system()
    if not actor.is_admin:
        raise ActionNotPermittedError("Only administrators can draft vendor orders")

    gateway = gateway or default_gateway()
    entries = gateway.get_scheduled_deliveries(delivery_date)
    draft = DraftOrder(
        delivery_date=delivery_date,
        order_date=min(timezone.localdate(), delivery_date),
        items=aggregate_schedule(entries),
    )

    logger.info(
        f"Draft for {delivery_date} by {actor}: {len(entries)} schedule entries -> "
        f"{len(draft.items)} lines, {draft.total_quantity} units, {draft.depot_count} depots"
    )
    if draft.unassigned_count:
        logger.warning(
            f"Draft for {delivery_date}: {draft.unassigned_count} lines need an agency"
        )
    return draft
