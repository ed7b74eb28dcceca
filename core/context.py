"""
Acting-user context passed explicitly into every order operation.

Views build an ActingUser from ``request.user`` once per request; Celery
tasks and management commands use ``ActingUser.system()``. Service code
never reads request or session state directly.
"""
from dataclasses import dataclass
from typing import Iterable, Optional


ADMIN = 'ADMIN'
VENDOR = 'VENDOR'
AGENCY = 'AGENCY'
MEMBER = 'MEMBER'
SYSTEM = 'SYSTEM'


@dataclass(frozen=True)
class ActingUser:
    user_id: Optional[int]
    role: str
    vendor_id: Optional[int] = None
    agency_id: Optional[int] = None

    @classmethod
    def system(cls) -> 'ActingUser':
        return cls(user_id=None, role=SYSTEM)

    @classmethod
    def from_user(cls, user) -> 'ActingUser':
        """
        Resolve the role of an authenticated Django user.

        Staff and superusers act as ADMIN; users linked to a Vendor or an
        Agency act as that party; everyone else is a MEMBER.
        """
        if user is None or not user.is_authenticated:
            return cls(user_id=None, role=MEMBER)
        if user.is_staff or user.is_superuser:
            return cls(user_id=user.pk, role=ADMIN)

        vendor = getattr(user, 'vendor_profile', None)
        if vendor is not None:
            return cls(user_id=user.pk, role=VENDOR, vendor_id=vendor.pk)

        agency = getattr(user, 'agency_profile', None)
        if agency is not None:
            return cls(user_id=user.pk, role=AGENCY, agency_id=agency.pk)

        return cls(user_id=user.pk, role=MEMBER)

    @property
    def is_admin(self) -> bool:
        return self.role in (ADMIN, SYSTEM)

    def can_act_for_vendor(self, vendor_id: int) -> bool:
        return self.is_admin or (self.role == VENDOR and self.vendor_id == vendor_id)

    def can_act_for_agencies(self, agency_ids: Iterable[int]) -> bool:
        if self.is_admin:
            return True
        return self.role == AGENCY and self.agency_id in set(agency_ids)

    def __str__(self):
        if self.user_id is None:
            return self.role.lower()
        return f"{self.role.lower()}:{self.user_id}"
