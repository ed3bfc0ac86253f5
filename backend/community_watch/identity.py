"""Resolved principals bound to a request.

Exactly one of StaffIdentity, CommunityIdentity or Unauthenticated describes
the caller. Identities are plain values passed explicitly to every guard.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Union

from .domain_errors import DomainError


class StaffRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADUN = "adun"
    ZONE_LEADER = "zone_leader"
    KETUA_CAWANGAN = "ketua_cawangan"
    STAFF_MANAGER = "staff_manager"
    STAFF = "staff"


class StaffStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


ADMIN_ROLES: frozenset[StaffRole] = frozenset({StaffRole.SUPER_ADMIN, StaffRole.ADUN})


@dataclass(frozen=True)
class StaffIdentity:
    staff_id: int
    role: StaffRole
    zone_id: int | None = None
    status: StaffStatus = StaffStatus.ACTIVE
    email: str | None = None

    kind: ClassVar[str] = "staff"

    @property
    def is_active(self) -> bool:
        return self.status is StaffStatus.ACTIVE


@dataclass(frozen=True)
class CommunityIdentity:
    profile_id: int
    verification_status: VerificationStatus = VerificationStatus.PENDING
    household_member_id: int | None = None
    email: str | None = None

    kind: ClassVar[str] = "community"


@dataclass(frozen=True)
class Unauthenticated:
    """Normal, expected outcome when no identity can be bound."""

    reason: str = "no_session"

    kind: ClassVar[str] = "unauthenticated"


UNAUTHENTICATED = Unauthenticated()

Identity = Union[StaffIdentity, CommunityIdentity, Unauthenticated]


def parse_staff_role(value: str) -> StaffRole:
    """Map a stored role string onto the closed enum; unknown roles are malformed data."""
    try:
        return StaffRole(value)
    except ValueError:
        raise DomainError(
            code="STAFF_ROLE_INVALID",
            http_status=500,
            message=f"Stored staff role is not recognised: {value!r}",
        )


def staff_identity_from_record(staff) -> StaffIdentity:
    return StaffIdentity(
        staff_id=staff.id,
        role=parse_staff_role(staff.role),
        zone_id=staff.zone_id,
        status=StaffStatus(staff.status),
        email=staff.email,
    )


def community_identity_from_record(profile) -> CommunityIdentity:
    return CommunityIdentity(
        profile_id=profile.id,
        verification_status=VerificationStatus(profile.verification_status),
        household_member_id=profile.household_member_id,
        email=profile.email,
    )
