"""Role classifier: maps a resolved identity to capability flags."""
from __future__ import annotations

from dataclasses import dataclass

from ..identity import (
    CommunityIdentity,
    Identity,
    StaffIdentity,
    StaffRole,
    StaffStatus,
)


@dataclass(frozen=True)
class Capabilities:
    is_authenticated: bool = False
    is_super_admin: bool = False
    is_adun: bool = False
    is_zone_leader: bool = False
    is_ketua_cawangan: bool = False
    can_access_admin: bool = False
    can_access_staff: bool = False
    can_access_community: bool = False
    staff_id: int | None = None
    zone_id: int | None = None
    profile_id: int | None = None
    role: StaffRole | None = None

    @property
    def is_admin(self) -> bool:
        return self.is_super_admin or self.is_adun


def classify(identity: Identity) -> Capabilities:
    """Derive request-scoped capability flags; pure, recomputed per request."""
    if isinstance(identity, StaffIdentity):
        is_super_admin = identity.role is StaffRole.SUPER_ADMIN
        is_adun = identity.role is StaffRole.ADUN
        return Capabilities(
            is_authenticated=True,
            is_super_admin=is_super_admin,
            is_adun=is_adun,
            is_zone_leader=identity.role is StaffRole.ZONE_LEADER,
            is_ketua_cawangan=identity.role is StaffRole.KETUA_CAWANGAN,
            can_access_admin=is_super_admin or is_adun,
            # Any active staff role, admin roles included, may enter the staff workspace.
            can_access_staff=identity.status is StaffStatus.ACTIVE,
            can_access_community=False,
            staff_id=identity.staff_id,
            zone_id=identity.zone_id,
            role=identity.role,
        )

    if isinstance(identity, CommunityIdentity):
        return Capabilities(
            is_authenticated=True,
            can_access_community=True,
            profile_id=identity.profile_id,
        )

    return Capabilities()


def workspace_access(capabilities: Capabilities) -> dict[str, bool]:
    """Client-facing WorkspaceAccess mapping."""
    return {
        "canAccessAdmin": capabilities.can_access_admin,
        "canAccessStaff": capabilities.can_access_staff,
        "canAccessCommunity": capabilities.can_access_community,
    }
