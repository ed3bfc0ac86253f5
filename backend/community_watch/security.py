"""Security helpers (zone/assignment scoping, row-level visibility, permissions)."""

from __future__ import annotations

from typing import Any, Final

from sqlalchemy import false, or_
from sqlalchemy.orm import Session

from .domain_errors import ForbiddenError, UnauthenticatedError
from .identity import (
    ADMIN_ROLES,
    CommunityIdentity,
    Identity,
    StaffIdentity,
    StaffRole,
)
from .models import Issue, Permission, ProgramAssignment, StaffPermission


class _Unrestricted:
    """Marker for "every zone"; avoids enumerating the zone table."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNRESTRICTED"


UNRESTRICTED: Final = _Unrestricted()

ZoneScope = frozenset[int] | _Unrestricted


def is_admin_identity(identity: Identity) -> bool:
    return (
        isinstance(identity, StaffIdentity)
        and identity.is_active
        and identity.role in ADMIN_ROLES
    )


def require_active_staff(identity: Identity) -> StaffIdentity:
    """Return the caller as active staff or raise 401."""
    if not isinstance(identity, StaffIdentity) or not identity.is_active:
        raise UnauthenticatedError("Active staff session required")
    return identity


def require_admin(identity: Identity) -> StaffIdentity:
    staff = require_active_staff(identity)
    if staff.role not in ADMIN_ROLES:
        raise ForbiddenError("Admin access required", code="ADMIN_REQUIRED")
    return staff


def _assignment_zone_ids(db: Session, *, staff_id: int, program_id: int) -> frozenset[int]:
    rows = db.query(ProgramAssignment.zone_id).filter(
        ProgramAssignment.program_id == program_id,
        ProgramAssignment.assigned_to == staff_id,
        ProgramAssignment.assignment_type == "ketua_cawangan",
    ).distinct().all()
    return frozenset(row[0] for row in rows)


def scoped_zone_ids(db: Session, identity: Identity, program_id: int | None = None) -> ZoneScope:
    """Zones the caller may act upon, optionally for one program."""
    if not isinstance(identity, StaffIdentity) or not identity.is_active:
        return frozenset()
    if identity.role in ADMIN_ROLES:
        return UNRESTRICTED
    zones: frozenset[int] = frozenset()
    if identity.role is StaffRole.ZONE_LEADER and identity.zone_id is not None:
        zones = frozenset({identity.zone_id})
    if program_id is not None:
        # Read scope always covers the zones where the caller may mark distribution.
        zones |= _assignment_zone_ids(db, staff_id=identity.staff_id, program_id=program_id)
    return zones


def distribution_zone_ids(db: Session, identity: Identity, program_id: int) -> ZoneScope:
    """Zones where the caller may mark distribution on a program.

    Only explicit ketua_cawangan assignments grant write scope; a zone leader
    must be assigned like anyone else.
    """
    if not isinstance(identity, StaffIdentity) or not identity.is_active:
        return frozenset()
    if identity.role in ADMIN_ROLES:
        return UNRESTRICTED
    return _assignment_zone_ids(db, staff_id=identity.staff_id, program_id=program_id)


def zone_in_scope(scope: ZoneScope, zone_id: int | None) -> bool:
    if scope is UNRESTRICTED:
        return True
    if zone_id is None:
        return False
    return zone_id in scope


def can_manage_issue(identity: Identity, issue: Issue) -> bool:
    """Object-level issue mutation check (used for IDOR prevention)."""
    if not isinstance(identity, StaffIdentity) or not identity.is_active:
        return False
    if identity.role in ADMIN_ROLES:
        return True
    if issue.assigned_staff_id is not None and issue.assigned_staff_id == identity.staff_id:
        return True
    if identity.role is StaffRole.ZONE_LEADER:
        return identity.zone_id is not None and issue.zone_id == identity.zone_id
    return False


def can_view_issue(identity: Identity, issue: Issue) -> bool:
    if isinstance(identity, CommunityIdentity):
        return issue.reporter_id == identity.profile_id
    return can_manage_issue(identity, issue)


def apply_issue_visibility_scope(query: Any, identity: Identity):
    """Apply Issue visibility policy to a SQLAlchemy query."""
    if isinstance(identity, CommunityIdentity):
        return query.filter(Issue.reporter_id == identity.profile_id)
    if not isinstance(identity, StaffIdentity) or not identity.is_active:
        return query.filter(false())
    if identity.role in ADMIN_ROLES:
        return query
    if identity.role is StaffRole.ZONE_LEADER and identity.zone_id is not None:
        return query.filter(
            or_(
                Issue.zone_id == identity.zone_id,
                Issue.assigned_staff_id == identity.staff_id,
            )
        )
    return query.filter(Issue.assigned_staff_id == identity.staff_id)


def has_permission(db: Session, identity: Identity, code: str) -> bool:
    """Admins hold every permission; other active staff need an explicit grant."""
    if not isinstance(identity, StaffIdentity) or not identity.is_active:
        return False
    if identity.role in ADMIN_ROLES:
        return True
    grant = db.query(StaffPermission.id).join(
        Permission,
        StaffPermission.permission_id == Permission.id,
    ).filter(
        StaffPermission.staff_id == identity.staff_id,
        Permission.code == code,
    ).first()
    return grant is not None

