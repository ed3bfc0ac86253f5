"""Staff permission grants (admin only)."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain_errors import DomainError, NotFoundError, UnavailableError
from ..identity import Identity
from ..models import Permission, Staff, StaffPermission
from ..security import require_admin
from ..services.audit import audit_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StaffPermissionGrant:
    id: int
    staff_id: int
    permission_id: int
    permission_code: str
    permission_name: str
    granted_by: int | None
    granted_at: datetime | None


def _grant_view(grant: StaffPermission, permission: Permission) -> StaffPermissionGrant:
    return StaffPermissionGrant(
        id=grant.id,
        staff_id=grant.staff_id,
        permission_id=permission.id,
        permission_code=permission.code,
        permission_name=permission.name,
        granted_by=grant.granted_by,
        granted_at=grant.granted_at,
    )


def _get_staff_or_404(*, db: Session, staff_id: int) -> Staff:
    staff = db.query(Staff).filter(Staff.id == staff_id).first()
    if not staff:
        raise NotFoundError("Staff member not found", code="STAFF_NOT_FOUND")
    return staff


def list_permissions(*, db: Session, identity: Identity) -> list[Permission]:
    require_admin(identity)
    return db.query(Permission).order_by(Permission.category, Permission.code).all()


def list_staff_permissions(*, db: Session, staff_id: int, identity: Identity) -> list[StaffPermissionGrant]:
    require_admin(identity)
    _get_staff_or_404(db=db, staff_id=staff_id)
    rows = db.query(StaffPermission, Permission).join(
        Permission,
        StaffPermission.permission_id == Permission.id,
    ).filter(
        StaffPermission.staff_id == staff_id,
    ).order_by(Permission.code).all()
    return [_grant_view(grant, permission) for grant, permission in rows]


def grant_staff_permission_use_case(
    *,
    db: Session,
    staff_id: int,
    permission_id: int,
    identity: Identity,
) -> StaffPermissionGrant:
    """Grant one permission to an active staff member."""
    admin = require_admin(identity)
    staff = _get_staff_or_404(db=db, staff_id=staff_id)
    if staff.status != "active":
        raise DomainError(
            code="STAFF_INACTIVE",
            http_status=422,
            message="Cannot grant permission to inactive staff member",
        )
    permission = db.query(Permission).filter(Permission.id == permission_id).first()
    if not permission:
        raise NotFoundError("Permission not found", code="PERMISSION_NOT_FOUND")

    already_granted = DomainError(
        code="PERMISSION_ALREADY_GRANTED",
        http_status=409,
        message="Permission is already granted to this staff member",
    )
    existing = db.query(StaffPermission.id).filter(
        StaffPermission.staff_id == staff_id,
        StaffPermission.permission_id == permission_id,
    ).first()
    if existing:
        raise already_granted

    grant = StaffPermission(staff_id=staff_id, permission_id=permission_id, granted_by=admin.staff_id)
    db.add(grant)
    db.add(
        audit_event(
            admin,
            event_type="permission.granted",
            entity_type="staff",
            entity_id=staff_id,
            action=f"Granted {permission.code} to {staff.name}",
            details={"permissionId": permission.id, "permissionCode": permission.code},
        )
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise already_granted
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Permission grant failed staff_id=%s permission_id=%s", staff_id, permission_id)
        raise UnavailableError("Could not grant permission")
    db.refresh(grant)
    logger.info("permission.granted staff_id=%s code=%s by=%s", staff_id, permission.code, admin.staff_id)
    return _grant_view(grant, permission)


def revoke_staff_permission_use_case(*, db: Session, staff_permission_id: int, identity: Identity) -> None:
    admin = require_admin(identity)
    row = db.query(StaffPermission, Permission).join(
        Permission,
        StaffPermission.permission_id == Permission.id,
    ).filter(
        StaffPermission.id == staff_permission_id,
    ).first()
    if not row:
        raise NotFoundError("Permission grant not found", code="STAFF_PERMISSION_NOT_FOUND")
    grant, permission = row

    db.add(
        audit_event(
            admin,
            event_type="permission.revoked",
            entity_type="staff",
            entity_id=grant.staff_id,
            action=f"Revoked {permission.code}",
            details={"permissionId": permission.id, "permissionCode": permission.code},
        )
    )
    db.delete(grant)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Permission revoke failed grant_id=%s", staff_permission_id)
        raise UnavailableError("Could not revoke permission")
    logger.info("permission.revoked grant_id=%s by=%s", staff_permission_id, admin.staff_id)
