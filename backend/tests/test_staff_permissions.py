from __future__ import annotations

import pytest

from community_watch.domain_errors import DomainError, ForbiddenError, NotFoundError
from community_watch.identity import staff_identity_from_record
from community_watch.models import AuditEvent, Permission, StaffPermission
from community_watch.security import has_permission
from community_watch.use_cases.staff_permissions import (
    grant_staff_permission_use_case,
    list_permissions,
    list_staff_permissions,
    revoke_staff_permission_use_case,
)


@pytest.fixture()
def assign_permission(db):
    permission = Permission(code="issues.assign", name="Assign issues", category="issues")
    db.add(permission)
    db.commit()
    return permission


def test_admin_grants_and_revokes_permission(db, world, assign_permission) -> None:
    admin = staff_identity_from_record(world.admin)
    clerk = staff_identity_from_record(world.clerk)

    grant = grant_staff_permission_use_case(
        db=db, staff_id=world.clerk.id, permission_id=assign_permission.id, identity=admin
    )

    assert grant.permission_code == "issues.assign"
    assert grant.granted_by == world.admin.id
    assert has_permission(db, clerk, "issues.assign") is True
    assert [g.id for g in list_staff_permissions(db=db, staff_id=world.clerk.id, identity=admin)] == [grant.id]

    revoke_staff_permission_use_case(db=db, staff_permission_id=grant.id, identity=admin)

    assert has_permission(db, clerk, "issues.assign") is False
    events = [e.event_type for e in db.query(AuditEvent).order_by(AuditEvent.id).all()]
    assert events == ["permission.granted", "permission.revoked"]


def test_duplicate_grant_is_conflict(db, world, assign_permission) -> None:
    admin = staff_identity_from_record(world.adun)
    grant_staff_permission_use_case(db=db, staff_id=world.clerk.id, permission_id=assign_permission.id, identity=admin)

    with pytest.raises(DomainError) as exc:
        grant_staff_permission_use_case(
            db=db, staff_id=world.clerk.id, permission_id=assign_permission.id, identity=admin
        )

    assert exc.value.code == "PERMISSION_ALREADY_GRANTED"
    assert exc.value.http_status == 409
    assert db.query(StaffPermission).count() == 1


def test_inactive_staff_cannot_receive_permissions(db, world, assign_permission) -> None:
    with pytest.raises(DomainError) as exc:
        grant_staff_permission_use_case(
            db=db,
            staff_id=world.retired.id,
            permission_id=assign_permission.id,
            identity=staff_identity_from_record(world.admin),
        )

    assert exc.value.code == "STAFF_INACTIVE"


def test_unknown_permission_is_not_found(db, world) -> None:
    with pytest.raises(NotFoundError) as exc:
        grant_staff_permission_use_case(
            db=db, staff_id=world.clerk.id, permission_id=999, identity=staff_identity_from_record(world.admin)
        )

    assert exc.value.code == "PERMISSION_NOT_FOUND"


def test_only_admins_manage_permissions(db, world, assign_permission) -> None:
    leader = staff_identity_from_record(world.leader)

    with pytest.raises(ForbiddenError) as exc:
        grant_staff_permission_use_case(
            db=db, staff_id=world.clerk.id, permission_id=assign_permission.id, identity=leader
        )
    assert exc.value.code == "ADMIN_REQUIRED"

    with pytest.raises(ForbiddenError):
        list_permissions(db=db, identity=leader)


def test_revoke_missing_grant_is_not_found(db, world) -> None:
    with pytest.raises(NotFoundError) as exc:
        revoke_staff_permission_use_case(db=db, staff_permission_id=404, identity=staff_identity_from_record(world.admin))

    assert exc.value.code == "STAFF_PERMISSION_NOT_FOUND"
