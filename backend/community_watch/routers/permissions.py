"""Staff permission endpoints (super admin and ADUN only)."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..auth import get_current_identity, get_current_identity_read_only
from ..database import get_db
from ..identity import Identity
from ..schemas import PermissionResponse, StaffPermissionGrantRequest, StaffPermissionResponse
from ..use_cases.staff_permissions import (
    grant_staff_permission_use_case,
    list_permissions,
    list_staff_permissions,
    revoke_staff_permission_use_case,
)

router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("", response_model=list[PermissionResponse])
def get_permissions(
    identity: Identity = Depends(get_current_identity_read_only),
    db: Session = Depends(get_db),
):
    """All grantable permissions."""
    return list_permissions(db=db, identity=identity)


@router.get("/staff/{staff_id}", response_model=list[StaffPermissionResponse])
def get_staff_permissions(
    staff_id: int,
    identity: Identity = Depends(get_current_identity_read_only),
    db: Session = Depends(get_db),
):
    return list_staff_permissions(db=db, staff_id=staff_id, identity=identity)


@router.post(
    "/staff/{staff_id}",
    response_model=StaffPermissionResponse,
    status_code=status.HTTP_201_CREATED,
)
def grant_staff_permission(
    staff_id: int,
    data: StaffPermissionGrantRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Grant a permission to a staff member."""
    return grant_staff_permission_use_case(
        db=db,
        staff_id=staff_id,
        permission_id=data.permission_id,
        identity=identity,
    )


@router.delete("/grants/{staff_permission_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_staff_permission(
    staff_permission_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Revoke a permission grant."""
    revoke_staff_permission_use_case(db=db, staff_permission_id=staff_permission_id, identity=identity)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
