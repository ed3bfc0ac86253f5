"""Aid program distribution endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from ..auth import get_current_identity, get_current_identity_read_only
from ..database import get_db
from ..identity import Identity
from ..schemas import (
    DistributionMarkRequest,
    DistributionMarkResponse,
    HouseholdStatusResponse,
    ProgramAssignmentCreate,
    ProgramAssignmentResponse,
    ProgramProgressResponse,
    ZoneProgressResponse,
)
from ..security import require_active_staff
from ..use_cases.aid_distribution import (
    assign_ketua_cawangan_use_case,
    get_program_or_404,
    list_program_households,
    mark_household_received_use_case,
    program_zone_progress,
    unmark_household_received_use_case,
)

router = APIRouter(prefix="/aids-programs", tags=["aids-programs"])


@router.get("/{program_id}/progress", response_model=ProgramProgressResponse)
def get_program_progress(
    program_id: int,
    identity: Identity = Depends(get_current_identity_read_only),
    db: Session = Depends(get_db),
):
    """Cached program totals plus live per-zone counts."""
    require_active_staff(identity)
    program = get_program_or_404(db=db, program_id=program_id)
    zones = program_zone_progress(db, program_id)
    return ProgramProgressResponse(
        program_id=program.id,
        total_households=program.total_households,
        distributed_households=program.distributed_households,
        zones=[
            ZoneProgressResponse(
                zone_id=z.zone_id,
                village_id=z.village_id,
                zone_name=z.zone_name,
                village_name=z.village_name,
                total_households=z.total_households,
                distributed_households=z.distributed_households,
                percentage=z.percentage,
            )
            for z in zones
        ],
    )


@router.get("/{program_id}/zones/{zone_id}/households", response_model=list[HouseholdStatusResponse])
def get_program_households(
    program_id: int,
    zone_id: int,
    identity: Identity = Depends(get_current_identity_read_only),
    db: Session = Depends(get_db),
):
    """Households in a zone with their distribution status."""
    return list_program_households(db=db, program_id=program_id, zone_id=zone_id, identity=identity)


@router.post(
    "/{program_id}/households/{household_id}/distribution",
    response_model=DistributionMarkResponse,
)
def mark_household_received(
    program_id: int,
    household_id: int,
    data: Optional[DistributionMarkRequest] = Body(None),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Mark household as having received the program's aid."""
    return mark_household_received_use_case(
        db=db,
        program_id=program_id,
        household_id=household_id,
        identity=identity,
        notes=data.notes if data else None,
    )


@router.delete(
    "/{program_id}/households/{household_id}/distribution",
    response_model=Optional[DistributionMarkResponse],
)
def unmark_household_received(
    program_id: int,
    household_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Revert a household's received mark."""
    return unmark_household_received_use_case(
        db=db,
        program_id=program_id,
        household_id=household_id,
        identity=identity,
    )


@router.post(
    "/{program_id}/assignments",
    response_model=ProgramAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def assign_ketua_cawangan(
    program_id: int,
    data: ProgramAssignmentCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Assign a ketua cawangan to one zone of the program."""
    return assign_ketua_cawangan_use_case(
        db=db,
        program_id=program_id,
        zone_id=data.zone_id,
        staff_id=data.staff_id,
        identity=identity,
        notes=data.notes,
    )
