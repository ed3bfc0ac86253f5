"""Aid-distribution use-cases used by aids program router endpoints."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain_errors import (
    DomainError,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
    UnavailableError,
)
from ..identity import Identity, StaffIdentity, StaffRole
from ..models import (
    AidsProgram,
    AidsProgramZone,
    Household,
    HouseholdDistributionMark,
    ProgramAssignment,
    Staff,
    Village,
    Zone,
)
from ..security import (
    distribution_zone_ids,
    is_admin_identity,
    require_active_staff,
    scoped_zone_ids,
    zone_in_scope,
)
from ..services.audit import audit_event
from ..services.distribution_rules import (
    MarkDecision,
    apply_received,
    check_mark_invariant,
    clear_received,
    evaluate_mark_preconditions,
    evaluate_marker,
)

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True)
class HouseholdStatus:
    household_id: int
    head_name: str
    address: str
    zone_id: int | None
    received: bool
    marked_at: object | None = None
    marked_by: int | None = None


@dataclass(frozen=True)
class ZoneProgress:
    zone_id: int | None
    village_id: int | None
    zone_name: str | None
    village_name: str | None
    total_households: int
    distributed_households: int

    @property
    def percentage(self) -> float:
        if not self.total_households:
            return 0.0
        return round(self.distributed_households * 100.0 / self.total_households, 1)


def get_program_or_404(*, db: Session, program_id: int, lock: bool = False) -> AidsProgram:
    query = db.query(AidsProgram).filter(AidsProgram.id == program_id)
    if lock:
        # Serialize counter recomputation per program.
        query = query.with_for_update().populate_existing()
    program = query.first()
    if not program:
        raise NotFoundError("Aid program not found", code="PROGRAM_NOT_FOUND")
    return program


def _get_household_or_404(*, db: Session, household_id: int) -> Household:
    household = db.query(Household).filter(Household.id == household_id).first()
    if not household:
        raise NotFoundError("Household not found", code="HOUSEHOLD_NOT_FOUND")
    return household


def program_zone_ids(db: Session, program_id: int) -> frozenset[int]:
    """Zones a program covers: its zones and its villages' zones, else its assignment zones."""
    direct = {
        row[0]
        for row in db.query(AidsProgramZone.zone_id).filter(
            AidsProgramZone.program_id == program_id,
            AidsProgramZone.zone_id.isnot(None),
        ).all()
    }
    via_villages = {
        row[0]
        for row in db.query(Village.zone_id).join(
            AidsProgramZone,
            AidsProgramZone.village_id == Village.id,
        ).filter(
            AidsProgramZone.program_id == program_id,
        ).all()
    }
    coverage = direct | via_villages
    if coverage:
        return frozenset(coverage)

    return frozenset(
        row[0]
        for row in db.query(ProgramAssignment.zone_id).filter(
            ProgramAssignment.program_id == program_id,
        ).distinct().all()
    )


def recompute_program_totals(db: Session, program: AidsProgram) -> AidsProgram:
    """Recompute cached counters from the mark and household tables."""
    distributed = db.query(func.count(HouseholdDistributionMark.id)).filter(
        HouseholdDistributionMark.program_id == program.id,
        HouseholdDistributionMark.received.is_(True),
    ).scalar() or 0

    zone_ids = program_zone_ids(db, program.id)
    total = 0
    if zone_ids:
        total = db.query(func.count(Household.id)).filter(
            Household.zone_id.in_(zone_ids),
        ).scalar() or 0

    program.distributed_households = int(distributed)
    program.total_households = int(total)
    return program


def _raise_for_decision(decision: MarkDecision, *, program_id: int, household_id: int) -> None:
    if decision.allowed:
        return
    details = {"programId": program_id, "householdId": household_id}
    if decision.outcome == "unauthenticated":
        raise UnauthenticatedError(decision.reason or "Authentication required", details=details)
    raise ForbiddenError(decision.reason or "Access denied", code=decision.code or "FORBIDDEN", details=details)


def _authorize_mark(
    *,
    db: Session,
    program_id: int,
    household_id: int,
    identity: Identity,
) -> tuple[StaffIdentity, AidsProgram, Household]:
    # Before any lookup: anonymous callers get 401, never 404.
    _raise_for_decision(evaluate_marker(identity), program_id=program_id, household_id=household_id)
    staff: StaffIdentity = identity
    program = get_program_or_404(db=db, program_id=program_id, lock=True)
    household = _get_household_or_404(db=db, household_id=household_id)

    scope = distribution_zone_ids(db, staff, program_id)
    coverage = program_zone_ids(db, program_id)
    decision = evaluate_mark_preconditions(
        staff,
        household_zone_id=household.zone_id,
        assigned=zone_in_scope(scope, household.zone_id),
        in_program=household.zone_id in coverage,
    )
    if not decision.allowed:
        logger.info(
            "distribution.denied program_id=%s household_id=%s staff_id=%s code=%s",
            program_id,
            household_id,
            staff.staff_id,
            decision.code,
        )
    _raise_for_decision(decision, program_id=program_id, household_id=household_id)
    return staff, program, household


def _upsert_statement(db: Session, *, program_id: int, household_id: int, values: dict):
    dialect = db.get_bind().dialect.name
    insert = _UPSERT_INSERTS.get(dialect)
    if insert is None:
        raise DomainError(
            code="UPSERT_UNSUPPORTED",
            http_status=500,
            message=f"Atomic upsert is not supported for {dialect}",
        )
    update_values = dict(values)
    if update_values.get("notes") is None:
        # Re-marking without notes keeps the existing ones.
        update_values.pop("notes", None)
    update_values["updated_at"] = func.now()

    stmt = insert(HouseholdDistributionMark).values(
        program_id=program_id,
        household_id=household_id,
        **values,
    )
    return stmt.on_conflict_do_update(
        index_elements=["program_id", "household_id"],
        set_=update_values,
    )


def _get_mark(db: Session, *, program_id: int, household_id: int) -> HouseholdDistributionMark | None:
    return db.query(HouseholdDistributionMark).filter(
        HouseholdDistributionMark.program_id == program_id,
        HouseholdDistributionMark.household_id == household_id,
    ).populate_existing().first()


def mark_household_received_use_case(
    *,
    db: Session,
    program_id: int,
    household_id: int,
    identity: Identity,
    notes: str | None = None,
) -> HouseholdDistributionMark:
    """Mark a household as having received a program's aid.

    Marking an already-received household succeeds and refreshes
    marked_at/marked_by to the latest marker.
    """
    try:
        staff, program, household = _authorize_mark(
            db=db, program_id=program_id, household_id=household_id, identity=identity
        )

        values = apply_received(staff_id=staff.staff_id, notes=(notes or "").strip() or None)
        check_mark_invariant(
            received=values["received"],
            marked_at=values["marked_at"],
            marked_by=values["marked_by"],
        )
        db.execute(_upsert_statement(db, program_id=program_id, household_id=household_id, values=values))
        recompute_program_totals(db, program)

        db.add(
            audit_event(
                staff,
                event_type="aid_distributed",
                entity_type="household",
                entity_id=household.id,
                action=f"Marked household {household.head_name} as received for {program.name}",
                details={"programId": program.id, "zoneId": household.zone_id},
            )
        )
        db.commit()
    except DomainError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Distribution mark failed program_id=%s household_id=%s", program_id, household_id)
        raise UnavailableError("Could not record distribution")

    logger.info(
        "distribution.marked program_id=%s household_id=%s staff_id=%s distributed=%s",
        program_id,
        household_id,
        staff.staff_id,
        program.distributed_households,
    )
    return _get_mark(db, program_id=program_id, household_id=household_id)


def unmark_household_received_use_case(
    *,
    db: Session,
    program_id: int,
    household_id: int,
    identity: Identity,
) -> HouseholdDistributionMark | None:
    """Revert a received mark; received, marked_at and marked_by clear together."""
    try:
        staff, program, household = _authorize_mark(
            db=db, program_id=program_id, household_id=household_id, identity=identity
        )

        cleared = db.query(HouseholdDistributionMark).filter(
            HouseholdDistributionMark.program_id == program_id,
            HouseholdDistributionMark.household_id == household_id,
            HouseholdDistributionMark.received.is_(True),
        ).update({**clear_received(), "updated_at": func.now()}, synchronize_session=False)

        if cleared:
            recompute_program_totals(db, program)
            db.add(
                audit_event(
                    staff,
                    event_type="aid_distribution_reverted",
                    entity_type="household",
                    entity_id=household.id,
                    action=f"Reverted distribution for household {household.head_name} in {program.name}",
                    details={"programId": program.id, "zoneId": household.zone_id},
                )
            )
        db.commit()
    except DomainError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Distribution unmark failed program_id=%s household_id=%s", program_id, household_id)
        raise UnavailableError("Could not revert distribution")

    if cleared:
        logger.info(
            "distribution.reverted program_id=%s household_id=%s staff_id=%s",
            program_id,
            household_id,
            staff.staff_id,
        )
    return _get_mark(db, program_id=program_id, household_id=household_id)


def assign_ketua_cawangan_use_case(
    *,
    db: Session,
    program_id: int,
    zone_id: int,
    staff_id: int,
    identity: Identity,
    notes: str | None = None,
) -> ProgramAssignment:
    """Grant a staff member distribution scope over one zone of a program."""
    caller = require_active_staff(identity)
    if caller.role is StaffRole.ZONE_LEADER:
        if caller.zone_id != zone_id:
            raise ForbiddenError(
                "You can only assign programs in your zone",
                code="ASSIGNMENT_OUTSIDE_ZONE",
            )
    elif not is_admin_identity(caller):
        raise ForbiddenError(
            "Only zone leaders, admin, and ADUN can assign programs",
            code="ASSIGNMENT_FORBIDDEN",
        )

    get_program_or_404(db=db, program_id=program_id)
    if not db.query(Zone.id).filter(Zone.id == zone_id).first():
        raise NotFoundError("Zone not found", code="ZONE_NOT_FOUND")
    assignee = db.query(Staff).filter(
        Staff.id == staff_id,
        Staff.status == "active",
    ).first()
    if not assignee:
        raise NotFoundError("Staff member not found", code="STAFF_NOT_FOUND")

    existing = db.query(ProgramAssignment.id).filter(
        ProgramAssignment.program_id == program_id,
        ProgramAssignment.zone_id == zone_id,
        ProgramAssignment.assigned_to == staff_id,
        ProgramAssignment.assignment_type == "ketua_cawangan",
    ).first()
    if existing:
        raise DomainError(
            code="ASSIGNMENT_EXISTS",
            http_status=409,
            message="This staff member is already assigned to this program",
        )

    assignment = ProgramAssignment(
        program_id=program_id,
        zone_id=zone_id,
        assigned_to=staff_id,
        assigned_by=caller.staff_id,
        assignment_type="ketua_cawangan",
        notes=(notes or "").strip() or None,
    )
    db.add(assignment)
    db.add(
        audit_event(
            caller,
            event_type="program.assigned",
            entity_type="aids_program",
            entity_id=program_id,
            action=f"Assigned {assignee.name} as ketua cawangan",
            details={"zoneId": zone_id, "staffId": staff_id},
        )
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        # Lost a race against an identical assignment.
        raise DomainError(
            code="ASSIGNMENT_EXISTS",
            http_status=409,
            message="This staff member is already assigned to this program",
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Program assignment failed program_id=%s zone_id=%s", program_id, zone_id)
        raise UnavailableError("Could not save program assignment")
    db.refresh(assignment)
    return assignment


def list_program_households(
    *,
    db: Session,
    program_id: int,
    zone_id: int,
    identity: Identity,
) -> list[HouseholdStatus]:
    """Households of one zone with their received status for a program."""
    staff = require_active_staff(identity)
    get_program_or_404(db=db, program_id=program_id)
    if not zone_in_scope(scoped_zone_ids(db, staff, program_id), zone_id):
        raise ForbiddenError(
            "Zone is outside your scope for this program",
            code="ZONE_OUT_OF_SCOPE",
            details={"programId": program_id, "zoneId": zone_id},
        )

    rows = db.query(Household, HouseholdDistributionMark).outerjoin(
        HouseholdDistributionMark,
        (HouseholdDistributionMark.household_id == Household.id)
        & (HouseholdDistributionMark.program_id == program_id),
    ).filter(
        Household.zone_id == zone_id,
    ).order_by(Household.head_name.asc(), Household.id.asc()).all()

    return [
        HouseholdStatus(
            household_id=household.id,
            head_name=household.head_name,
            address=household.address,
            zone_id=household.zone_id,
            received=bool(mark and mark.received),
            marked_at=mark.marked_at if mark and mark.received else None,
            marked_by=mark.marked_by if mark and mark.received else None,
        )
        for household, mark in rows
    ]


def _zone_counts(db: Session, *, program_id: int, zone_id: int) -> tuple[int, int]:
    total = db.query(func.count(Household.id)).filter(Household.zone_id == zone_id).scalar() or 0
    distributed = db.query(func.count(HouseholdDistributionMark.id)).join(
        Household,
        HouseholdDistributionMark.household_id == Household.id,
    ).filter(
        HouseholdDistributionMark.program_id == program_id,
        HouseholdDistributionMark.received.is_(True),
        Household.zone_id == zone_id,
    ).scalar() or 0
    return int(total), int(distributed)


def program_zone_progress(db: Session, program_id: int) -> list[ZoneProgress]:
    """Live per-zone totals for a program's coverage."""
    get_program_or_404(db=db, program_id=program_id)

    entries = db.query(AidsProgramZone).filter(
        AidsProgramZone.program_id == program_id,
    ).order_by(AidsProgramZone.id.asc()).all()

    stats: list[ZoneProgress] = []
    if entries:
        for entry in entries:
            village = None
            zone_id = entry.zone_id
            if entry.village_id is not None:
                village = db.query(Village).filter(Village.id == entry.village_id).first()
                zone_id = village.zone_id if village else None
            if zone_id is None:
                continue
            zone = db.query(Zone).filter(Zone.id == zone_id).first()
            total, distributed = _zone_counts(db, program_id=program_id, zone_id=zone_id)
            stats.append(
                ZoneProgress(
                    zone_id=zone_id,
                    village_id=entry.village_id,
                    zone_name=zone.name if zone else None,
                    village_name=village.name if village else None,
                    total_households=total,
                    distributed_households=distributed,
                )
            )
        return stats

    assigned = db.query(ProgramAssignment.zone_id, Zone.name).join(
        Zone,
        ProgramAssignment.zone_id == Zone.id,
    ).filter(
        ProgramAssignment.program_id == program_id,
    ).distinct().order_by(ProgramAssignment.zone_id.asc()).all()
    for zone_id, zone_name in assigned:
        total, distributed = _zone_counts(db, program_id=program_id, zone_id=zone_id)
        stats.append(
            ZoneProgress(
                zone_id=zone_id,
                village_id=None,
                zone_name=zone_name,
                village_name=None,
                total_households=total,
                distributed_households=distributed,
            )
        )
    return stats
