from datetime import datetime, timezone

import pytest

from community_watch.identity import (
    UNAUTHENTICATED,
    CommunityIdentity,
    StaffIdentity,
    StaffRole,
    StaffStatus,
)
from community_watch.services.distribution_rules import (
    MARK_ALLOWED,
    apply_received,
    check_mark_invariant,
    clear_received,
    evaluate_mark_preconditions,
    evaluate_marker,
)


@pytest.mark.parametrize(
    "identity",
    [
        UNAUTHENTICATED,
        CommunityIdentity(profile_id=4),
        StaffIdentity(staff_id=7, role=StaffRole.KETUA_CAWANGAN, status=StaffStatus.INACTIVE),
    ],
)
def test_marker_must_be_active_staff(identity) -> None:
    decision = evaluate_marker(identity)

    assert decision.allowed is False
    assert decision.outcome == "unauthenticated"
    assert decision.code == "UNAUTHENTICATED"


def test_active_staff_marker_is_allowed() -> None:
    assert evaluate_marker(StaffIdentity(staff_id=7, role=StaffRole.KETUA_CAWANGAN)) is MARK_ALLOWED


def test_unauthenticated_wins_over_zone_checks() -> None:
    decision = evaluate_mark_preconditions(
        CommunityIdentity(profile_id=4),
        household_zone_id=None,
        assigned=False,
        in_program=False,
    )

    assert decision.outcome == "unauthenticated"


def test_assignment_is_checked_before_program_coverage() -> None:
    staff = StaffIdentity(staff_id=7, role=StaffRole.KETUA_CAWANGAN)

    not_assigned = evaluate_mark_preconditions(staff, household_zone_id=3, assigned=False, in_program=False)
    outside = evaluate_mark_preconditions(staff, household_zone_id=3, assigned=True, in_program=False)
    no_zone = evaluate_mark_preconditions(staff, household_zone_id=None, assigned=True, in_program=True)

    assert not_assigned.code == "DISTRIBUTION_NOT_ASSIGNED"
    assert outside.code == "DISTRIBUTION_OUTSIDE_PROGRAM"
    assert no_zone.code == "DISTRIBUTION_OUTSIDE_PROGRAM"
    assert evaluate_mark_preconditions(staff, household_zone_id=3, assigned=True, in_program=True).allowed


def test_received_fields_are_set_and_cleared_together() -> None:
    at = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    received = apply_received(staff_id=7, at=at, notes="hall")

    assert received == {"received": True, "marked_at": at, "marked_by": 7, "notes": "hall"}
    check_mark_invariant(received=True, marked_at=at, marked_by=7)
    assert clear_received() == {"received": False, "marked_at": None, "marked_by": None}


def test_invariant_rejects_half_marked_rows() -> None:
    at = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    with pytest.raises(ValueError, match="requires marked_at"):
        check_mark_invariant(received=True, marked_at=at, marked_by=None)
    with pytest.raises(ValueError, match="cannot carry"):
        check_mark_invariant(received=False, marked_at=None, marked_by=7)
