"""Household aid-distribution invariant helpers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from ..identity import Identity, StaffIdentity


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MarkDecision:
    outcome: Literal["allowed", "unauthenticated", "forbidden"]
    code: str | None = None
    reason: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome == "allowed"


MARK_ALLOWED = MarkDecision("allowed")


def evaluate_marker(identity: Identity) -> MarkDecision:
    if not isinstance(identity, StaffIdentity) or not identity.is_active:
        return MarkDecision("unauthenticated", code="UNAUTHENTICATED", reason="Active staff session required")
    return MARK_ALLOWED


def evaluate_mark_preconditions(
    identity: Identity,
    *,
    household_zone_id: int | None,
    assigned: bool,
    in_program: bool,
) -> MarkDecision:
    """Check mark/unmark preconditions in order; first failure wins.

    `assigned` is whether the household zone lies in the caller's distribution
    scope; `in_program` is whether it lies in the program's coverage.
    """
    marker = evaluate_marker(identity)
    if not marker.allowed:
        return marker
    if not assigned:
        return MarkDecision(
            "forbidden",
            code="DISTRIBUTION_NOT_ASSIGNED",
            reason="not assigned to this program/zone",
        )
    if household_zone_id is None or not in_program:
        return MarkDecision(
            "forbidden",
            code="DISTRIBUTION_OUTSIDE_PROGRAM",
            reason="household is outside the program's zones",
        )
    return MARK_ALLOWED


def apply_received(*, staff_id: int, at: datetime | None = None, notes: str | None = None) -> dict[str, Any]:
    """Column values for a received mark; all three fields are set together."""
    return {
        "received": True,
        "marked_at": at or now_utc(),
        "marked_by": staff_id,
        "notes": notes,
    }


def clear_received() -> dict[str, Any]:
    return {"received": False, "marked_at": None, "marked_by": None}


def check_mark_invariant(*, received: bool, marked_at: datetime | None, marked_by: int | None) -> None:
    if received and (marked_at is None or marked_by is None):
        raise ValueError("Received mark requires marked_at and marked_by")
    if not received and (marked_at is not None or marked_by is not None):
        raise ValueError("Unreceived mark cannot carry marked_at or marked_by")
