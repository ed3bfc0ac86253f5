"""Issue lifecycle use-cases used by issue router endpoints."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..domain_errors import (
    AuthorizationError,
    DomainError,
    NotFoundError,
    UnavailableError,
)
from ..identity import CommunityIdentity, Identity, StaffRole
from ..models import Issue, Staff
from ..security import (
    can_manage_issue,
    has_permission,
    is_admin_identity,
    require_active_staff,
)
from ..services.audit import audit_event
from ..services.distribution_rules import now_utc
from ..services.issue_lifecycle import (
    IssueStatus,
    can_delete_issue,
    is_forward_transition,
    parse_issue_status,
)

logger = logging.getLogger(__name__)

ISSUE_ASSIGN_PERMISSION = "issues.assign"


@dataclass(frozen=True)
class IssueStatusChange:
    issue: Issue
    old_status: str
    new_status: str

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status


def get_issue_or_404(*, db: Session, issue_id: int) -> Issue:
    issue = db.query(Issue).filter(Issue.id == issue_id).first()
    if not issue:
        raise NotFoundError("Issue not found", code="ISSUE_NOT_FOUND")
    return issue


def _commit(db: Session, *, operation: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Issue %s failed: store unavailable", operation)
        raise UnavailableError(f"Could not complete issue {operation}")


def delete_issue_use_case(*, db: Session, issue_id: int, identity: Identity) -> None:
    """Delete a staff-entered issue; community-submitted issues are kept."""
    if isinstance(identity, CommunityIdentity):
        raise AuthorizationError(
            "Community users cannot delete issues",
            code="ISSUE_DELETE_COMMUNITY_FORBIDDEN",
        )
    staff = require_active_staff(identity)
    issue = get_issue_or_404(db=db, issue_id=issue_id)

    if not can_delete_issue(issue):
        raise AuthorizationError(
            "Cannot delete community-submitted issues",
            code="ISSUE_COMMUNITY_AUTHORED",
            details={"issueId": issue.id},
        )

    db.add(
        audit_event(
            staff,
            event_type="issue.deleted",
            entity_type="issue",
            entity_id=issue.id,
            action=f"Deleted issue: {issue.title}",
            details={"title": issue.title, "status": issue.status},
        )
    )
    db.delete(issue)
    _commit(db, operation="delete")
    logger.info("issue.deleted issue_id=%s staff_id=%s", issue_id, staff.staff_id)


def update_issue_status_use_case(
    *,
    db: Session,
    issue_id: int,
    identity: Identity,
    new_status: str,
    strict: bool | None = None,
) -> IssueStatusChange:
    """Move an issue to a new status."""
    staff = require_active_staff(identity)
    target = parse_issue_status(new_status)
    issue = get_issue_or_404(db=db, issue_id=issue_id)

    if not can_manage_issue(staff, issue):
        raise AuthorizationError(
            "Issue is outside your zone or assignments",
            code="ISSUE_MANAGE_FORBIDDEN",
        )

    old_status = issue.status
    # Idempotent: same status is a no-op.
    if old_status == target.value:
        return IssueStatusChange(issue=issue, old_status=old_status, new_status=old_status)

    if strict is None:
        strict = settings.ISSUE_STRICT_FORWARD_TRANSITIONS
    if strict and not is_forward_transition(old_status, target):
        raise DomainError(
            code="ISSUE_INVALID_TRANSITION",
            http_status=409,
            message=f"Cannot move issue from {old_status} to {target.value}",
            details={"from": old_status, "to": target.value},
        )

    issue.status = target.value
    if target is IssueStatus.RESOLVED:
        issue.resolved_at = now_utc()

    db.add(
        audit_event(
            staff,
            event_type="issue.status_changed",
            entity_type="issue",
            entity_id=issue.id,
            action=f"Status changed from {old_status} to {target.value}",
            details={"oldStatus": old_status, "newStatus": target.value},
        )
    )
    _commit(db, operation="status change")
    return IssueStatusChange(issue=issue, old_status=old_status, new_status=target.value)


def assign_issue_use_case(*, db: Session, issue_id: int, identity: Identity, staff_id: int) -> Issue:
    """Assign an issue to an active staff member."""
    staff = require_active_staff(identity)
    issue = get_issue_or_404(db=db, issue_id=issue_id)

    zone_leader_of_issue = (
        staff.role is StaffRole.ZONE_LEADER
        and staff.zone_id is not None
        and issue.zone_id == staff.zone_id
    )
    if not (
        is_admin_identity(staff)
        or zone_leader_of_issue
        or has_permission(db, staff, ISSUE_ASSIGN_PERMISSION)
    ):
        raise AuthorizationError(
            "Only admins, the zone leader or staff granted issues.assign can assign this issue",
            code="ISSUE_ASSIGN_FORBIDDEN",
        )

    assignee = db.query(Staff).filter(
        Staff.id == staff_id,
        Staff.status == "active",
    ).first()
    if not assignee:
        raise NotFoundError("Staff member not found", code="STAFF_NOT_FOUND")

    if issue.assigned_staff_id == assignee.id:
        return issue

    previous = issue.assigned_staff_id
    issue.assigned_staff_id = assignee.id
    db.add(
        audit_event(
            staff,
            event_type="issue.assigned",
            entity_type="issue",
            entity_id=issue.id,
            action=f"Assigned to {assignee.name}",
            details={"assigneeId": assignee.id, "assigneeName": assignee.name, "previousAssigneeId": previous},
        )
    )
    _commit(db, operation="assignment")
    return issue


def require_issue_reader(identity: Identity) -> None:
    """Listing issues needs a community user or active staff; rows are scoped separately."""
    if isinstance(identity, CommunityIdentity):
        return
    require_active_staff(identity)
