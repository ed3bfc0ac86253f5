from __future__ import annotations

from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from community_watch.domain_errors import (
    AuthorizationError,
    DomainError,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
    UnavailableError,
)
from community_watch.identity import (
    UNAUTHENTICATED,
    CommunityIdentity,
    StaffIdentity,
    StaffRole,
    StaffStatus,
)
from community_watch.models import AuditEvent, Issue, Staff, StaffPermission
from community_watch.services.issue_lifecycle import (
    IssueStatus,
    can_delete_issue,
    is_forward_transition,
    parse_issue_status,
)
from community_watch.use_cases.issue_lifecycle import (
    assign_issue_use_case,
    delete_issue_use_case,
    update_issue_status_use_case,
)


class _QueryStub:
    def __init__(self, *, first_result=None):
        self._first_result = first_result

    def filter(self, *_args, **_kwargs):
        return self

    def join(self, *_args, **_kwargs):
        return self

    def first(self):
        return self._first_result


class _SessionStub:
    def __init__(self, *, issue=None, staff=None, grant=None, fail_commit=False):
        self._issue = issue
        self._staff = staff
        self._grant = grant
        self._fail_commit = fail_commit
        self.added = []
        self.deleted = []
        self.commit_calls = 0
        self.rollback_calls = 0

    def query(self, model):
        if model is Issue:
            return _QueryStub(first_result=self._issue)
        if model is Staff:
            return _QueryStub(first_result=self._staff)
        if getattr(model, "class_", None) is StaffPermission:
            return _QueryStub(first_result=self._grant)
        raise AssertionError(f"Unexpected query model: {model}")

    def add(self, obj):
        self.added.append(obj)

    def delete(self, obj):
        self.deleted.append(obj)

    def commit(self):
        if self._fail_commit:
            raise OperationalError("COMMIT", {}, Exception("connection reset"))
        self.commit_calls += 1

    def rollback(self):
        self.rollback_calls += 1


def _issue(*, reporter_id=None, assigned_staff_id=None, zone_id=3, status="pending"):
    return SimpleNamespace(
        id=11,
        title="Broken street light",
        reporter_id=reporter_id,
        assigned_staff_id=assigned_staff_id,
        zone_id=zone_id,
        status=status,
        resolved_at=None,
    )


def _staff(role=StaffRole.STAFF, *, staff_id=7, zone_id=3, status=StaffStatus.ACTIVE):
    return StaffIdentity(staff_id=staff_id, role=role, zone_id=zone_id, status=status, email="s@example.com")


def test_community_authored_issue_cannot_be_deleted() -> None:
    assert can_delete_issue(_issue(reporter_id=42)) is False


def test_staff_entered_issue_can_be_deleted() -> None:
    assert can_delete_issue(_issue(reporter_id=None)) is True


@pytest.mark.parametrize(
    ("current", "nxt", "expected"),
    [
        ("pending", "in_progress", True),
        ("in_progress", "resolved", True),
        ("resolved", "closed", True),
        ("pending", "closed", True),
        ("resolved", "pending", False),
        ("closed", "in_progress", False),
        ("in_progress", "in_progress", True),
    ],
)
def test_forward_transition_order(current: str, nxt: str, expected: bool) -> None:
    assert is_forward_transition(current, nxt) is expected


def test_parse_issue_status_normalizes_and_rejects_unknown() -> None:
    assert parse_issue_status(" Resolved ") is IssueStatus.RESOLVED

    with pytest.raises(DomainError) as exc:
        parse_issue_status("reopened")

    assert exc.value.code == "ISSUE_STATUS_INVALID"
    assert exc.value.http_status == 422


def test_delete_community_issue_raises_authorization_error() -> None:
    issue = _issue(reporter_id=42)
    db = _SessionStub(issue=issue)

    with pytest.raises(AuthorizationError, match="Cannot delete community-submitted issues") as exc:
        delete_issue_use_case(db=db, issue_id=issue.id, identity=_staff(StaffRole.SUPER_ADMIN))

    assert isinstance(exc.value, ForbiddenError)
    assert exc.value.code == "ISSUE_COMMUNITY_AUTHORED"
    assert db.deleted == []
    assert db.commit_calls == 0


def test_delete_staff_issue_writes_audit_and_commits() -> None:
    issue = _issue(reporter_id=None)
    db = _SessionStub(issue=issue)

    delete_issue_use_case(db=db, issue_id=issue.id, identity=_staff(StaffRole.ADUN))

    assert db.deleted == [issue]
    assert db.commit_calls == 1
    audit = [obj for obj in db.added if isinstance(obj, AuditEvent)]
    assert len(audit) == 1
    assert audit[0].event_type == "issue.deleted"
    assert audit[0].actor_role == "adun"


def test_community_user_cannot_delete_any_issue() -> None:
    db = _SessionStub(issue=_issue(reporter_id=None))

    with pytest.raises(AuthorizationError) as exc:
        delete_issue_use_case(db=db, issue_id=11, identity=CommunityIdentity(profile_id=42))

    assert exc.value.code == "ISSUE_DELETE_COMMUNITY_FORBIDDEN"


def test_delete_requires_session() -> None:
    with pytest.raises(UnauthenticatedError):
        delete_issue_use_case(db=_SessionStub(), issue_id=11, identity=UNAUTHENTICATED)


def test_delete_missing_issue_is_not_found() -> None:
    with pytest.raises(NotFoundError) as exc:
        delete_issue_use_case(db=_SessionStub(issue=None), issue_id=11, identity=_staff(StaffRole.SUPER_ADMIN))

    assert exc.value.code == "ISSUE_NOT_FOUND"


def test_status_update_same_status_is_noop() -> None:
    issue = _issue(status="in_progress", assigned_staff_id=7)
    db = _SessionStub(issue=issue)

    change = update_issue_status_use_case(db=db, issue_id=issue.id, identity=_staff(), new_status="in_progress")

    assert change.changed is False
    assert db.commit_calls == 0
    assert db.added == []


def test_status_update_to_resolved_stamps_resolved_at() -> None:
    issue = _issue(status="in_progress", assigned_staff_id=7)
    db = _SessionStub(issue=issue)

    change = update_issue_status_use_case(db=db, issue_id=issue.id, identity=_staff(), new_status="resolved")

    assert change.changed is True
    assert change.old_status == "in_progress"
    assert issue.status == "resolved"
    assert issue.resolved_at is not None
    assert db.commit_calls == 1
    assert db.added[0].event_type == "issue.status_changed"
    assert db.added[0].details == {"oldStatus": "in_progress", "newStatus": "resolved"}


def test_backward_transition_is_allowed_by_default() -> None:
    issue = _issue(status="resolved")
    db = _SessionStub(issue=issue)

    change = update_issue_status_use_case(
        db=db, issue_id=issue.id, identity=_staff(StaffRole.SUPER_ADMIN), new_status="pending", strict=False
    )

    assert change.new_status == "pending"
    assert issue.status == "pending"


def test_backward_transition_rejected_in_strict_mode() -> None:
    issue = _issue(status="resolved")
    db = _SessionStub(issue=issue)

    with pytest.raises(DomainError) as exc:
        update_issue_status_use_case(
            db=db, issue_id=issue.id, identity=_staff(StaffRole.SUPER_ADMIN), new_status="pending", strict=True
        )

    assert exc.value.code == "ISSUE_INVALID_TRANSITION"
    assert exc.value.http_status == 409
    assert issue.status == "resolved"
    assert db.commit_calls == 0


def test_zone_leader_manages_issues_in_own_zone_only() -> None:
    leader = _staff(StaffRole.ZONE_LEADER, zone_id=3)

    in_zone = _issue(zone_id=3)
    update_issue_status_use_case(db=_SessionStub(issue=in_zone), issue_id=11, identity=leader, new_status="in_progress")
    assert in_zone.status == "in_progress"

    other_zone = _issue(zone_id=4)
    with pytest.raises(AuthorizationError) as exc:
        update_issue_status_use_case(
            db=_SessionStub(issue=other_zone), issue_id=11, identity=leader, new_status="in_progress"
        )
    assert exc.value.code == "ISSUE_MANAGE_FORBIDDEN"


def test_plain_staff_needs_assignment_to_change_status() -> None:
    with pytest.raises(AuthorizationError):
        update_issue_status_use_case(
            db=_SessionStub(issue=_issue(assigned_staff_id=99)),
            issue_id=11,
            identity=_staff(),
            new_status="resolved",
        )


def test_community_cannot_change_status() -> None:
    with pytest.raises(UnauthenticatedError):
        update_issue_status_use_case(
            db=_SessionStub(issue=_issue()),
            issue_id=11,
            identity=CommunityIdentity(profile_id=1),
            new_status="resolved",
        )


def test_commit_failure_surfaces_as_unavailable() -> None:
    issue = _issue(status="pending")
    db = _SessionStub(issue=issue, fail_commit=True)

    with pytest.raises(UnavailableError):
        update_issue_status_use_case(
            db=db, issue_id=11, identity=_staff(StaffRole.SUPER_ADMIN), new_status="in_progress"
        )

    assert db.rollback_calls == 1


def test_assign_issue_by_zone_leader() -> None:
    issue = _issue(zone_id=3)
    assignee = SimpleNamespace(id=21, name="Field Officer")
    db = _SessionStub(issue=issue, staff=assignee)

    result = assign_issue_use_case(db=db, issue_id=11, identity=_staff(StaffRole.ZONE_LEADER), staff_id=21)

    assert result.assigned_staff_id == 21
    assert db.commit_calls == 1
    assert db.added[0].event_type == "issue.assigned"


def test_assign_issue_is_idempotent_for_same_assignee() -> None:
    issue = _issue(assigned_staff_id=21)
    db = _SessionStub(issue=issue, staff=SimpleNamespace(id=21, name="Field Officer"))

    assign_issue_use_case(db=db, issue_id=11, identity=_staff(StaffRole.SUPER_ADMIN), staff_id=21)

    assert db.commit_calls == 0


def test_assign_issue_outside_zone_is_forbidden() -> None:
    db = _SessionStub(issue=_issue(zone_id=4), staff=SimpleNamespace(id=21, name="Field Officer"))

    with pytest.raises(AuthorizationError) as exc:
        assign_issue_use_case(db=db, issue_id=11, identity=_staff(StaffRole.ZONE_LEADER), staff_id=21)

    assert exc.value.code == "ISSUE_ASSIGN_FORBIDDEN"


def test_assign_issue_to_unknown_staff_is_not_found() -> None:
    db = _SessionStub(issue=_issue(), staff=None)

    with pytest.raises(NotFoundError) as exc:
        assign_issue_use_case(db=db, issue_id=11, identity=_staff(StaffRole.SUPER_ADMIN), staff_id=21)

    assert exc.value.code == "STAFF_NOT_FOUND"


def test_staff_with_assign_grant_can_assign_any_issue() -> None:
    issue = _issue(zone_id=4)
    db = _SessionStub(
        issue=issue,
        staff=SimpleNamespace(id=21, name="Field Officer"),
        grant=SimpleNamespace(id=1),
    )

    assign_issue_use_case(db=db, issue_id=11, identity=_staff(StaffRole.STAFF), staff_id=21)

    assert issue.assigned_staff_id == 21
    assert db.commit_calls == 1
