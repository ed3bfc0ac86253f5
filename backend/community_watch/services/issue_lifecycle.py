"""Issue status and deletion rules."""

from __future__ import annotations

from enum import Enum

from ..domain_errors import DomainError


class IssueStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


ISSUE_STATUS_ORDER: tuple[IssueStatus, ...] = (
    IssueStatus.PENDING,
    IssueStatus.IN_PROGRESS,
    IssueStatus.RESOLVED,
    IssueStatus.CLOSED,
)


STATUS_LABELS: dict[IssueStatus, str] = {
    IssueStatus.PENDING: "Pending",
    IssueStatus.IN_PROGRESS: "In progress",
    IssueStatus.RESOLVED: "Resolved",
    IssueStatus.CLOSED: "Closed",
}


def parse_issue_status(value: str | IssueStatus | None) -> IssueStatus:
    if isinstance(value, IssueStatus):
        return value
    normalized = (value or "").strip().lower()
    try:
        return IssueStatus(normalized)
    except ValueError:
        raise DomainError(
            code="ISSUE_STATUS_INVALID",
            http_status=422,
            message=f"Unknown issue status: {value!r}",
            details={"allowed": [s.value for s in ISSUE_STATUS_ORDER]},
        )


def is_forward_transition(current: str | IssueStatus, nxt: str | IssueStatus) -> bool:
    """True when `nxt` is the same as or later than `current` in the lifecycle."""
    return ISSUE_STATUS_ORDER.index(parse_issue_status(nxt)) >= ISSUE_STATUS_ORDER.index(
        parse_issue_status(current)
    )


def is_community_authored(issue) -> bool:
    return issue.reporter_id is not None


def can_delete_issue(issue) -> bool:
    """Community-submitted issues stay on the public record."""
    return issue.reporter_id is None
