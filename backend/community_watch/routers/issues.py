"""Issue endpoints."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from kombu.exceptions import OperationalError as BrokerOperationalError
from sqlalchemy.orm import Session

from ..auth import get_current_identity, get_current_identity_read_only
from ..celery_app import create_issue_status_notification
from ..database import get_db
from ..domain_errors import ForbiddenError
from ..identity import Identity
from ..models import Issue
from ..schemas import IssueAssignRequest, IssueResponse, IssueStatusUpdate
from ..security import apply_issue_visibility_scope, can_view_issue
from ..services.issue_lifecycle import can_delete_issue, parse_issue_status
from ..use_cases.issue_lifecycle import (
    assign_issue_use_case,
    delete_issue_use_case,
    get_issue_or_404,
    require_issue_reader,
    update_issue_status_use_case,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/issues", tags=["issues"])


def issue_to_response(issue: Issue) -> IssueResponse:
    response = IssueResponse.model_validate(issue)
    response.can_delete = can_delete_issue(issue)
    return response


@router.get("", response_model=list[IssueResponse])
def list_issues(
    status_filter: Optional[str] = Query(None, alias="status"),
    zone_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_current_identity_read_only),
    db: Session = Depends(get_db),
):
    """List issues visible to the caller."""
    require_issue_reader(identity)

    query = apply_issue_visibility_scope(db.query(Issue), identity)
    if status_filter:
        query = query.filter(Issue.status == parse_issue_status(status_filter).value)
    if zone_id is not None:
        query = query.filter(Issue.zone_id == zone_id)

    issues = query.order_by(Issue.created_at.desc(), Issue.id.desc()).offset(offset).limit(limit).all()
    return [issue_to_response(issue) for issue in issues]


@router.get("/{issue_id}", response_model=IssueResponse)
def get_issue(
    issue_id: int,
    identity: Identity = Depends(get_current_identity_read_only),
    db: Session = Depends(get_db),
):
    """Get one issue the caller may see."""
    require_issue_reader(identity)
    issue = get_issue_or_404(db=db, issue_id=issue_id)
    if not can_view_issue(identity, issue):
        raise ForbiddenError("Access denied", code="ISSUE_ACCESS_DENIED")
    return issue_to_response(issue)


@router.patch("/{issue_id}/status", response_model=IssueResponse)
def update_issue_status(
    issue_id: int,
    data: IssueStatusUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Change issue status."""
    change = update_issue_status_use_case(
        db=db,
        issue_id=issue_id,
        identity=identity,
        new_status=data.status,
    )
    if change.changed and change.issue.reporter_id is not None:
        try:
            create_issue_status_notification.delay(issue_id, change.old_status, change.new_status)
        except BrokerOperationalError:
            # The status change is committed; a missed notification is not fatal.
            logger.exception("Could not enqueue status notification for issue %s", issue_id)
    return issue_to_response(change.issue)


@router.post("/{issue_id}/assign", response_model=IssueResponse)
def assign_issue(
    issue_id: int,
    data: IssueAssignRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Assign issue to a staff member."""
    issue = assign_issue_use_case(db=db, issue_id=issue_id, identity=identity, staff_id=data.staff_id)
    return issue_to_response(issue)


@router.delete("/{issue_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_issue(
    issue_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Delete a staff-entered issue."""
    delete_issue_use_case(db=db, issue_id=issue_id, identity=identity)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
