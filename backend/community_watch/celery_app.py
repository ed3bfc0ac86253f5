"""
Celery worker for in-app notifications (one row per recipient, idempotent).
"""
from celery import Celery
import logging
from sqlalchemy.orm import Session
from .config import settings
from .database import SessionLocal
from .models import Issue, Notification
from .services.issue_lifecycle import STATUS_LABELS, parse_issue_status

logger = logging.getLogger(__name__)

celery_app = Celery(
    "community_watch",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
)


def issue_status_idempotency_key(issue_id: int, old_status: str, new_status: str) -> str:
    return f"issue_status:{issue_id}:{old_status}->{new_status}"


def write_issue_status_notification(db: Session, issue_id: int, old_status: str, new_status: str) -> Notification | None:
    """Add the reporter's notification for a status change; None when nothing to send."""
    issue = db.query(Issue).filter(Issue.id == issue_id).first()
    if not issue:
        logger.warning("Issue %s vanished before notification", issue_id)
        return None
    # Staff-entered issues have no community reporter to notify.
    if issue.reporter_id is None:
        return None

    idempotency_key = issue_status_idempotency_key(issue_id, old_status, new_status)
    existing = db.query(Notification).filter(
        Notification.idempotency_key == idempotency_key
    ).first()
    if existing:
        logger.info("Skipping duplicate notification: %s", idempotency_key)
        return None

    new_label = STATUS_LABELS[parse_issue_status(new_status)]
    old_label = STATUS_LABELS[parse_issue_status(old_status)]
    notification = Notification(
        profile_id=issue.reporter_id,
        title=f"Issue update: {issue.title}",
        body=f"Your report moved from {old_label} to {new_label}.",
        category='issue',
        read=False,
        idempotency_key=idempotency_key,
    )
    db.add(notification)
    return notification


@celery_app.task(name="create_issue_status_notification")
def create_issue_status_notification(issue_id: int, old_status: str, new_status: str):
    """
    Notify the reporter of a community issue about a status change.
    """
    db = SessionLocal()

    try:
        notification = write_issue_status_notification(db, issue_id, old_status, new_status)
        db.commit()
        if notification is not None:
            logger.info("Created status notification for issue %s (%s -> %s)", issue_id, old_status, new_status)
        return {"created": notification is not None}

    except Exception:
        db.rollback()
        logger.exception("Error creating notification for issue %s", issue_id)
        raise

    finally:
        db.close()
