"""Audit trail entry builder."""

from __future__ import annotations

from typing import Any

from ..identity import CommunityIdentity, Identity, StaffIdentity
from ..models import AuditEvent


def audit_event(
    identity: Identity,
    *,
    event_type: str,
    entity_type: str,
    entity_id: int | None,
    action: str,
    details: dict[str, Any] | None = None,
) -> AuditEvent:
    """Build an AuditEvent attributed to the caller; the caller adds and commits it."""
    event = AuditEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        details=details or {},
    )
    if isinstance(identity, StaffIdentity):
        event.actor_staff_id = identity.staff_id
        event.actor_email = identity.email
        event.actor_role = identity.role.value
    elif isinstance(identity, CommunityIdentity):
        event.actor_profile_id = identity.profile_id
        event.actor_email = identity.email
        event.actor_role = "community"
    return event
