"""Session resolver: binds request credentials to a staff or community identity.

Two entry points share one algorithm. The read-only variant is safe where
session state cannot be persisted (page renders); the mutating variant may
rotate the refresh session. For identical stored state both return the same
identity.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from jose import JWTError, jwt
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .domain_errors import UnavailableError
from .identity import (
    Identity,
    Unauthenticated,
    community_identity_from_record,
    staff_identity_from_record,
)
from .models import Profile, RefreshSession, Staff

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionCredentials:
    access_token: str | None = None
    refresh_token: str | None = None


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class ResolvedSession:
    identity: Identity
    rotated: TokenPair | None = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def create_access_token(subject: str, expires_in_seconds: int | None = None) -> str:
    """Create JWT access token for a login email."""
    now = int(time.time())
    lifetime = expires_in_seconds
    if lifetime is None:
        lifetime = int(settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES) * 60
    payload = {"sub": subject, "iat": now, "exp": now + lifetime, "type": "access"}
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(subject: str, jti: str) -> str:
    """Create JWT refresh token bound to a server-side refresh session."""
    now = int(time.time())
    exp = now + int(settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS) * 86400
    payload = {"sub": subject, "iat": now, "exp": exp, "type": "refresh", "jti": jti}
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str | None, *, expected_type: str) -> dict | None:
    """Decode and validate a token; None when invalid, expired or of the wrong type."""
    if not token:
        return None
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError:
        return None

    if payload.get("type") != expected_type:
        return None

    now = int(time.time())
    leeway = int(settings.JWT_LEEWAY_SECONDS)
    try:
        exp = int(payload["exp"])
        iat = int(payload.get("iat", now))
    except (KeyError, TypeError, ValueError):
        return None
    if now > exp + leeway:
        return None
    # Reject tokens issued far in the future (clock skew / malicious tokens).
    if iat > now + leeway:
        return None

    sub = payload.get("sub")
    if not sub or not isinstance(sub, str):
        return None
    payload["sub"] = sub.strip().lower()
    return payload


def start_refresh_session(db: Session, subject: str) -> TokenPair:
    """Persist a new refresh session for a freshly authenticated subject."""
    subject = subject.strip().lower()
    now = _utc_now()
    jti = uuid4().hex
    db.add(
        RefreshSession(
            subject=subject,
            jti=jti,
            issued_at=now,
            expires_at=now + timedelta(days=int(settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)),
        )
    )
    return TokenPair(
        access_token=create_access_token(subject),
        refresh_token=create_refresh_token(subject, jti),
    )


def _revoke_all_refresh_sessions(db: Session, *, subject: str) -> None:
    db.query(RefreshSession).filter(
        RefreshSession.subject == subject,
        RefreshSession.revoked_at.is_(None),
    ).update({"revoked_at": _utc_now()}, synchronize_session=False)


def _subject_from_refresh(
    db: Session,
    refresh_token: str | None,
    *,
    allow_side_effects: bool,
) -> tuple[str | None, TokenPair | None]:
    payload = decode_token(refresh_token, expected_type="refresh")
    if payload is None:
        return None, None
    jti = payload.get("jti")
    if not jti or not isinstance(jti, str):
        return None, None
    subject = payload["sub"]

    query = db.query(RefreshSession).filter(
        RefreshSession.subject == subject,
        RefreshSession.jti == jti,
    )
    if allow_side_effects:
        # Lock the row so rotation and replay detection are concurrency-safe.
        query = query.with_for_update()
    session = query.first()
    if session is None:
        return None, None

    now = _utc_now()
    if session.revoked_at is not None:
        if allow_side_effects:
            logger.warning("session.refresh_replay subject=%s", subject)
            _revoke_all_refresh_sessions(db, subject=subject)
            db.commit()
        return None, None

    expires_at = _as_utc(session.expires_at)
    if expires_at is not None and expires_at < now:
        if allow_side_effects:
            session.revoked_at = now
            db.commit()
        return None, None

    if not allow_side_effects:
        return subject, None

    # Rotate: revoke old jti, issue a new refresh session and token pair.
    new_jti = uuid4().hex
    session.revoked_at = now
    session.replaced_by_jti = new_jti
    db.add(
        RefreshSession(
            subject=subject,
            jti=new_jti,
            issued_at=now,
            expires_at=now + timedelta(days=int(settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)),
        )
    )
    db.commit()
    logger.info("session.rotated subject=%s", subject)
    return subject, TokenPair(
        access_token=create_access_token(subject),
        refresh_token=create_refresh_token(subject, new_jti),
    )


def _staff_ic_from_email(email: str) -> str | None:
    suffix = f"@{settings.STAFF_EMAIL_DOMAIN.lower()}"
    if not email.endswith(suffix):
        return None
    ic_number = email[: -len(suffix)].replace("-", "").replace(" ", "")
    return ic_number or None


def load_identity(db: Session, subject: str) -> Identity:
    """Map an authenticated login email to the staff or community record it belongs to."""
    email = subject.strip().lower()

    staff = db.query(Staff).filter(
        func.lower(Staff.email) == email,
        Staff.status == "active",
    ).first()
    if staff is None:
        ic_number = _staff_ic_from_email(email)
        if ic_number:
            staff = db.query(Staff).filter(
                Staff.ic_number == ic_number,
                Staff.status == "active",
            ).first()
    if staff is not None:
        return staff_identity_from_record(staff)

    profile = db.query(Profile).filter(func.lower(Profile.email) == email).first()
    if profile is not None:
        return community_identity_from_record(profile)

    return Unauthenticated(reason="not_provisioned")


def resolve_session(
    db: Session,
    credentials: SessionCredentials,
    *,
    allow_side_effects: bool,
) -> ResolvedSession:
    """Resolve credentials to an identity; invalid credentials yield Unauthenticated."""
    try:
        rotated: TokenPair | None = None
        payload = decode_token(credentials.access_token, expected_type="access")
        subject = payload["sub"] if payload else None
        if subject is None:
            subject, rotated = _subject_from_refresh(
                db,
                credentials.refresh_token,
                allow_side_effects=allow_side_effects,
            )
        if subject is None:
            reason = "no_session" if not (credentials.access_token or credentials.refresh_token) else "invalid_session"
            return ResolvedSession(identity=Unauthenticated(reason=reason))
        return ResolvedSession(identity=load_identity(db, subject), rotated=rotated)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Session resolution failed: identity store unavailable")
        raise UnavailableError("Could not resolve session")


def resolve_session_read_only(db: Session, credentials: SessionCredentials) -> Identity:
    return resolve_session(db, credentials, allow_side_effects=False).identity


def resolve_session_mutating(db: Session, credentials: SessionCredentials) -> ResolvedSession:
    return resolve_session(db, credentials, allow_side_effects=True)
