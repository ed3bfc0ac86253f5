"""Request-bound credential and identity dependencies."""
from __future__ import annotations

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .identity import Identity
from .services.capabilities import Capabilities, classify
from .session import (
    SessionCredentials,
    resolve_session_mutating,
    resolve_session_read_only,
)

# Bearer token scheme; a missing header is an expected, unauthenticated case.
security = HTTPBearer(auto_error=False)


def get_session_credentials(
    request: Request,
    bearer: HTTPAuthorizationCredentials | None = Depends(security),
) -> SessionCredentials:
    """Collect the opaque credentials the request carries."""
    return SessionCredentials(
        access_token=bearer.credentials if bearer else None,
        refresh_token=request.cookies.get(settings.AUTH_REFRESH_COOKIE_NAME),
    )


def _set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_REFRESH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.AUTH_REFRESH_COOKIE_SECURE,
        samesite=settings.AUTH_REFRESH_COOKIE_SAMESITE,
        path=settings.AUTH_REFRESH_COOKIE_PATH,
        max_age=int(settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS) * 86400,
    )


def get_current_identity_read_only(
    credentials: SessionCredentials = Depends(get_session_credentials),
    db: Session = Depends(get_db),
) -> Identity:
    """Resolve the caller without touching session state (page renders)."""
    return resolve_session_read_only(db, credentials)


def get_current_identity(
    response: Response,
    credentials: SessionCredentials = Depends(get_session_credentials),
    db: Session = Depends(get_db),
) -> Identity:
    """Resolve the caller for mutations; may rotate the refresh session."""
    resolved = resolve_session_mutating(db, credentials)
    if resolved.rotated is not None:
        _set_refresh_cookie(response, resolved.rotated.refresh_token)
        response.headers[settings.AUTH_ROTATED_ACCESS_HEADER] = resolved.rotated.access_token
        response.headers["Cache-Control"] = "no-store"
    return resolved.identity


def get_current_capabilities(
    identity: Identity = Depends(get_current_identity_read_only),
) -> Capabilities:
    return classify(identity)
