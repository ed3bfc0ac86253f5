"""Domain-level exception primitives with stable machine-readable codes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class DomainError(Exception):
    """Use-case level error with stable code and HTTP mapping."""

    code: str
    http_status: int
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


class UnauthenticatedError(DomainError):
    """No valid identity could be resolved; recoverable by logging in."""

    def __init__(
        self,
        message: str = "Authentication required",
        *,
        code: str = "UNAUTHENTICATED",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(code=code, http_status=401, message=message, details=details)


class ForbiddenError(DomainError):
    """Valid identity without the capability or scope for the request."""

    def __init__(
        self,
        message: str = "Access denied",
        *,
        code: str = "FORBIDDEN",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(code=code, http_status=403, message=message, details=details)


class AuthorizationError(ForbiddenError):
    """A guarded mutation was attempted without rights."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "AUTHORIZATION_DENIED",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code=code, details=details)


class NotFoundError(DomainError):
    def __init__(
        self,
        message: str,
        *,
        code: str = "NOT_FOUND",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(code=code, http_status=404, message=message, details=details)


class UnavailableError(DomainError):
    """Backing store could not answer; distinct from a denial."""

    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        *,
        code: str = "STORE_UNAVAILABLE",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(code=code, http_status=503, message=message, details=details)
